from .bounded import bounded_call
from .integrations_repo import IntegrationsRepository, UserIntegration
from .memory_client import Mem0MemoryClient
from .supabase_auth import AuthError, SupabaseAuthClient

__all__ = [
    "bounded_call",
    "IntegrationsRepository",
    "UserIntegration",
    "Mem0MemoryClient",
    "AuthError",
    "SupabaseAuthClient",
    "QuickHandOrchestrator",
    "InvalidRequestError",
]


def __getattr__(name: str):
    if name in {"QuickHandOrchestrator", "InvalidRequestError"}:
        from .orchestrator import InvalidRequestError, QuickHandOrchestrator

        return {
            "QuickHandOrchestrator": QuickHandOrchestrator,
            "InvalidRequestError": InvalidRequestError,
        }[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
