from .base import ProviderAuthError
from .gmail import GmailDraftExecutor
from .invocations import (
    ExaSearchInvocation,
    GmailCreateDraftInvocation,
    NotionCreatePageInvocation,
    ToolInvocation,
    parse_invocation,
)
from .notion import NotionPageExecutor
from .registry import ToolDefinition, ToolRegistry, build_default_registry
from .web_search import ExaSearchProvider, WebSearchClient

__all__ = [
    "ProviderAuthError",
    "GmailDraftExecutor",
    "ExaSearchInvocation",
    "GmailCreateDraftInvocation",
    "NotionCreatePageInvocation",
    "ToolInvocation",
    "parse_invocation",
    "NotionPageExecutor",
    "ToolDefinition",
    "ToolRegistry",
    "build_default_registry",
    "ExaSearchProvider",
    "WebSearchClient",
]
