import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv(override=False)


def _as_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _as_seconds(raw: str | None, default: int, maximum: int) -> int:
    return max(1, min(maximum, _as_int(raw, default)))


@dataclass(frozen=True)
class Settings:
    llm_api_key: str | None
    llm_provider: str
    llm_model: str
    llm_api_base_url: str | None
    exa_api_key: str | None
    mem0_api_key: str | None
    mem0_api_base_url: str
    memory_enabled: bool
    memory_search_limit: int
    classifier_timeout_seconds: int
    search_timeout_seconds: int
    memory_timeout_seconds: int
    reasoner_timeout_seconds: int
    generation_timeout_seconds: int
    supabase_url: str | None
    supabase_anon_key: str | None
    supabase_service_role_key: str | None
    integrations_table: str
    integrations_timeout_seconds: int
    gmail_allowed_recipient_domains: str
    log_level: str
    log_path: str | None


def load_settings() -> Settings:
    provider = os.getenv("QUICKHAND_LLM_PROVIDER", "openai").strip().lower()
    return Settings(
        llm_api_key=(
            os.getenv("QUICKHAND_LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or None
        ),
        llm_provider=provider,
        llm_model=os.getenv("QUICKHAND_LLM_MODEL") or "gpt-4o-mini",
        llm_api_base_url=(os.getenv("QUICKHAND_LLM_API_BASE_URL") or None),
        exa_api_key=(os.getenv("EXA_API_KEY") or None),
        mem0_api_key=(os.getenv("MEM0_API_KEY") or None),
        mem0_api_base_url=os.getenv("MEM0_API_BASE_URL", "https://api.mem0.ai"),
        memory_enabled=_as_bool(os.getenv("QUICKHAND_MEMORY_ENABLED"), True),
        memory_search_limit=max(1, min(20, _as_int(os.getenv("MEMORY_SEARCH_LIMIT"), 5))),
        classifier_timeout_seconds=_as_seconds(
            os.getenv("CLASSIFIER_TIMEOUT_SECONDS"), 8, 30
        ),
        search_timeout_seconds=_as_seconds(os.getenv("SEARCH_TIMEOUT_SECONDS"), 8, 30),
        memory_timeout_seconds=_as_seconds(os.getenv("MEMORY_TIMEOUT_SECONDS"), 5, 30),
        reasoner_timeout_seconds=_as_seconds(
            os.getenv("REASONER_TIMEOUT_SECONDS"), 15, 60
        ),
        generation_timeout_seconds=_as_seconds(
            os.getenv("GENERATION_TIMEOUT_SECONDS"), 30, 120
        ),
        supabase_url=(os.getenv("SUPABASE_URL") or None),
        supabase_anon_key=(os.getenv("SUPABASE_ANON_KEY") or None),
        supabase_service_role_key=(os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None),
        integrations_table=os.getenv("INTEGRATIONS_TABLE", "user_integrations"),
        integrations_timeout_seconds=_as_seconds(
            os.getenv("INTEGRATIONS_TIMEOUT_SECONDS"), 8, 30
        ),
        gmail_allowed_recipient_domains=os.getenv("GMAIL_ALLOWED_RECIPIENT_DOMAINS", ""),
        log_level=os.getenv("QUICKHAND_LOG_LEVEL", "INFO"),
        log_path=(os.getenv("QUICKHAND_LOG_PATH") or None),
    )


settings = load_settings()
