from __future__ import annotations

import logging
from typing import Union

from fastapi import FastAPI, Header, HTTPException

from quickhand.config import settings
from quickhand.logging_config import setup_logging
from quickhand.models import (
    ClassifyIntentRequest,
    GmailDraftRequest,
    GmailDraftResponse,
    IntegrationStatusResponse,
    IntentResponse,
    NeedsInfoResponse,
    NotionPageRequest,
    NotionPageResponse,
    PlanRequest,
    PlanResponse,
)
from quickhand.roles import ROLE_PRESETS, resolve_role
from quickhand.router.intent_classifier import IntentClassifier, to_wire
from quickhand.services.action_planner import ActionPlanBuilder
from quickhand.services.composer import AnswerComposer
from quickhand.services.integrations_repo import SUPPORTED_PROVIDERS, IntegrationsRepository
from quickhand.services.llm_client import OpenAICompatibleClient, OpenAICompatibleConfig
from quickhand.services.memory_client import Mem0MemoryClient
from quickhand.services.orchestrator import InvalidRequestError, QuickHandOrchestrator
from quickhand.services.reasoner import ToolCallingReasoner
from quickhand.services.supabase_auth import AuthError, SupabaseAuthClient
from quickhand.tools.base import ProviderAuthError
from quickhand.tools.gmail import GmailDraftExecutor, parse_allowed_domains
from quickhand.tools.notion import NotionPageExecutor
from quickhand.tools.registry import build_default_registry
from quickhand.tools.web_search import ExaSearchProvider, WebSearchClient

setup_logging(settings.log_level, settings.log_path)
logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "Couldn't reach the assistant right now. Check your connection and try again."
LLM_KEY_MISSING = "LLM key missing. Set OPENAI_API_KEY or QUICKHAND_LLM_API_KEY."

app = FastAPI(title="QuickHand Agent API", version="0.3.0")


def _build_llm() -> OpenAICompatibleClient | None:
    key = (settings.llm_api_key or "").strip()
    if not key:
        logger.warning("no LLM key configured; planning routes are disabled")
        return None
    return OpenAICompatibleClient(
        OpenAICompatibleConfig(
            provider=settings.llm_provider,
            model=settings.llm_model,
            api_key=key,
            api_base_url=settings.llm_api_base_url,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    )


def _build_web_search() -> WebSearchClient | None:
    if not settings.exa_api_key:
        logger.info("EXA_API_KEY not set; web search disabled")
        return None
    return WebSearchClient(
        ExaSearchProvider(api_key=settings.exa_api_key),
        timeout_seconds=settings.search_timeout_seconds,
    )


def _build_memory() -> Mem0MemoryClient | None:
    if not settings.memory_enabled or not settings.mem0_api_key:
        logger.info("memory store disabled")
        return None
    return Mem0MemoryClient(
        base_url=settings.mem0_api_base_url,
        api_key=settings.mem0_api_key,
        timeout_seconds=settings.memory_timeout_seconds,
        search_limit=settings.memory_search_limit,
    )


def _build_orchestrator(llm: OpenAICompatibleClient | None) -> QuickHandOrchestrator | None:
    if llm is None:
        return None
    return QuickHandOrchestrator(
        classifier=IntentClassifier(llm, timeout_seconds=settings.classifier_timeout_seconds),
        reasoner=ToolCallingReasoner(
            llm,
            build_default_registry(),
            timeout_seconds=settings.reasoner_timeout_seconds,
            generation_timeout_seconds=settings.generation_timeout_seconds,
        ),
        planner=ActionPlanBuilder(llm, timeout_seconds=settings.generation_timeout_seconds),
        composer=AnswerComposer(llm, timeout_seconds=settings.generation_timeout_seconds),
        web_search=_build_web_search(),
        memory=_build_memory(),
        roles=ROLE_PRESETS,
    )


llm = _build_llm()
orchestrator = _build_orchestrator(llm)
intent_classifier = orchestrator.classifier if orchestrator is not None else None
auth = SupabaseAuthClient(
    supabase_url=settings.supabase_url,
    supabase_anon_key=settings.supabase_anon_key,
)
integrations = IntegrationsRepository(
    supabase_url=settings.supabase_url,
    supabase_service_role_key=settings.supabase_service_role_key,
    table=settings.integrations_table,
    timeout_seconds=settings.integrations_timeout_seconds,
)
notion_executor = NotionPageExecutor()
gmail_executor = GmailDraftExecutor(
    allowed_domains=parse_allowed_domains(settings.gmail_allowed_recipient_domains)
)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post(
    "/v1/plan",
    response_model=Union[PlanResponse, NeedsInfoResponse],
    response_model_exclude_none=True,
)
async def plan_route(
    payload: PlanRequest,
    authorization: str | None = Header(default=None),
) -> PlanResponse | NeedsInfoResponse:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail=LLM_KEY_MISSING)
    user_id = auth.optional_user_id(authorization)
    try:
        return await orchestrator.plan(payload, user_id=user_id)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("plan request failed")
        raise HTTPException(status_code=500, detail=UNREACHABLE_MESSAGE) from exc


@app.post(
    "/v1/classify-intent",
    response_model=Union[IntentResponse, NeedsInfoResponse],
)
async def classify_intent_route(
    payload: ClassifyIntentRequest,
) -> IntentResponse | NeedsInfoResponse:
    if intent_classifier is None:
        raise HTTPException(status_code=503, detail=LLM_KEY_MISSING)
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query is required.")
    role = resolve_role(payload.role, ROLE_PRESETS)
    outcome = await intent_classifier.classify(query, role.key, payload.history or [])
    return to_wire(outcome)


@app.post("/v1/actions/notion", response_model=NotionPageResponse)
def notion_create_page(
    payload: NotionPageRequest,
    authorization: str | None = Header(default=None),
) -> NotionPageResponse:
    access_token = _provider_token(authorization, "notion")
    try:
        return notion_executor.create_page(
            access_token=access_token,
            title=payload.title,
            content=payload.content,
            citations=payload.citations,
            parent_id=payload.parent_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderAuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.warning("notion page creation failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.post("/v1/actions/gmail", response_model=GmailDraftResponse)
def gmail_create_draft(
    payload: GmailDraftRequest,
    authorization: str | None = Header(default=None),
) -> GmailDraftResponse:
    access_token = _provider_token(authorization, "gmail")
    try:
        return gmail_executor.create_draft(
            access_token=access_token,
            to=payload.to,
            subject=payload.subject,
            body_html=payload.body_html,
            citations=payload.citations,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderAuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.warning("gmail draft creation failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get(
    "/v1/integrations/{provider}/status",
    response_model=IntegrationStatusResponse,
    response_model_exclude_none=True,
)
def integration_status(
    provider: str,
    authorization: str | None = Header(default=None),
) -> IntegrationStatusResponse:
    provider_key = _supported_provider(provider)
    user_id = _resolve_user_id(authorization)
    _require_integrations()
    try:
        integration = integrations.get_integration(user_id=user_id, provider=provider_key)
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if integration is None or not integration.access_token:
        return IntegrationStatusResponse(provider=provider_key, connected=False)
    return IntegrationStatusResponse(
        provider=provider_key,
        connected=True,
        workspace_name=integration.workspace_name,
    )


def _supported_provider(provider: str) -> str:
    key = (provider or "").strip().lower()
    if key not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=404, detail=f"Unknown provider '{provider}'.")
    return key


def _resolve_user_id(authorization: str | None) -> str:
    try:
        return auth.require_user_id(authorization)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _require_integrations() -> None:
    if integrations.is_configured():
        return
    raise HTTPException(
        status_code=503,
        detail=(
            "Integrations repository is not configured. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
        ),
    )


def _provider_token(authorization: str | None, provider: str) -> str:
    user_id = _resolve_user_id(authorization)
    _require_integrations()
    try:
        return integrations.resolve_access_token(user_id=user_id, provider=provider)
    except LookupError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
