from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Sequence

from quickhand.models import (
    ConversationTurn,
    IntentNeeds,
    IntentResponse,
    IntentSlots,
    NeedsInfoResponse,
)
from quickhand.services.bounded import bounded_call
from quickhand.services.llm_client import ChatCompletion, OpenAICompatibleClient

logger = logging.getLogger(__name__)

INTENTS = ("info_lookup", "summarize", "email_draft", "action_request", "chitchat")
HISTORY_WINDOW = 4

_EMAIL_IN_TEXT = re.compile(r"[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}", re.IGNORECASE)

_CLASSIFIER_PROMPT = (
    "You are an intent classifier. Classify the user's query into one of: "
    "info_lookup (seeking information), summarize (asking for a summary), "
    "email_draft (wanting to draft an email), action_request (asking to perform an action), "
    "chitchat (casual conversation). Extract the main topic and decide whether location "
    "or email context is still needed.\n"
    "Rules:\n"
    "1) If the query names a specific place, needs_location is false.\n"
    "2) If the conversation already contains a recipient email address, needs_email is false.\n"
    "3) If the user refers to 'this event' or similar and the history establishes it, "
    "needs_location is false.\n"
    "4) Requests to save, email or act on previously discussed topics are action_request "
    "with needs_location false."
)

_CLASSIFY_TOOL = {
    "type": "function",
    "function": {
        "name": "classify_intent",
        "description": "Classify user intent and extract relevant information",
        "parameters": {
            "type": "object",
            "required": ["intent", "topic", "needs_location", "needs_email"],
            "properties": {
                "intent": {"type": "string", "enum": list(INTENTS)},
                "topic": {
                    "type": "string",
                    "description": "Main subject of the query (empty for chitchat).",
                },
                "needs_location": {"type": "boolean"},
                "needs_email": {"type": "boolean"},
            },
        },
    },
}


@dataclass(frozen=True)
class Needs:
    location: bool = False
    email: bool = False


@dataclass(frozen=True)
class IntentResult:
    intent: str
    topic: str
    needs: Needs = field(default_factory=Needs)


@dataclass(frozen=True)
class NeedsInfo:
    missing: tuple[str, ...]
    question: str


class IntentClassifier:
    def __init__(self, llm: OpenAICompatibleClient, timeout_seconds: float = 8) -> None:
        self._llm = llm
        self._timeout_seconds = timeout_seconds

    async def classify(
        self,
        query: str,
        role: str,
        history: Sequence[ConversationTurn] = (),
    ) -> IntentResult | NeedsInfo:
        cleaned = (query or "").strip()
        messages = _build_messages(cleaned, role, history)
        completion = await bounded_call(
            lambda: self._llm.complete_with_tools(
                messages=messages,
                tools=[_CLASSIFY_TOOL],
                tool_choice={"type": "function", "function": {"name": "classify_intent"}},
                temperature=0.1,
                max_tokens=100,
                timeout_seconds=self._timeout_seconds,
            ),
            timeout_seconds=self._timeout_seconds,
            fallback=None,
            label="intent classification",
        )
        result = _result_from_completion(completion, cleaned)
        result = _apply_context_rules(result, cleaned, history)
        logger.info(
            "intent=%s topic=%r needs=(location=%s, email=%s)",
            result.intent,
            result.topic[:80],
            result.needs.location,
            result.needs.email,
        )
        return needs_info_for(result) or result


def needs_info_for(result: IntentResult) -> NeedsInfo | None:
    missing: list[str] = []
    if result.needs.location:
        missing.append("location")
    if result.needs.email:
        missing.append("email")
    if not missing:
        return None
    if "email" in missing:
        question = "Who should receive the email?"
    else:
        question = "What location are you interested in?"
    return NeedsInfo(missing=tuple(missing), question=question)


def to_wire(outcome: IntentResult | NeedsInfo) -> IntentResponse | NeedsInfoResponse:
    if isinstance(outcome, NeedsInfo):
        return NeedsInfoResponse(missing=list(outcome.missing), question=outcome.question)
    return IntentResponse(
        intent=outcome.intent,
        slots=IntentSlots(
            topic=outcome.topic,
            needs=IntentNeeds(location=outcome.needs.location, email=outcome.needs.email),
        ),
    )


def _build_messages(
    query: str, role: str, history: Sequence[ConversationTurn]
) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": _CLASSIFIER_PROMPT}]
    for turn in list(history)[-HISTORY_WINDOW:]:
        messages.append({"role": turn.role, "content": turn.content})
    messages.append({"role": "user", "content": f'Query: "{query}"\nRole: {role}'})
    return messages


def _default_result(query: str) -> IntentResult:
    return IntentResult(intent="info_lookup", topic=query, needs=Needs())


def _result_from_completion(completion: ChatCompletion | None, query: str) -> IntentResult:
    if completion is None:
        return _default_result(query)
    call = next((row for row in completion.tool_calls if row.name == "classify_intent"), None)
    if call is None or not isinstance(call.arguments, dict):
        logger.warning("intent classifier returned no classify_intent call; defaulting")
        return _default_result(query)
    args = call.arguments
    intent = args.get("intent")
    if intent not in INTENTS:
        logger.warning("intent classifier returned unknown intent %r; defaulting", intent)
        return _default_result(query)
    topic = args.get("topic")
    topic = topic.strip() if isinstance(topic, str) else ""
    if not topic and intent != "chitchat":
        topic = query
    return IntentResult(
        intent=intent,
        topic=topic,
        needs=Needs(
            location=args.get("needs_location") is True,
            email=args.get("needs_email") is True,
        ),
    )


def _apply_context_rules(
    result: IntentResult, query: str, history: Sequence[ConversationTurn]
) -> IntentResult:
    if not result.needs.email:
        return result
    texts = [query] + [turn.content for turn in history if turn.role == "user"]
    if any(_EMAIL_IN_TEXT.search(text or "") for text in texts):
        return IntentResult(
            intent=result.intent,
            topic=result.topic,
            needs=Needs(location=result.needs.location, email=False),
        )
    return result
