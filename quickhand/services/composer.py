from __future__ import annotations

import json
import logging
from typing import Any

from quickhand.models import Citation, NextAction, StructuredAnswer
from quickhand.services.bounded import bounded_call
from quickhand.services.llm_client import OpenAICompatibleClient

logger = logging.getLogger(__name__)

DEFAULT_FOLLOWUPS = (
    "Can you go into more detail?",
    "What should I do next?",
)

_COMPOSER_PROMPT = (
    "You turn an assistant answer into a structured card. Return ONLY a JSON object with keys: "
    '"answer" (string, the answer rewritten concisely, keeping inline citation markers like [1]), '
    '"bullets" (array of 2-5 short key points), '
    '"followups" (array of 2-3 follow-up questions the user might ask next), '
    '"nextActions" (array of objects {"tool": string, "params": object} using only the tools '
    "notion_create_page or gmail_create_draft, empty when none apply)."
)


class AnswerComposer:
    def __init__(self, llm: OpenAICompatibleClient, timeout_seconds: float = 30) -> None:
        self._llm = llm
        self._timeout_seconds = timeout_seconds

    async def compose(
        self,
        query: str,
        raw_answer: str,
        citations: list[Citation],
    ) -> StructuredAnswer:
        sources = "\n".join(f"[{citation.id}] {citation.title} ({citation.url})" for citation in citations)
        user_prompt = (
            f"User question:\n{query}\n\n"
            f"Assistant answer:\n{raw_answer}\n\n"
            f"Sources:\n{sources or '(none)'}"
        )
        payload = await bounded_call(
            lambda: self._llm.complete_json(
                system_prompt=_COMPOSER_PROMPT,
                user_prompt=user_prompt,
                max_tokens=700,
                temperature=0.2,
                timeout_seconds=self._timeout_seconds,
            ),
            timeout_seconds=self._timeout_seconds,
            fallback=None,
            label="answer composition",
        )
        if payload is None:
            return fallback_structured(raw_answer, citations)
        try:
            return _structured_from_payload(payload, raw_answer, citations)
        except (TypeError, ValueError) as exc:
            logger.warning("composer returned malformed output; using fallback: %s", exc)
            return fallback_structured(raw_answer, citations)


def fallback_structured(raw_answer: str, citations: list[Citation]) -> StructuredAnswer:
    return StructuredAnswer(
        answer=raw_answer,
        bullets=[raw_answer],
        citations=list(citations),
        followups=list(DEFAULT_FOLLOWUPS),
        next_actions=[],
    )


def _structured_from_payload(
    payload: dict[str, Any], raw_answer: str, citations: list[Citation]
) -> StructuredAnswer:
    answer = payload.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        raise ValueError("missing answer")
    bullets = _string_list(payload.get("bullets")) or [raw_answer]
    followups = _string_list(payload.get("followups")) or list(DEFAULT_FOLLOWUPS)
    return StructuredAnswer(
        answer=answer.strip(),
        bullets=bullets,
        citations=list(citations),
        followups=followups,
        next_actions=normalize_next_actions(payload.get("nextActions")),
    )


def _string_list(raw: object) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [item.strip() for item in raw if isinstance(item, str) and item.strip()]


def normalize_next_actions(raw: object) -> list[NextAction]:
    if not isinstance(raw, list):
        return []
    out: list[NextAction] = []
    for entry in raw:
        if isinstance(entry, str):
            if entry.strip():
                out.append(NextAction(tool=entry.strip(), params={}))
            continue
        if not isinstance(entry, dict):
            continue
        tool = entry.get("tool") or entry.get("name")
        if not isinstance(tool, str) or not tool.strip():
            continue
        params = entry.get("params", entry.get("arguments"))
        if isinstance(params, str):
            try:
                params = json.loads(params)
            except json.JSONDecodeError:
                params = {}
        out.append(NextAction(tool=tool.strip(), params=params if isinstance(params, dict) else {}))
    return out
