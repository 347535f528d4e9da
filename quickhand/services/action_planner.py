from __future__ import annotations

import asyncio
import html
import logging
import re
import time
import uuid

from quickhand.models import ActionPlanItem, Citation
from quickhand.services.bounded import bounded_call
from quickhand.services.llm_client import OpenAICompatibleClient
from quickhand.tools.invocations import (
    GmailCreateDraftInvocation,
    NotionCreatePageInvocation,
    ToolInvocation,
)

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 60
DEFAULT_TITLE = "Note"
DEFAULT_SUBJECT = "Message from QuickHand"

_TITLE_PROMPT = (
    "You generate concise, descriptive titles (max 60 characters) for notes. "
    "Return ONLY the title, no quotes or extra text."
)
_SUBJECT_PROMPT = (
    "You write short, specific email subject lines (max 80 characters). "
    "Return ONLY the subject line, no quotes or extra text."
)
_EMAIL_PROMPT = (
    "You write clear, friendly emails. Turn the information below into an email the user "
    "can send: open with a greeting, rewrite the information in your own words as a short "
    "message, and finish with a closing line and sign-off. Return only the email body text, "
    "no subject line."
)


class ActionPlanBuilder:
    def __init__(self, llm: OpenAICompatibleClient, timeout_seconds: float = 30) -> None:
        self._llm = llm
        self._timeout_seconds = timeout_seconds

    async def build(
        self,
        invocations: list[ToolInvocation],
        query: str,
        answer: str,
        citations: list[Citation],
    ) -> list[ActionPlanItem]:
        jobs = []
        for invocation in invocations:
            if isinstance(invocation, NotionCreatePageInvocation):
                jobs.append(self._notion_item(invocation, answer, citations))
            elif isinstance(invocation, GmailCreateDraftInvocation):
                jobs.append(self._gmail_item(invocation, query, answer, citations))
        if not jobs:
            return []
        results = await asyncio.gather(*jobs, return_exceptions=True)
        items: list[ActionPlanItem] = []
        for result in results:
            if isinstance(result, BaseException):
                logger.warning("failed to build action plan item: %s", result)
                continue
            items.append(result)
        return items

    async def _notion_item(
        self,
        invocation: NotionCreatePageInvocation,
        answer: str,
        citations: list[Citation],
    ) -> ActionPlanItem:
        content = invocation.content_md or answer
        title = invocation.title
        if not title:
            title = await self._generate(
                _TITLE_PROMPT,
                f"Generate a title for this note:\n\n{content[:500]}",
                max_tokens=20,
                temperature=0.5,
                fallback=DEFAULT_TITLE,
                label="title generation",
            )
        return ActionPlanItem(
            id=new_action_id("notion"),
            kind="notion",
            label="Save to Notion",
            params={
                "title": clean_title(title),
                "content": content,
                "citations": [citation.model_dump() for citation in citations],
            },
        )

    async def _gmail_item(
        self,
        invocation: GmailCreateDraftInvocation,
        query: str,
        answer: str,
        citations: list[Citation],
    ) -> ActionPlanItem:
        subject_job = (
            _ready(invocation.subject)
            if invocation.subject
            else self._generate(
                _SUBJECT_PROMPT,
                f"Request: {query[:300]}\n\nEmail content:\n{answer[:800]}",
                max_tokens=30,
                temperature=0.4,
                fallback=DEFAULT_SUBJECT,
                label="subject generation",
            )
        )
        body_job = (
            _ready(invocation.body_text)
            if invocation.body_text
            else self._generate(
                _EMAIL_PROMPT,
                f"What the user asked for:\n{query[:600]}\n\nInformation to share:\n{answer[:3000]}",
                max_tokens=600,
                temperature=0.6,
                fallback=fallback_email_body(answer),
                label="email composition",
            )
        )
        subject, body_text = await asyncio.gather(subject_job, body_job)
        return ActionPlanItem(
            id=new_action_id("gmail"),
            kind="gmail",
            label="Draft Email",
            params={
                "to": list(invocation.to),
                "subject": _one_line(subject) or DEFAULT_SUBJECT,
                "body": render_email_html(body_text),
                "body_text": body_text,
                "citations": [citation.model_dump() for citation in citations],
            },
        )

    async def _generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        fallback: str,
        label: str,
    ) -> str:
        text = await bounded_call(
            lambda: self._llm.complete(
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                timeout_seconds=self._timeout_seconds,
            ),
            timeout_seconds=self._timeout_seconds,
            fallback=fallback,
            label=label,
        )
        return text.strip() or fallback


async def _ready(value: str) -> str:
    return value


def new_action_id(kind: str) -> str:
    return f"action-{kind}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def clean_title(raw: str) -> str:
    title = _one_line(raw)
    title = re.sub(r'^["\']+|["\']+$', "", title).strip()
    if len(title) > TITLE_MAX_CHARS:
        title = title[:TITLE_MAX_CHARS].rstrip()
    return title or DEFAULT_TITLE


def fallback_email_body(answer: str) -> str:
    summary = (answer or "").strip() or "I wanted to share a quick update with you."
    return f"Hi,\n\nI wanted to share the following with you:\n\n{summary}\n\nBest regards,"


def render_email_html(body_text: str) -> str:
    normalized = (body_text or "").replace("\r\n", "\n").strip()
    paragraphs = [part.strip() for part in re.split(r"\n\s*\n", normalized) if part.strip()]
    rendered = []
    for paragraph in paragraphs:
        lines = [html.escape(line.strip()) for line in paragraph.split("\n")]
        rendered.append(f"<p>{'<br>'.join(lines)}</p>")
    return "".join(rendered)


def _one_line(raw: str) -> str:
    return re.sub(r"\s+", " ", raw or "").strip()
