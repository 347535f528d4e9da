from __future__ import annotations

import re
from dataclasses import dataclass
from email.utils import getaddresses
from typing import Any, Callable, Union

from .registry import EXA_SEARCH, GMAIL_CREATE_DRAFT, NOTION_CREATE_PAGE, ToolRegistry

_EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}$", re.IGNORECASE)


@dataclass(frozen=True)
class ExaSearchInvocation:
    query: str
    num_results: int | None = None
    name: str = EXA_SEARCH


@dataclass(frozen=True)
class NotionCreatePageInvocation:
    title: str | None = None
    content_md: str | None = None
    name: str = NOTION_CREATE_PAGE


@dataclass(frozen=True)
class GmailCreateDraftInvocation:
    to: tuple[str, ...] = ()
    subject: str | None = None
    body_text: str | None = None
    name: str = GMAIL_CREATE_DRAFT


ToolInvocation = Union[ExaSearchInvocation, NotionCreatePageInvocation, GmailCreateDraftInvocation]


def _optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _parse_exa_search(args: dict[str, Any]) -> ExaSearchInvocation:
    query = _optional_text(args.get("query"))
    if query is None:
        raise ValueError("exa_search requires a non-empty query.")
    raw_count = args.get("num_results")
    num_results = max(1, min(10, raw_count)) if isinstance(raw_count, int) else None
    return ExaSearchInvocation(query=query, num_results=num_results)


def _parse_notion_create_page(args: dict[str, Any]) -> NotionCreatePageInvocation:
    return NotionCreatePageInvocation(
        title=_optional_text(args.get("title")),
        content_md=_optional_text(args.get("content_md")),
    )


def _parse_gmail_create_draft(args: dict[str, Any]) -> GmailCreateDraftInvocation:
    recipients: list[str] = []
    fields = [str(raw).replace(";", ",") for raw in args.get("to") or []]
    for _, address in getaddresses(fields):
        candidate = address.strip().lower()
        if _EMAIL_PATTERN.match(candidate) and candidate not in recipients:
            recipients.append(candidate)
    return GmailCreateDraftInvocation(
        to=tuple(recipients),
        subject=_optional_text(args.get("subject")),
        body_text=_optional_text(args.get("body_text")),
    )


_PARSERS: dict[str, Callable[[dict[str, Any]], ToolInvocation]] = {
    EXA_SEARCH: _parse_exa_search,
    NOTION_CREATE_PAGE: _parse_notion_create_page,
    GMAIL_CREATE_DRAFT: _parse_gmail_create_draft,
}


def parse_invocation(
    registry: ToolRegistry, name: str, args: dict[str, Any] | None
) -> ToolInvocation:
    """Validate raw model arguments against the registry and build the typed invocation."""
    parser = _PARSERS.get(name)
    if parser is None:
        raise ValueError(f"Tool '{name}' is not supported.")
    raw_args = dict(args or {})
    if name == GMAIL_CREATE_DRAFT and raw_args.get("to") is None:
        raw_args["to"] = []
    definition = registry.get_definition(name)
    return parser(definition.validate_args(raw_args))
