from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from quickhand.models import Citation, NotionPageResponse

from .base import api_request_json

logger = logging.getLogger(__name__)

NOTION_VERSION = "2022-06-28"
MAX_BLOCKS_PER_REQUEST = 100
MAX_RICH_TEXT_CHARS = 2000

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_HEADINGS = (("### ", "heading_3"), ("## ", "heading_2"), ("# ", "heading_1"))
_BULLET = re.compile(r"^\s*[-*]\s+")


class NotionPageExecutor:
    name = "notion"
    NOTION_API_URL = "https://api.notion.com/v1"

    def __init__(self, timeout_seconds: int = 10) -> None:
        self.timeout_seconds = timeout_seconds

    def create_page(
        self,
        access_token: str,
        title: str,
        content: str,
        citations: Sequence[Citation] = (),
        parent_id: str | None = None,
    ) -> NotionPageResponse:
        cleaned_title = (title or "").strip()
        if not cleaned_title:
            raise ValueError("Title is required.")
        parent = (parent_id or "").strip() or self.find_default_parent(access_token)
        if not parent:
            raise RuntimeError("No Notion page is shared with QuickHand. Share a page and try again.")

        blocks = markdown_to_blocks(with_sources(content, citations))
        if len(blocks) > MAX_BLOCKS_PER_REQUEST:
            logger.info("notion page truncated to %d of %d blocks", MAX_BLOCKS_PER_REQUEST, len(blocks))
        page = self._post(
            access_token,
            "/pages",
            {
                "parent": {"page_id": parent},
                "properties": {"title": {"title": _plain_text(cleaned_title)}},
                "children": blocks[:MAX_BLOCKS_PER_REQUEST],
            },
        )
        page_id = str(page.get("id") or "").strip()
        if not page_id:
            raise RuntimeError("Notion returned an unexpected page payload.")
        page_url = str(page.get("url") or "").strip()
        logger.info("notion page created id=%s blocks=%d", page_id, min(len(blocks), MAX_BLOCKS_PER_REQUEST))
        return NotionPageResponse(page_url=page_url, page_id=page_id)

    def find_default_parent(self, access_token: str) -> str | None:
        found = self._post(
            access_token,
            "/search",
            {"filter": {"property": "object", "value": "page"}, "page_size": 1},
        )
        results = found.get("results")
        if isinstance(results, list) and results and isinstance(results[0], dict):
            return str(results[0].get("id") or "").strip() or None
        return None

    def _post(self, access_token: str, path: str, body: dict[str, object]) -> dict[str, Any]:
        return api_request_json(
            url=f"{self.NOTION_API_URL}{path}",
            method="POST",
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Notion",
            body=body,
            extra_headers={"Notion-Version": NOTION_VERSION},
        )


def with_sources(content: str, citations: Sequence[Citation]) -> str:
    full = (content or "").strip()
    if not citations:
        return full
    lines = [f"**[{citation.id}] {citation.title}**\n{citation.url}" for citation in citations]
    return f"{full}\n\n## Sources\n\n" + "\n\n".join(lines)


def markdown_to_blocks(content: str) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for paragraph in re.split(r"\n\s*\n", content or ""):
        text = paragraph.strip()
        if not text:
            continue
        lines = text.split("\n")
        heading = next((kind for prefix, kind in _HEADINGS if lines[0].startswith(prefix)), None)
        if heading is not None:
            prefix_len = int(heading[-1]) + 1
            blocks.append(_block(heading, lines[0][prefix_len:].strip()))
            lines = [line for line in lines[1:] if line.strip()]
            if not lines:
                continue
            text = "\n".join(lines)
        if all(_BULLET.match(line) for line in lines):
            blocks.extend(_block("bulleted_list_item", _BULLET.sub("", line)) for line in lines)
            continue
        blocks.append(_block("paragraph", text))
    return blocks


def rich_text(text: str) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = []
    last = 0
    for match in _BOLD.finditer(text):
        if match.start() > last:
            parts.extend(_plain_text(text[last : match.start()]))
        for chunk in _plain_text(match.group(1)):
            chunk["annotations"] = {"bold": True}
            parts.append(chunk)
        last = match.end()
    if last < len(text):
        parts.extend(_plain_text(text[last:]))
    return parts or _plain_text(text)


def _block(kind: str, text: str) -> dict[str, Any]:
    return {"object": "block", "type": kind, kind: {"rich_text": rich_text(text)}}


def _plain_text(text: str) -> list[dict[str, Any]]:
    chunks = [text[i : i + MAX_RICH_TEXT_CHARS] for i in range(0, len(text), MAX_RICH_TEXT_CHARS)]
    return [{"type": "text", "text": {"content": chunk}} for chunk in chunks or [""]]
