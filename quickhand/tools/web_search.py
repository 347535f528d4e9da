from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable
from urllib import parse as urlparse

import requests

from quickhand.models import Citation
from quickhand.services.bounded import bounded_call

logger = logging.getLogger(__name__)

_COMPLEX_QUERY_TERMS = (
    "compare",
    "difference",
    "versus",
    " vs ",
    "vs.",
    "analyze",
    "explain in detail",
    "comprehensive",
    "all about",
    "everything",
    "complete guide",
)
_SIMPLE_QUERY_TERMS = ("what is", "who is", "when is", "where is", "define", "meaning of")

_ACTION_PHRASES = (
    re.compile(r"\bsave\s+(?:it\s+|this\s+|that\s+)?(?:to|into|in)\s+(?:my\s+)?notion\b", re.I),
    re.compile(r"\bsave\s+(?:this|it|that)\b", re.I),
    re.compile(r"\b(?:draft|send|write)\s+(?:me\s+)?(?:an?\s+)?e-?mail\b", re.I),
    re.compile(r"\bcreate\s+(?:a\s+)?notion\s+page\b", re.I),
    re.compile(r"\b(?:and|then)\s+save\b", re.I),
)


@dataclass(frozen=True)
class SearchHit:
    title: str
    url: str
    snippet: str


class ExaSearchProvider:
    name = "exa"
    SEARCH_URL = "https://api.exa.ai/search"

    def __init__(
        self,
        api_key: str,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        cleaned = (api_key or "").strip()
        if not cleaned:
            raise RuntimeError("EXA_API_KEY is required for web search.")
        self._api_key = cleaned
        self._now = now or (lambda: datetime.now(timezone.utc))

    def search(self, query: str, max_results: int, timeout_seconds: float) -> list[SearchHit]:
        cutoff = freshness_cutoff(self._now())
        response = requests.post(
            self.SEARCH_URL,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key,
            },
            json={
                "query": query,
                "numResults": max_results,
                "type": "auto",
                "endPublishedDate": cutoff,
                "endCrawlDate": cutoff,
                "contents": {"text": {"maxCharacters": 500}},
            },
            timeout=max(1.0, timeout_seconds),
        )
        if not response.ok:
            raise RuntimeError(
                f"Exa search failed ({response.status_code}): {response.text.strip()[:300]}"
            )
        payload = response.json()
        rows = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            return []
        hits: list[SearchHit] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            hits.append(
                SearchHit(
                    title=str(row.get("title") or ""),
                    url=str(row.get("url") or ""),
                    snippet=str(row.get("text") or row.get("snippet") or ""),
                )
            )
        return hits


class WebSearchClient:
    def __init__(self, provider: ExaSearchProvider, timeout_seconds: float = 8) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds

    async def search(self, query: str, limit: int) -> list[Citation]:
        cleaned = (query or "").strip()
        if not cleaned:
            return []
        cap = max(1, min(10, int(limit)))
        hits = await bounded_call(
            lambda: self._provider.search(
                query=cleaned,
                max_results=cap,
                timeout_seconds=self._timeout_seconds,
            ),
            timeout_seconds=self._timeout_seconds,
            fallback=[],
            label=f"{self._provider.name} search",
        )
        citations = to_citations(hits, cap)
        logger.info("web search returned %d citations for %r", len(citations), cleaned[:80])
        return citations


def to_citations(hits: list[SearchHit], max_results: int) -> list[Citation]:
    """Clean and dedupe hits, then number them 1..n in provider order."""
    kept: list[SearchHit] = []
    seen_urls: set[str] = set()
    for hit in hits:
        if len(kept) >= max_results:
            break
        url = _normalize_http_url(hit.url)
        if not url:
            continue
        canonical = _canonicalize_url(url)
        if not canonical or canonical in seen_urls:
            continue
        seen_urls.add(canonical)
        title = _clean_html(hit.title) or "Untitled"
        kept.append(SearchHit(title=title, url=url, snippet=_clean_html(hit.snippet)))
    return [
        Citation(id=index, title=hit.title, url=hit.url, snippet=hit.snippet)
        for index, hit in enumerate(kept, start=1)
    ]


def freshness_cutoff(now: datetime) -> str:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    yesterday = now.astimezone(timezone.utc).date() - timedelta(days=1)
    return f"{yesterday.isoformat()}T23:59:59.999Z"


def citation_limit_for(query: str) -> int:
    lowered = f" {(query or '').strip().lower()} "
    if any(term in lowered for term in _COMPLEX_QUERY_TERMS):
        return 5
    if any(term in lowered for term in _SIMPLE_QUERY_TERMS):
        return 1
    return 3


def extract_main_topic(query: str) -> str:
    cleaned = query or ""
    for pattern in _ACTION_PHRASES:
        cleaned = pattern.sub(" ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" .,:;-")
    cleaned = re.sub(r"\s*\b(?:and|then)$", "", cleaned, flags=re.I).strip(" .,:;-")
    return cleaned or (query or "").strip()


def _clean_html(raw: str) -> str:
    no_tags = re.sub(r"<[^>]+>", " ", raw or "")
    compact = html.unescape(no_tags).replace("\n", " ").replace("\r", " ")
    return re.sub(r"\s+", " ", compact).strip()


def _normalize_http_url(raw_url: str) -> str:
    cleaned = (raw_url or "").strip()
    if not cleaned:
        return ""
    parsed = urlparse.urlparse(cleaned)
    if parsed.scheme.lower() not in {"http", "https"}:
        return ""
    if not parsed.netloc:
        return ""
    return cleaned


def _canonicalize_url(raw_url: str) -> str:
    parsed = urlparse.urlparse(raw_url)
    if not parsed.scheme or not parsed.netloc:
        return ""
    path = parsed.path or "/"
    query = f"?{parsed.query}" if parsed.query else ""
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}{query}"
