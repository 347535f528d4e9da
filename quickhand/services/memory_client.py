from __future__ import annotations

from typing import Any

import requests

from quickhand.services.bounded import bounded_call


def scoped_owner_id(user_id: str, scope: str) -> str:
    """Memories are owned by (user, role); the role is part of the owner id."""
    return f"{user_id.strip()}::{scope.strip()}"


class Mem0MemoryClient:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 5,
        search_limit: int = 5,
    ) -> None:
        self._base_url = (base_url or "").strip().rstrip("/")
        if not self._base_url:
            raise RuntimeError("MEM0_API_BASE_URL is required.")
        self._api_key = (api_key or "").strip()
        if not self._api_key:
            raise RuntimeError("MEM0_API_KEY is required.")
        self._timeout_seconds = timeout_seconds
        self._search_limit = max(1, search_limit)

    async def search(self, user_id: str, scope: str, query: str) -> list[str]:
        if not user_id or not scope or not (query or "").strip():
            return []
        return await bounded_call(
            lambda: self.search_memories(user_id=user_id, scope=scope, query=query),
            timeout_seconds=self._timeout_seconds,
            fallback=[],
            label="memory search",
        )

    async def append(self, user_id: str, scope: str, turns: list[dict[str, str]]) -> None:
        if not user_id or not scope or not turns:
            return
        await bounded_call(
            lambda: self.add_memories(user_id=user_id, scope=scope, turns=turns),
            timeout_seconds=self._timeout_seconds,
            fallback=None,
            label="memory append",
        )

    def search_memories(self, *, user_id: str, scope: str, query: str) -> list[str]:
        response = requests.post(
            self._url("/v1/memories/search/"),
            headers=self._headers(),
            json={
                "query": query,
                "user_id": scoped_owner_id(user_id, scope),
                "limit": self._search_limit,
            },
            timeout=self._timeout_seconds,
        )
        if not response.ok:
            raise RuntimeError(
                f"Memory search failed ({response.status_code}): {self._error_message(response)}"
            )
        return _memory_texts(response.json(), scope=scope)[: self._search_limit]

    def add_memories(self, *, user_id: str, scope: str, turns: list[dict[str, str]]) -> None:
        messages = [
            {"role": turn["role"], "content": turn["content"]}
            for turn in turns
            if turn.get("role") in {"user", "assistant"} and (turn.get("content") or "").strip()
        ]
        if not messages:
            return
        response = requests.post(
            self._url("/v1/memories/"),
            headers=self._headers(),
            json={
                "messages": messages,
                "user_id": scoped_owner_id(user_id, scope),
                "metadata": {"role": scope},
            },
            timeout=self._timeout_seconds,
        )
        if not response.ok:
            raise RuntimeError(
                f"Memory append failed ({response.status_code}): {self._error_message(response)}"
            )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Token {self._api_key}",
        }

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        text = response.text.strip()
        if not text:
            return "request failed"
        return text[:500]


def _memory_texts(payload: Any, *, scope: str) -> list[str]:
    rows = payload.get("results") if isinstance(payload, dict) else payload
    if not isinstance(rows, list):
        return []
    out: list[str] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        metadata = row.get("metadata")
        if isinstance(metadata, dict):
            recorded_role = metadata.get("role")
            if isinstance(recorded_role, str) and recorded_role != scope:
                continue
        text = row.get("memory")
        if isinstance(text, str) and text.strip() and text.strip() not in out:
            out.append(text.strip())
    return out
