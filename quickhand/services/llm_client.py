from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import requests


@dataclass(frozen=True)
class OpenAICompatibleConfig:
    provider: str
    model: str
    api_key: str
    timeout_seconds: int
    api_base_url: str | None = None


@dataclass(frozen=True)
class RawToolCall:
    name: str
    arguments: dict[str, object] | None
    raw_arguments: str = ""


@dataclass(frozen=True)
class ChatCompletion:
    content: str
    tool_calls: list[RawToolCall] = field(default_factory=list)


class OpenAICompatibleClient:
    def __init__(self, cfg: OpenAICompatibleConfig) -> None:
        provider = (cfg.provider or "").strip().lower()
        if provider not in {"groq", "openai", "openai_compatible"}:
            raise ValueError("provider must be one of: groq, openai, openai_compatible")

        api_key = (cfg.api_key or "").strip()
        if not api_key:
            raise RuntimeError("LLM API key is required.")

        self._provider = provider
        self._model = (cfg.model or "").strip()
        if not self._model:
            raise RuntimeError("LLM model is required.")

        self._api_key = api_key
        self._timeout_seconds = max(1, int(cfg.timeout_seconds))
        base = (cfg.api_base_url or "").strip()
        if not base:
            if provider == "groq":
                base = "https://api.groq.com/openai/v1"
            else:
                base = "https://api.openai.com/v1"
        self._base_url = base.rstrip("/")

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        *,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
        timeout_seconds: float | None = None,
    ) -> str:
        message = self._chat(
            {
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            timeout_seconds=timeout_seconds,
        )
        content = _message_text(message)
        if content is None:
            raise RuntimeError("LLM completion missing content.")
        return content

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 600,
        temperature: float = 0.0,
        timeout_seconds: float | None = None,
    ) -> dict[str, object]:
        message = self._chat(
            {
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
                "response_format": {"type": "json_object"},
            },
            timeout_seconds=timeout_seconds,
        )
        parsed = extract_first_json_object(_message_text(message) or "")
        if parsed is None:
            raise RuntimeError("LLM completion returned invalid JSON.")
        return parsed

    def complete_with_tools(
        self,
        *,
        messages: list[dict[str, str]],
        tools: list[dict[str, object]] | None,
        temperature: float,
        max_tokens: int,
        tool_choice: object | None = None,
        timeout_seconds: float | None = None,
    ) -> ChatCompletion:
        payload: dict[str, Any] = {
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = tools
            if tool_choice is not None:
                payload["tool_choice"] = tool_choice
        message = self._chat(payload, timeout_seconds=timeout_seconds)
        return ChatCompletion(
            content=_message_text(message) or "",
            tool_calls=_parse_tool_calls(message.get("tool_calls")),
        )

    def _chat(
        self, payload: dict[str, Any], *, timeout_seconds: float | None
    ) -> dict[str, object]:
        body = {"model": self._model, **payload}
        timeout = self._timeout_seconds if timeout_seconds is None else max(1.0, timeout_seconds)
        response = requests.post(
            f"{self._base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            json=body,
            timeout=timeout,
        )
        if not response.ok:
            detail = response.text.strip()
            raise RuntimeError(
                f"LLM completion failed ({response.status_code}): {detail[:400] or 'request failed'}"
            )
        parsed = response.json()
        if not isinstance(parsed, dict):
            raise RuntimeError("LLM completion returned unexpected payload.")
        choices = parsed.get("choices")
        if not isinstance(choices, list) or not choices:
            raise RuntimeError("LLM completion returned no choices.")
        row = choices[0]
        if not isinstance(row, dict):
            raise RuntimeError("LLM completion returned malformed choice row.")
        message = row.get("message")
        if not isinstance(message, dict):
            raise RuntimeError("LLM completion missing message payload.")
        return message


def _message_text(message: dict[str, object]) -> str | None:
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        chunks: list[str] = []
        for part in content:
            if not isinstance(part, dict):
                continue
            chunk = str(part.get("text", "")).strip()
            if chunk:
                chunks.append(chunk)
        return "\n".join(chunks)
    return None


def _parse_tool_calls(raw: object) -> list[RawToolCall]:
    if not isinstance(raw, list):
        return []
    out: list[RawToolCall] = []
    for row in raw:
        if not isinstance(row, dict):
            continue
        function = row.get("function")
        if not isinstance(function, dict):
            continue
        name = str(function.get("name") or "").strip()
        if not name:
            continue
        raw_arguments = function.get("arguments")
        if isinstance(raw_arguments, dict):
            out.append(RawToolCall(name=name, arguments=raw_arguments))
            continue
        text = raw_arguments if isinstance(raw_arguments, str) else ""
        out.append(
            RawToolCall(
                name=name,
                arguments=extract_first_json_object(text) if text.strip() else {},
                raw_arguments=text,
            )
        )
    return out


def extract_first_json_object(raw_text: str) -> dict[str, object] | None:
    text = (raw_text or "").strip()
    if not text:
        return None
    if text.startswith("```"):
        lines = text.splitlines()
        if len(lines) >= 3:
            text = "\n".join(lines[1:-1]).strip()

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None

    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
