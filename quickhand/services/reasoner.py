from __future__ import annotations

import logging
from dataclasses import dataclass, field

from quickhand.services.bounded import bounded_call
from quickhand.services.llm_client import ChatCompletion, OpenAICompatibleClient
from quickhand.tools.invocations import ToolInvocation, parse_invocation
from quickhand.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_EMPTY_COMPLETION = ChatCompletion(content="", tool_calls=[])


@dataclass(frozen=True)
class ReasoningResult:
    content: str
    invocations: list[ToolInvocation] = field(default_factory=list)

    @property
    def tool_names(self) -> list[str]:
        return [invocation.name for invocation in self.invocations]


class ToolCallingReasoner:
    def __init__(
        self,
        llm: OpenAICompatibleClient,
        registry: ToolRegistry,
        *,
        timeout_seconds: float = 15,
        generation_timeout_seconds: float = 30,
        temperature: float = 0.4,
        max_tokens: int = 900,
    ) -> None:
        self._llm = llm
        self._registry = registry
        self._timeout_seconds = timeout_seconds
        self._generation_timeout_seconds = generation_timeout_seconds
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def reason(self, messages: list[dict[str, str]], allow_tools: bool) -> ReasoningResult:
        tools = self._registry.render_for_model() if allow_tools else None
        completion = await bounded_call(
            lambda: self._llm.complete_with_tools(
                messages=messages,
                tools=tools,
                tool_choice="auto" if tools else None,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout_seconds=self._timeout_seconds,
            ),
            timeout_seconds=self._timeout_seconds,
            fallback=_EMPTY_COMPLETION,
            label="reasoning",
        )
        invocations: list[ToolInvocation] = []
        for call in completion.tool_calls:
            if not allow_tools:
                break
            if call.arguments is None:
                logger.warning("dropping %s call with unparseable arguments", call.name)
                continue
            try:
                invocations.append(parse_invocation(self._registry, call.name, call.arguments))
            except ValueError as exc:
                logger.warning("dropping tool call %s: %s", call.name, exc)
        return ReasoningResult(content=completion.content.strip(), invocations=invocations)

    async def answer(self, messages: list[dict[str, str]]) -> str:
        content = await bounded_call(
            lambda: self._llm.complete(
                messages=messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout_seconds=self._generation_timeout_seconds,
            ),
            timeout_seconds=self._generation_timeout_seconds,
            fallback="",
            label="answer generation",
        )
        return content.strip()
