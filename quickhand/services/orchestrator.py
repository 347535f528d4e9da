from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Mapping, Sequence

from quickhand.models import (
    Citation,
    ConversationTurn,
    NeedsInfoResponse,
    PlanRequest,
    PlanResponse,
    ResponseMetadata,
)
from quickhand.roles import ROLE_PRESETS, RoleProfile, resolve_role
from quickhand.router.intent_classifier import IntentClassifier, NeedsInfo
from quickhand.services.action_planner import ActionPlanBuilder
from quickhand.services.composer import AnswerComposer
from quickhand.services.memory_client import Mem0MemoryClient
from quickhand.services.reasoner import ToolCallingReasoner
from quickhand.tools.invocations import ExaSearchInvocation, ToolInvocation
from quickhand.tools.web_search import WebSearchClient, citation_limit_for, extract_main_topic

logger = logging.getLogger(__name__)

SEARCH_INTENTS = frozenset({"info_lookup", "summarize"})
PROMPT_TURN_WINDOW = 40
FALLBACK_ANSWER = (
    "Sorry, I couldn't put together an answer right now. Please try asking again in a moment."
)


class InvalidRequestError(ValueError):
    pass


@dataclass(frozen=True)
class PromptContext:
    profile: RoleProfile
    intent: str
    topic: str
    memories: list[str]
    citations: list[Citation]


class QuickHandOrchestrator:
    def __init__(
        self,
        *,
        classifier: IntentClassifier,
        reasoner: ToolCallingReasoner,
        planner: ActionPlanBuilder,
        composer: AnswerComposer,
        web_search: WebSearchClient | None = None,
        memory: Mem0MemoryClient | None = None,
        roles: Mapping[str, RoleProfile] = ROLE_PRESETS,
    ) -> None:
        self.classifier = classifier
        self.reasoner = reasoner
        self.planner = planner
        self.composer = composer
        self.web_search = web_search
        self.memory = memory
        self.roles = roles
        self._background_tasks: set[asyncio.Task[None]] = set()

    async def plan(
        self, request: PlanRequest, user_id: str | None = None
    ) -> PlanResponse | NeedsInfoResponse:
        if not request.history:
            raise InvalidRequestError("History is required.")
        turns = [turn for turn in request.history if turn.role != "system"]
        query, prior_turns = _split_latest_user_turn(turns)
        profile = resolve_role(request.role, self.roles)

        outcome = await self.classifier.classify(query, profile.key, prior_turns)
        if isinstance(outcome, NeedsInfo):
            logger.info("needs info before planning: %s", ", ".join(outcome.missing))
            return NeedsInfoResponse(missing=list(outcome.missing), question=outcome.question)

        memory_user = user_id if self.memory is not None else None
        memories, citations = await asyncio.gather(
            self._search_memories(memory_user, profile.key, query),
            self._search_web(outcome.intent, query),
        )

        context = PromptContext(
            profile=profile,
            intent=outcome.intent,
            topic=outcome.topic or query,
            memories=memories,
            citations=citations,
        )
        messages = build_messages(context, turns)
        reasoning = await self.reasoner.reason(messages, allow_tools=outcome.intent != "chitchat")
        content = reasoning.content

        search_calls = [row for row in reasoning.invocations if isinstance(row, ExaSearchInvocation)]
        if search_calls and not citations and self.web_search is not None:
            call = search_calls[0]
            citations = await self.web_search.search(
                call.query, call.num_results or citation_limit_for(query)
            )
            if citations:
                context = PromptContext(
                    profile=profile,
                    intent=outcome.intent,
                    topic=context.topic,
                    memories=memories,
                    citations=citations,
                )
                messages = build_messages(context, turns)
                content = await self.reasoner.answer(messages) or content

        if not content:
            content = await self.reasoner.answer(messages)
        if not content:
            logger.warning("answer generation produced no content; using fallback answer")
            content = FALLBACK_ANSWER

        actionable: list[ToolInvocation] = [
            row for row in reasoning.invocations if not isinstance(row, ExaSearchInvocation)
        ]
        plan = await self.planner.build(actionable, query, content, citations)

        structured = None
        if citations or plan:
            structured = await self.composer.compose(query, content, citations)

        if memory_user:
            self._schedule_memory_append(memory_user, profile.key, query, content)

        logger.info(
            "planned turn role=%s intent=%s citations=%d actions=%d tools=%s",
            profile.key,
            outcome.intent,
            len(citations),
            len(plan),
            reasoning.tool_names,
        )
        return PlanResponse(
            id=f"msg-{int(time.time() * 1000)}",
            content=content,
            citations=citations or None,
            plan=plan or None,
            structured=structured,
            metadata=ResponseMetadata(
                intent=outcome.intent,
                topic=context.topic,
                tool_calls=reasoning.tool_names,
            ),
        )

    async def drain_background_tasks(self) -> None:
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _search_memories(self, user_id: str | None, scope: str, query: str) -> list[str]:
        if not user_id or self.memory is None:
            return []
        return await self.memory.search(user_id, scope, query)

    async def _search_web(self, intent: str, query: str) -> list[Citation]:
        if intent not in SEARCH_INTENTS or self.web_search is None:
            return []
        return await self.web_search.search(extract_main_topic(query), citation_limit_for(query))

    def _schedule_memory_append(self, user_id: str, scope: str, query: str, content: str) -> None:
        task = asyncio.create_task(
            self.memory.append(
                user_id,
                scope,
                [
                    {"role": "user", "content": query},
                    {"role": "assistant", "content": content},
                ],
            )
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[None]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("memory append failed: %s", exc)


def _split_latest_user_turn(
    turns: Sequence[ConversationTurn],
) -> tuple[str, list[ConversationTurn]]:
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].role == "user":
            query = turns[index].content.strip()
            if not query:
                raise InvalidRequestError("The latest user message is empty.")
            return query, list(turns[:index])
    raise InvalidRequestError("No user message found in history.")


def build_messages(
    context: PromptContext, turns: Sequence[ConversationTurn]
) -> list[dict[str, str]]:
    """One system turn built server-side, then the caller's turns in order."""
    sections = [context.profile.system_prompt]
    examples = context.profile.few_shot_examples
    if context.citations:
        sections.append(
            "Example of answering with sources:\n"
            f"User: {examples.search_example.user}\n"
            f"Assistant: {examples.search_example.assistant}"
        )
    if context.intent == "email_draft":
        sections.append(
            "Example of handling an email request:\n"
            f"User: {examples.email_example.user}\n"
            f"Assistant: {examples.email_example.assistant}"
        )
    if context.memories:
        remembered = "\n".join(f"- {memory}" for memory in context.memories)
        sections.append(f"What you remember about this user:\n{remembered}")
    if context.citations:
        sections.append(_search_block(context.topic, context.citations))
    messages = [{"role": "system", "content": "\n\n".join(sections)}]
    messages.extend(
        {"role": turn.role, "content": turn.content} for turn in turns[-PROMPT_TURN_WINDOW:]
    )
    return messages


def _search_block(topic: str, citations: list[Citation]) -> str:
    results = "\n\n".join(
        f"[{citation.id}] {citation.title}\n{citation.snippet}\nURL: {citation.url}"
        for citation in citations
    )
    return (
        f"WEB SEARCH RESULTS:\n{results}\n\n"
        "INSTRUCTIONS:\n"
        f'The user wants to know about: "{topic}"\n'
        "1. Use ONLY the sources above for factual claims about this topic.\n"
        "2. Include inline citations like [1], [2] that match the numbered sources.\n"
        "3. Be concise and accurate.\n"
        "4. Do not explain how to save or email; action buttons handle that."
    )
