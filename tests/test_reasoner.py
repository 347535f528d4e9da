import unittest

from quickhand.services.llm_client import ChatCompletion, RawToolCall
from quickhand.services.reasoner import ReasoningResult, ToolCallingReasoner
from quickhand.tools.invocations import GmailCreateDraftInvocation, NotionCreatePageInvocation
from quickhand.tools.registry import build_default_registry


class _FakeLLM:
    def __init__(self, completion=None, answer="", error=None):
        self.completion = completion or ChatCompletion(content="")
        self.answer_text = answer
        self.error = error
        self.tool_calls = []
        self.plain_calls = []

    def complete_with_tools(self, **kwargs):
        self.tool_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.completion

    def complete(self, **kwargs):
        self.plain_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.answer_text


MESSAGES = [
    {"role": "system", "content": "You are QuickHand."},
    {"role": "user", "content": "Save this meeting summary to Notion: ship Friday."},
]


class ToolCallingReasonerTests(unittest.IsolatedAsyncioTestCase):
    async def test_valid_tool_calls_become_invocations_and_invalid_ones_are_dropped(self):
        llm = _FakeLLM(
            completion=ChatCompletion(
                content="Saved summary ready.",
                tool_calls=[
                    RawToolCall(name="notion_create_page", arguments={}),
                    RawToolCall(name="calendar_create_event", arguments={}),
                    RawToolCall(name="gmail_create_draft", arguments={"to": 5}),
                    RawToolCall(name="exa_search", arguments=None, raw_arguments="{broken"),
                ],
            )
        )
        reasoner = ToolCallingReasoner(llm, build_default_registry(), timeout_seconds=2)

        with self.assertLogs("quickhand.services.reasoner", level="WARNING"):
            result = await reasoner.reason(MESSAGES, allow_tools=True)

        self.assertEqual(result.content, "Saved summary ready.")
        self.assertEqual(result.invocations, [NotionCreatePageInvocation()])
        self.assertEqual(result.tool_names, ["notion_create_page"])
        self.assertEqual(len(llm.tool_calls[0]["tools"]), 3)

    async def test_gmail_calls_keep_unknown_and_display_name_recipients(self):
        llm = _FakeLLM(
            completion=ChatCompletion(
                content="Drafts ready.",
                tool_calls=[
                    RawToolCall(name="gmail_create_draft", arguments={"to": None, "subject": "Hi"}),
                    RawToolCall(
                        name="gmail_create_draft",
                        arguments={"to": ["Alice <Alice@Example.com>", "bob@example.com; alice@example.com"]},
                    ),
                ],
            )
        )
        reasoner = ToolCallingReasoner(llm, build_default_registry(), timeout_seconds=2)

        result = await reasoner.reason(MESSAGES, allow_tools=True)

        self.assertEqual(
            result.invocations,
            [
                GmailCreateDraftInvocation(to=(), subject="Hi"),
                GmailCreateDraftInvocation(to=("alice@example.com", "bob@example.com")),
            ],
        )
        self.assertEqual(result.tool_names, ["gmail_create_draft", "gmail_create_draft"])

    async def test_tools_are_not_offered_when_disallowed(self):
        llm = _FakeLLM(
            completion=ChatCompletion(
                content="Doing great, thanks!",
                tool_calls=[RawToolCall(name="notion_create_page", arguments={})],
            )
        )
        reasoner = ToolCallingReasoner(llm, build_default_registry())

        result = await reasoner.reason(MESSAGES, allow_tools=False)

        self.assertIsNone(llm.tool_calls[0]["tools"])
        self.assertIsNone(llm.tool_calls[0]["tool_choice"])
        self.assertEqual(result.invocations, [])

    async def test_upstream_failure_returns_empty_result(self):
        reasoner = ToolCallingReasoner(_FakeLLM(error=RuntimeError("HTTP 502")), build_default_registry())
        with self.assertLogs("quickhand.services.bounded", level="WARNING"):
            result = await reasoner.reason(MESSAGES, allow_tools=True)
        self.assertEqual(result, ReasoningResult(content="", invocations=[]))

    async def test_answer_uses_plain_completion_with_fallback(self):
        llm = _FakeLLM(answer="  Here you go [1].  ")
        reasoner = ToolCallingReasoner(llm, build_default_registry(), generation_timeout_seconds=3)
        self.assertEqual(await reasoner.answer(MESSAGES), "Here you go [1].")
        self.assertEqual(llm.plain_calls[0]["timeout_seconds"], 3)

        failing = ToolCallingReasoner(_FakeLLM(error=RuntimeError("down")), build_default_registry())
        with self.assertLogs("quickhand.services.bounded", level="WARNING"):
            self.assertEqual(await failing.answer(MESSAGES), "")


if __name__ == "__main__":
    unittest.main()
