import unittest
from unittest.mock import patch

from quickhand.models import Citation
from quickhand.services.action_planner import (
    DEFAULT_SUBJECT,
    DEFAULT_TITLE,
    ActionPlanBuilder,
    clean_title,
    render_email_html,
)
from quickhand.tools.invocations import (
    ExaSearchInvocation,
    GmailCreateDraftInvocation,
    NotionCreatePageInvocation,
)

ANSWER = "Remote work improves focus [1] and removes commutes [2]."
CITATIONS = [
    Citation(id=1, title="Focus study", url="https://a.com", snippet="focus"),
    Citation(id=2, title="Commute report", url="https://b.com", snippet="commute"),
]


class _FakeLLM:
    """Answers by system-prompt prefix; a value that is an exception is raised."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def complete(self, *, messages, temperature, max_tokens, timeout_seconds=None):
        system = messages[0]["content"]
        self.calls.append(system)
        for prefix, reply in self.replies.items():
            if system.startswith(prefix):
                if isinstance(reply, Exception):
                    raise reply
                return reply
        raise AssertionError(f"unexpected prompt: {system[:40]}")


TITLE = "You generate concise"
SUBJECT = "You write short"
EMAIL = "You write clear"


class ActionPlanBuilderTests(unittest.IsolatedAsyncioTestCase):
    async def test_notion_item_gets_generated_title(self):
        llm = _FakeLLM({TITLE: '"Remote Work Benefits"'})
        builder = ActionPlanBuilder(llm, timeout_seconds=2)

        items = await builder.build([NotionCreatePageInvocation()], "Research remote work", ANSWER, CITATIONS)

        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item.kind, "notion")
        self.assertEqual(item.status, "pending")
        self.assertEqual(item.label, "Save to Notion")
        self.assertTrue(item.id.startswith("action-notion-"))
        self.assertEqual(item.params["title"], "Remote Work Benefits")
        self.assertEqual(item.params["content"], ANSWER)
        self.assertEqual([row["id"] for row in item.params["citations"]], [1, 2])

    async def test_notion_title_falls_back_when_generation_fails(self):
        builder = ActionPlanBuilder(_FakeLLM({TITLE: RuntimeError("timeout")}))
        with self.assertLogs("quickhand.services.bounded", level="WARNING"):
            items = await builder.build([NotionCreatePageInvocation()], "save it", ANSWER, [])
        self.assertEqual(items[0].params["title"], DEFAULT_TITLE)

    async def test_supplied_notion_fields_skip_generation(self):
        llm = _FakeLLM({})
        builder = ActionPlanBuilder(llm)
        items = await builder.build(
            [NotionCreatePageInvocation(title="Standup", content_md="# Notes")], "save", ANSWER, []
        )
        self.assertEqual(items[0].params["title"], "Standup")
        self.assertEqual(items[0].params["content"], "# Notes")
        self.assertEqual(llm.calls, [])

    async def test_gmail_item_generates_subject_and_body(self):
        llm = _FakeLLM(
            {
                SUBJECT: "Why remote work pays off",
                EMAIL: "Hi team,\n\nRemote work helps us focus.\nNo more commutes.\n\nBest,\nSam",
            }
        )
        builder = ActionPlanBuilder(llm)

        items = await builder.build(
            [GmailCreateDraftInvocation(to=("team@example.com",))],
            "Email the team about remote work",
            ANSWER,
            CITATIONS,
        )

        params = items[0].params
        self.assertEqual(items[0].kind, "gmail")
        self.assertEqual(items[0].label, "Draft Email")
        self.assertEqual(params["to"], ["team@example.com"])
        self.assertEqual(params["subject"], "Why remote work pays off")
        self.assertNotEqual(params["body_text"], ANSWER)
        self.assertEqual(
            params["body"],
            "<p>Hi team,</p><p>Remote work helps us focus.<br>No more commutes.</p><p>Best,<br>Sam</p>",
        )

    async def test_gmail_generation_failures_use_independent_fallbacks(self):
        llm = _FakeLLM({SUBJECT: RuntimeError("subject down"), EMAIL: "Hi,\n\nShort note.\n\nThanks"})
        builder = ActionPlanBuilder(llm)
        with self.assertLogs("quickhand.services.bounded", level="WARNING"):
            items = await builder.build([GmailCreateDraftInvocation()], "email this", ANSWER, [])
        self.assertEqual(items[0].params["subject"], DEFAULT_SUBJECT)
        self.assertEqual(items[0].params["body_text"], "Hi,\n\nShort note.\n\nThanks")
        self.assertEqual(items[0].params["to"], [])

    async def test_gmail_body_fallback_wraps_answer(self):
        llm = _FakeLLM({SUBJECT: "Update", EMAIL: RuntimeError("body down")})
        with self.assertLogs("quickhand.services.bounded", level="WARNING"):
            items = await ActionPlanBuilder(llm).build([GmailCreateDraftInvocation()], "email", ANSWER, [])
        body_text = items[0].params["body_text"]
        self.assertTrue(body_text.startswith("Hi,"))
        self.assertIn(ANSWER, body_text)
        self.assertTrue(body_text.endswith("Best regards,"))

    async def test_action_ids_are_unique_and_search_is_not_planned(self):
        builder = ActionPlanBuilder(_FakeLLM({TITLE: "Note A"}))
        items = await builder.build(
            [
                NotionCreatePageInvocation(),
                ExaSearchInvocation(query="ai"),
                NotionCreatePageInvocation(),
            ],
            "save twice",
            ANSWER,
            [],
        )
        self.assertEqual(len(items), 2)
        self.assertNotEqual(items[0].id, items[1].id)

    async def test_one_failing_item_does_not_block_others(self):
        builder = ActionPlanBuilder(_FakeLLM({SUBJECT: "Hello", EMAIL: "Hi,\n\nBody"}))
        with patch.object(ActionPlanBuilder, "_notion_item", side_effect=RuntimeError("boom")):
            with self.assertLogs("quickhand.services.action_planner", level="WARNING"):
                items = await builder.build(
                    [NotionCreatePageInvocation(), GmailCreateDraftInvocation()], "both", ANSWER, []
                )
        self.assertEqual([item.kind for item in items], ["gmail"])

    async def test_no_invocations_yields_empty_plan(self):
        self.assertEqual(await ActionPlanBuilder(_FakeLLM({})).build([], "q", ANSWER, []), [])


class ActionPlanHelperTests(unittest.TestCase):
    def test_clean_title_strips_quotes_and_truncates(self):
        self.assertEqual(clean_title("'Quarterly plan'"), "Quarterly plan")
        self.assertEqual(len(clean_title("x" * 90)), 60)
        self.assertEqual(clean_title('""'), DEFAULT_TITLE)

    def test_render_email_html_escapes_and_paragraphs(self):
        self.assertEqual(
            render_email_html("Hi <Bob>,\n\nLine one\nLine two"),
            "<p>Hi &lt;Bob&gt;,</p><p>Line one<br>Line two</p>",
        )


if __name__ == "__main__":
    unittest.main()
