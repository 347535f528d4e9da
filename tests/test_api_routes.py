import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from quickhand import main
from quickhand.models import (
    GmailDraftResponse,
    NeedsInfoResponse,
    NotionPageResponse,
    PlanResponse,
    ResponseMetadata,
)
from quickhand.router.intent_classifier import IntentResult, NeedsInfo
from quickhand.services.integrations_repo import UserIntegration
from quickhand.services.orchestrator import InvalidRequestError
from quickhand.services.supabase_auth import AuthError
from quickhand.tools.base import ProviderAuthError

PLAN_BODY = {
    "role": "general",
    "history": [
        {"id": "sys", "role": "system", "content": "You are helpful."},
        {"id": "u1", "role": "user", "content": "How are you?"},
    ],
}


class _FakeOrchestrator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def plan(self, request, user_id=None):
        self.calls.append((request, user_id))
        if self.error is not None:
            raise self.error
        return self.result


class _FakeClassifier:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    async def classify(self, query, role, history=()):
        self.calls.append((query, role))
        return self.outcome


def _auth(user_id="user-1", error=None):
    auth = MagicMock()
    auth.optional_user_id.return_value = user_id
    if error is not None:
        auth.require_user_id.side_effect = error
    else:
        auth.require_user_id.return_value = user_id
    return auth


def _integrations(token="provider-token", lookup_error=None, integration=None):
    repo = MagicMock()
    repo.is_configured.return_value = True
    if lookup_error is not None:
        repo.resolve_access_token.side_effect = lookup_error
    else:
        repo.resolve_access_token.return_value = token
    repo.get_integration.return_value = integration
    return repo


class ApiRouteTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(main.app)

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_plan_without_llm_key_is_503(self):
        with patch.object(main, "orchestrator", None):
            response = self.client.post("/v1/plan", json=PLAN_BODY)
        self.assertEqual(response.status_code, 503)

    def test_plan_omits_absent_fields_and_uses_camel_case(self):
        fake = _FakeOrchestrator(
            result=PlanResponse(
                id="msg-1",
                content="Doing well!",
                metadata=ResponseMetadata(intent="chitchat", topic="", tool_calls=[]),
            )
        )
        with patch.object(main, "orchestrator", fake), patch.object(main, "auth", _auth()):
            response = self.client.post("/v1/plan", json=PLAN_BODY)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["content"], "Doing well!")
        self.assertNotIn("plan", body)
        self.assertNotIn("citations", body)
        self.assertEqual(body["metadata"]["toolCalls"], [])
        self.assertEqual(fake.calls[0][1], "user-1")

    def test_plan_accepts_long_conversations_and_long_pastes(self):
        fake = _FakeOrchestrator(
            result=PlanResponse(
                id="msg-2",
                content="Saved.",
                metadata=ResponseMetadata(intent="action_request", topic="notes", tool_calls=[]),
            )
        )
        long_history = [
            {"id": f"t{index}", "role": "user" if index % 2 == 0 else "assistant", "content": f"turn {index}"}
            for index in range(201)
        ]
        paste = "Save this meeting summary to Notion: " + "x" * 20000
        with patch.object(main, "orchestrator", fake), patch.object(main, "auth", _auth()):
            long_response = self.client.post("/v1/plan", json={"role": "general", "history": long_history})
            paste_response = self.client.post(
                "/v1/plan",
                json={"role": "general", "history": [{"id": "u1", "role": "user", "content": paste}]},
            )

        self.assertEqual(long_response.status_code, 200)
        self.assertEqual(paste_response.status_code, 200)
        self.assertEqual(len(fake.calls[0][0].history), 201)
        self.assertEqual(fake.calls[1][0].history[0].content, paste)

    def test_plan_returns_needs_info_envelope(self):
        fake = _FakeOrchestrator(
            result=NeedsInfoResponse(missing=["email"], question="Who should receive the email?")
        )
        with patch.object(main, "orchestrator", fake), patch.object(main, "auth", _auth(None)):
            response = self.client.post("/v1/plan", json=PLAN_BODY)
        self.assertEqual(
            response.json(),
            {"needs_info": True, "missing": ["email"], "question": "Who should receive the email?"},
        )

    def test_plan_invalid_request_is_400(self):
        fake = _FakeOrchestrator(error=InvalidRequestError("No user message found in history."))
        with patch.object(main, "orchestrator", fake), patch.object(main, "auth", _auth()):
            response = self.client.post("/v1/plan", json=PLAN_BODY)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "No user message found in history.")

    def test_plan_unexpected_error_is_human_readable_500(self):
        fake = _FakeOrchestrator(error=KeyError("choices"))
        with patch.object(main, "orchestrator", fake), patch.object(main, "auth", _auth()):
            with self.assertLogs("quickhand.main", level="ERROR"):
                response = self.client.post("/v1/plan", json=PLAN_BODY)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], main.UNREACHABLE_MESSAGE)

    def test_classify_intent_route(self):
        fake = _FakeClassifier(IntentResult(intent="summarize", topic="q3 report"))
        with patch.object(main, "intent_classifier", fake):
            response = self.client.post(
                "/v1/classify-intent", json={"query": "Summarize the Q3 report", "role": "nobody"}
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"intent": "summarize", "slots": {"topic": "q3 report", "needs": {"location": False, "email": False}}},
        )
        self.assertEqual(fake.calls[0][1], "general")

    def test_classify_intent_needs_info(self):
        fake = _FakeClassifier(NeedsInfo(missing=("location",), question="What location are you interested in?"))
        with patch.object(main, "intent_classifier", fake):
            response = self.client.post("/v1/classify-intent", json={"query": "events near me"})
        self.assertEqual(response.json()["missing"], ["location"])

    def test_notion_action_route(self):
        executor = MagicMock()
        executor.create_page.return_value = NotionPageResponse(page_url="https://notion.so/p", page_id="p")
        with patch.object(main, "auth", _auth()), patch.object(
            main, "integrations", _integrations()
        ), patch.object(main, "notion_executor", executor):
            response = self.client.post(
                "/v1/actions/notion",
                json={"title": "Notes", "content": "Body", "parentId": "parent-1"},
                headers={"Authorization": "Bearer jwt"},
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"pageUrl": "https://notion.so/p", "pageId": "p"})
        kwargs = executor.create_page.call_args.kwargs
        self.assertEqual(kwargs["access_token"], "provider-token")
        self.assertEqual(kwargs["parent_id"], "parent-1")

    def test_notion_not_connected_is_403(self):
        with patch.object(main, "auth", _auth()), patch.object(
            main, "integrations", _integrations(lookup_error=LookupError("Notion is not connected."))
        ):
            response = self.client.post("/v1/actions/notion", json={"title": "Notes", "content": "Body"})
        self.assertEqual(response.status_code, 403)

    def test_missing_bearer_is_401(self):
        with patch.object(main, "auth", _auth(error=AuthError("Bearer token required."))):
            response = self.client.post("/v1/actions/notion", json={"title": "Notes", "content": "Body"})
        self.assertEqual(response.status_code, 401)

    def test_gmail_action_route_maps_provider_errors(self):
        executor = MagicMock()
        executor.create_draft.return_value = GmailDraftResponse(
            draft_url="https://mail.google.com/mail/u/0/#drafts?compose=m1",
            message_id="m1",
            thread_id="t1",
        )
        body = {"to": "a@example.com; b@example.com", "subject": "Hi", "bodyHtml": "<p>Hi</p>"}
        with patch.object(main, "auth", _auth()), patch.object(
            main, "integrations", _integrations()
        ), patch.object(main, "gmail_executor", executor):
            ok = self.client.post("/v1/actions/gmail", json=body)
            executor.create_draft.side_effect = ProviderAuthError("Gmail authorization failed.")
            unauthorized = self.client.post("/v1/actions/gmail", json=body)
            executor.create_draft.side_effect = RuntimeError("Gmail API failed (500).")
            upstream = self.client.post("/v1/actions/gmail", json=body)

        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["messageId"], "m1")
        self.assertEqual(executor.create_draft.call_args.kwargs["to"], ["a@example.com", "b@example.com"])
        self.assertEqual(unauthorized.status_code, 401)
        self.assertEqual(upstream.status_code, 502)

    def test_integration_status(self):
        integration = UserIntegration(
            user_id="user-1",
            integration_type="notion",
            access_token="tok",
            token_expires_at=None,
            workspace_id="ws-1",
            workspace_name="Acme HQ",
        )
        with patch.object(main, "auth", _auth()), patch.object(
            main, "integrations", _integrations(integration=integration)
        ):
            connected = self.client.get("/v1/integrations/notion/status")
            unknown = self.client.get("/v1/integrations/slack/status")

        self.assertEqual(connected.json(), {"provider": "notion", "connected": True, "workspaceName": "Acme HQ"})
        self.assertEqual(unknown.status_code, 404)

    def test_integration_status_when_not_connected(self):
        with patch.object(main, "auth", _auth()), patch.object(main, "integrations", _integrations()):
            response = self.client.get("/v1/integrations/gmail/status")
        self.assertEqual(response.json(), {"provider": "gmail", "connected": False})


if __name__ == "__main__":
    unittest.main()
