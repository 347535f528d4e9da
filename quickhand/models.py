from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TurnRole = Literal["system", "user", "assistant"]
IntentName = Literal["info_lookup", "summarize", "email_draft", "action_request", "chitchat"]
ActionKind = Literal["summarize", "notion", "gmail"]
ActionStatus = Literal["pending", "running", "done", "error"]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ConversationTurn(_WireModel):
    id: str = ""
    role: TurnRole
    content: str


class PlanRequest(_WireModel):
    role: str = "general"
    history: list[ConversationTurn] = Field(default_factory=list)


class Citation(_WireModel):
    id: int = Field(ge=1)
    title: str
    url: str
    snippet: str = ""


class ActionPlanItem(_WireModel):
    id: str
    kind: ActionKind
    label: str
    params: dict[str, Any] = Field(default_factory=dict)
    status: ActionStatus = "pending"
    result: str | None = None


class NextAction(_WireModel):
    tool: str
    params: dict[str, Any] = Field(default_factory=dict)


class StructuredAnswer(_WireModel):
    answer: str
    bullets: list[str] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    followups: list[str] = Field(default_factory=list)
    next_actions: list[NextAction] = Field(default_factory=list, alias="nextActions")


class ResponseMetadata(_WireModel):
    intent: IntentName
    topic: str
    tool_calls: list[str] = Field(default_factory=list, alias="toolCalls")


class PlanResponse(_WireModel):
    id: str
    content: str
    citations: list[Citation] | None = None
    plan: list[ActionPlanItem] | None = None
    structured: StructuredAnswer | None = None
    metadata: ResponseMetadata


class NeedsInfoResponse(_WireModel):
    needs_info: Literal[True] = True
    missing: list[str]
    question: str


class ClassifyIntentRequest(_WireModel):
    query: str = Field(min_length=1)
    role: str = "general"
    history: list[ConversationTurn] | None = None


class IntentNeeds(_WireModel):
    location: bool = False
    email: bool = False


class IntentSlots(_WireModel):
    topic: str
    needs: IntentNeeds


class IntentResponse(_WireModel):
    intent: IntentName
    slots: IntentSlots


class NotionPageRequest(_WireModel):
    title: str = Field(min_length=1, max_length=2000)
    content: str = ""
    citations: list[Citation] = Field(default_factory=list)
    parent_id: str | None = Field(default=None, alias="parentId")


class NotionPageResponse(_WireModel):
    page_url: str = Field(alias="pageUrl")
    page_id: str = Field(alias="pageId")


class GmailDraftRequest(_WireModel):
    to: list[str] = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=998)
    body_html: str = Field(min_length=1, alias="bodyHtml")
    citations: list[Citation] = Field(default_factory=list)

    @field_validator("to", mode="before")
    @classmethod
    def _split_recipients(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.replace(";", ",").split(",") if part.strip()]
        return value


class GmailDraftResponse(_WireModel):
    draft_url: str = Field(alias="draftUrl")
    message_id: str = Field(alias="messageId")
    thread_id: str = Field(alias="threadId")


class IntegrationStatusResponse(_WireModel):
    provider: str
    connected: bool
    workspace_name: str | None = Field(default=None, alias="workspaceName")
