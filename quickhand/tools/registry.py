from __future__ import annotations

from dataclasses import dataclass
from typing import Any

EXA_SEARCH = "exa_search"
NOTION_CREATE_PAGE = "notion_create_page"
GMAIL_CREATE_DRAFT = "gmail_create_draft"


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    schema: dict[str, object]

    def validate_args(self, args: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(args, dict):
            raise ValueError(f"Tool '{self.name}' args must be an object.")

        required = self.schema.get("required")
        required_fields = required if isinstance(required, list) else []
        for field in required_fields:
            if not isinstance(field, str):
                continue
            if field not in args:
                raise ValueError(f"Tool '{self.name}' missing required arg '{field}'.")

        properties = self.schema.get("properties")
        if not isinstance(properties, dict):
            return args

        clean: dict[str, Any] = {}
        for key, value in args.items():
            prop = properties.get(key)
            if not isinstance(prop, dict):
                continue
            if value is None and key not in required_fields:
                continue
            expected = prop.get("type")
            if expected == "string":
                if not isinstance(value, str):
                    raise ValueError(f"Tool '{self.name}' arg '{key}' must be a string.")
                clean[key] = value
            elif expected == "integer":
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValueError(f"Tool '{self.name}' arg '{key}' must be an integer.")
                clean[key] = int(value)
            elif expected == "array":
                if isinstance(value, str):
                    value = [value]
                if not isinstance(value, list):
                    raise ValueError(f"Tool '{self.name}' arg '{key}' must be an array.")
                items = prop.get("items")
                if isinstance(items, dict) and items.get("type") == "string":
                    if not all(isinstance(entry, str) for entry in value):
                        raise ValueError(
                            f"Tool '{self.name}' arg '{key}' must contain only strings."
                        )
                clean[key] = value
            else:
                clean[key] = value
        return clean

    def as_function_spec(self) -> dict[str, object]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.schema,
            },
        }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(
        self,
        *,
        name: str,
        description: str,
        schema: dict[str, object],
    ) -> None:
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")
        self._tools[name] = ToolDefinition(name=name, description=description, schema=schema)

    def get_definition(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError as exc:
            raise ValueError(f"Tool '{name}' is not registered.") from exc

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def render_for_model(self) -> list[dict[str, object]]:
        return [self._tools[name].as_function_spec() for name in self.list_tools()]


def build_default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        name=EXA_SEARCH,
        description=(
            "Search the live web for current or verifiable information. "
            "Use for facts, news, research and anything that needs sources."
        ),
        schema={
            "type": "object",
            "required": ["query"],
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Focused search query about the topic itself.",
                },
                "num_results": {
                    "type": "integer",
                    "description": "Number of results to return (1-10).",
                },
            },
        },
    )
    registry.register(
        name=NOTION_CREATE_PAGE,
        description=(
            "Prepare a Notion page with the answer or notes when the user asks "
            "to save, store or keep something in Notion."
        ),
        schema={
            "type": "object",
            "required": [],
            "properties": {
                "title": {
                    "type": "string",
                    "description": "Short page title. Omit to generate one.",
                },
                "content_md": {
                    "type": "string",
                    "description": "Page content in markdown. Omit to use the answer.",
                },
            },
        },
    )
    registry.register(
        name=GMAIL_CREATE_DRAFT,
        description=(
            "Prepare a Gmail draft when the user asks to email, draft or send "
            "a message to someone."
        ),
        schema={
            "type": "object",
            "required": ["to"],
            "properties": {
                "to": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Recipient email addresses. May be empty if unknown.",
                },
                "subject": {
                    "type": "string",
                    "description": "Subject line. Omit to generate one.",
                },
                "body_text": {
                    "type": "string",
                    "description": "Plain-text email body. Omit to generate one.",
                },
            },
        },
    )
    return registry
