from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

SUPPORTED_PROVIDERS = ("notion", "gmail")


@dataclass(frozen=True)
class UserIntegration:
    user_id: str
    integration_type: str
    access_token: str | None
    token_expires_at: datetime | None
    workspace_id: str | None
    workspace_name: str | None

    def is_access_token_expired(self, grace_seconds: int = 300) -> bool:
        if self.token_expires_at is None:
            return False
        cutoff = datetime.now(timezone.utc) + timedelta(seconds=max(0, grace_seconds))
        return self.token_expires_at <= cutoff


class IntegrationsRepository:
    """Read-only lookup of provider connections stored by the OAuth callbacks."""

    def __init__(
        self,
        supabase_url: str | None,
        supabase_service_role_key: str | None,
        table: str = "user_integrations",
        timeout_seconds: int = 8,
    ) -> None:
        self.supabase_url = (supabase_url or "").rstrip("/")
        self.supabase_service_role_key = (supabase_service_role_key or "").strip()
        self.table = (table or "user_integrations").strip()
        self.timeout_seconds = max(1, int(timeout_seconds))

    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key and self.table)

    def get_integration(self, user_id: str, provider: str) -> UserIntegration | None:
        self._ensure_configured()
        response = requests.get(
            self._table_url(),
            headers=self._headers(),
            params={
                "select": "user_id,integration_type,access_token,token_expires_at,workspace_id,workspace_name",
                "user_id": f"eq.{user_id}",
                "integration_type": f"eq.{provider.strip().lower()}",
                "limit": "1",
            },
            timeout=self.timeout_seconds,
        )
        self._raise_for_error(response, "fetch integration")
        payload = response.json()
        if not isinstance(payload, list):
            raise RuntimeError("Unexpected integration response payload.")
        for row in payload:
            if isinstance(row, dict):
                return _to_integration(row)
        return None

    def resolve_access_token(self, user_id: str, provider: str) -> str:
        integration = self.get_integration(user_id=user_id, provider=provider)
        if integration is None or not integration.access_token:
            raise LookupError(f"{provider.capitalize()} is not connected.")
        if integration.is_access_token_expired():
            raise LookupError(f"{provider.capitalize()} access expired. Reconnect and try again.")
        return integration.access_token

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.supabase_service_role_key,
            "Authorization": f"Bearer {self.supabase_service_role_key}",
            "Content-Type": "application/json",
        }

    def _table_url(self) -> str:
        return f"{self.supabase_url}/rest/v1/{self.table}"

    def _ensure_configured(self) -> None:
        if self.is_configured():
            return
        raise RuntimeError(
            "Integrations repository is not configured. "
            "Set SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, and INTEGRATIONS_TABLE."
        )

    @staticmethod
    def _raise_for_error(response: requests.Response, action: str) -> None:
        if response.ok:
            return
        detail = response.text.strip()[:300]
        raise RuntimeError(
            f"Failed to {action}: HTTP {response.status_code} {detail or 'request failed'}"
        )


def _to_integration(row: dict[str, Any]) -> UserIntegration:
    return UserIntegration(
        user_id=str(row.get("user_id", "")),
        integration_type=str(row.get("integration_type", "")),
        access_token=_opt_str(row.get("access_token")),
        token_expires_at=_parse_time(row.get("token_expires_at")),
        workspace_id=_opt_str(row.get("workspace_id")),
        workspace_name=_opt_str(row.get("workspace_name")),
    )


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value != "" else None


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
