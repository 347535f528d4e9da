from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)


class AuthError(ValueError):
    pass


def extract_bearer_token(authorization: str | None) -> str | None:
    raw = (authorization or "").strip()
    if not raw.lower().startswith("bearer "):
        return None
    return raw[7:].strip() or None


class SupabaseAuthClient:
    def __init__(
        self,
        supabase_url: str | None,
        supabase_anon_key: str | None,
        timeout_seconds: int = 5,
    ) -> None:
        self._url = (supabase_url or "").strip().rstrip("/")
        self._anon_key = (supabase_anon_key or "").strip()
        self._timeout_seconds = max(1, timeout_seconds)

    def is_configured(self) -> bool:
        return bool(self._url and self._anon_key)

    def require_user_id(self, authorization: str | None) -> str:
        token = extract_bearer_token(authorization)
        if not token:
            raise AuthError("Bearer token required.")
        return self.fetch_user_id(token)

    def optional_user_id(self, authorization: str | None) -> str | None:
        """Identify the caller when possible; anonymous callers get no memory scope."""
        token = extract_bearer_token(authorization)
        if not token or not self.is_configured():
            return None
        try:
            return self.fetch_user_id(token)
        except (AuthError, RuntimeError, requests.RequestException) as exc:
            logger.warning("continuing anonymously: %s", exc)
            return None

    def fetch_user_id(self, access_token: str) -> str:
        if not self.is_configured():
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_ANON_KEY are required to validate bearer auth."
            )
        response = requests.get(
            f"{self._url}/auth/v1/user",
            headers={
                "Authorization": f"Bearer {access_token}",
                "apikey": self._anon_key,
            },
            timeout=self._timeout_seconds,
        )
        if response.status_code == 401:
            raise AuthError("Invalid or expired access token.")
        if not response.ok:
            raise RuntimeError(
                f"Auth provider unavailable: HTTP {response.status_code} {response.text.strip()[:200]}"
            )
        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError("Auth provider returned unexpected payload.")
        user_id = payload.get("id")
        if not isinstance(user_id, str) or not user_id.strip():
            raise AuthError("Access token missing user id.")
        return user_id.strip()
