from __future__ import annotations

from typing import Any

import requests


class ProviderAuthError(RuntimeError):
    pass


def api_request_json(
    url: str,
    method: str,
    access_token: str,
    timeout: int,
    service_name: str,
    body: dict[str, object] | None = None,
    extra_headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {access_token}",
    }
    if extra_headers:
        headers.update(extra_headers)
    try:
        response = requests.request(method, url, headers=headers, json=body, timeout=timeout)
    except requests.RequestException as exc:
        raise RuntimeError(f"{service_name} API failed: {exc}") from exc

    if response.status_code in {401, 403}:
        raise ProviderAuthError(
            f"{service_name} authorization failed. Please reconnect {service_name}."
        )
    if response.status_code == 404:
        raise RuntimeError(f"{service_name} could not find the requested resource.")
    if not response.ok:
        detail = _error_detail(response)
        raise RuntimeError(f"{service_name} API failed ({response.status_code}){detail}.")

    try:
        payload = response.json()
    except ValueError as exc:
        raise RuntimeError(f"{service_name} returned an unreadable response.") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"{service_name} returned an unexpected payload.")
    return payload


def _error_detail(response: requests.Response) -> str:
    try:
        parsed = response.json()
    except ValueError:
        return ""
    if not isinstance(parsed, dict):
        return ""
    nested = parsed.get("error")
    if isinstance(nested, dict):
        message = str(nested.get("message") or "").strip()
    else:
        message = str(parsed.get("message") or "").strip()
    return f": {message}" if message else ""
