from __future__ import annotations

import base64
import html
import logging
import re
from email.message import EmailMessage
from email.utils import formatdate
from typing import Sequence

from quickhand.models import Citation, GmailDraftResponse

from .base import api_request_json

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}$", re.IGNORECASE)


class GmailDraftExecutor:
    name = "gmail"
    GMAIL_DRAFTS_URL = "https://gmail.googleapis.com/gmail/v1/users/me/drafts"

    def __init__(self, allowed_domains: set[str] | None = None, timeout_seconds: int = 8) -> None:
        self.allowed_domains = {domain.strip().lower() for domain in allowed_domains or set() if domain.strip()}
        self.timeout_seconds = timeout_seconds

    def create_draft(
        self,
        access_token: str,
        to: Sequence[str],
        subject: str,
        body_html: str,
        citations: Sequence[Citation] = (),
    ) -> GmailDraftResponse:
        recipients = _clean_recipients(to)
        for recipient in recipients:
            _enforce_allowed_recipient_domains(recipient, self.allowed_domains)
        raw = build_html_draft_raw(
            to_addrs=recipients,
            subject=subject,
            body_html=body_html + sources_html(citations),
        )
        created = api_request_json(
            url=self.GMAIL_DRAFTS_URL,
            method="POST",
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Gmail",
            body={"message": {"raw": raw}},
        )
        message = created.get("message")
        message_id = str(message.get("id") or "").strip() if isinstance(message, dict) else ""
        thread_id = str(message.get("threadId") or "").strip() if isinstance(message, dict) else ""
        if not message_id:
            raise RuntimeError("Gmail returned an unexpected draft payload.")
        logger.info("gmail draft created id=%s recipients=%d", created.get("id"), len(recipients))
        return GmailDraftResponse(
            draft_url=f"https://mail.google.com/mail/u/0/#drafts?compose={message_id}",
            message_id=message_id,
            thread_id=thread_id,
        )


def build_html_draft_raw(to_addrs: Sequence[str], subject: str, body_html: str) -> str:
    msg = EmailMessage()
    msg["To"] = ", ".join(to_addrs)
    msg["Subject"] = (subject or "").strip() or "(no subject)"
    msg["Date"] = formatdate(localtime=True)
    msg.set_content(body_html, subtype="html")
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii").rstrip("=")


def sources_html(citations: Sequence[Citation]) -> str:
    if not citations:
        return ""
    rows = "".join(
        f'<p><strong>[{citation.id}] {html.escape(citation.title)}</strong><br>'
        f'<a href="{html.escape(citation.url, quote=True)}" target="_blank">'
        f"{html.escape(citation.url)}</a></p>"
        for citation in citations
    )
    return f"<br><br><hr><h3>Sources</h3>{rows}"


def parse_allowed_domains(raw: str | None) -> set[str]:
    return {part.strip().lower() for part in (raw or "").split(",") if part.strip()}


def _clean_recipients(to: Sequence[str]) -> list[str]:
    recipients: list[str] = []
    for raw in to:
        candidate = (raw or "").strip()
        if not candidate:
            continue
        if not _EMAIL_PATTERN.match(candidate):
            raise ValueError(f"Invalid recipient address: {candidate}")
        if candidate.lower() not in {row.lower() for row in recipients}:
            recipients.append(candidate)
    if not recipients:
        raise ValueError("At least one recipient is required.")
    return recipients


def _enforce_allowed_recipient_domains(to_addr: str, allowed_domains: set[str]) -> None:
    if not allowed_domains:
        return
    domain = to_addr.split("@", 1)[1].lower() if "@" in to_addr else ""
    if domain in allowed_domains:
        return
    raise ValueError(
        "Recipient domain is not allowed by policy. "
        f"Recipient: {to_addr}. Allowed domains: {', '.join(sorted(allowed_domains))}"
    )
