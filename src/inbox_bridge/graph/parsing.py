"""Helpers for parsing Microsoft Graph message resources into canonical emails."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from inbox_bridge.exceptions import DecodeFailure
from inbox_bridge.models import BODY_MAX_CHARS, NO_SUBJECT, CanonicalEmail
from inbox_bridge.utils import format_address, html_to_text, truncate


def render_recipient(entry: dict[str, Any] | None) -> str:
    email_address = (entry or {}).get("emailAddress") or {}
    return format_address(email_address.get("name"), email_address.get("address"))


def _parse_iso(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def known_occurred_at(message: dict[str, Any]) -> datetime | None:
    return _parse_iso(message.get("receivedDateTime"))


def _body_text(message: dict[str, Any]) -> str:
    body = message.get("body") or {}
    content = body.get("content") or ""
    if not content:
        return message.get("bodyPreview") or ""
    if (body.get("contentType") or "").lower() == "html":
        return html_to_text(content)
    return content


def message_to_canonical(message: dict[str, Any], body_max_chars: int = BODY_MAX_CHARS) -> CanonicalEmail:
    """Convert a Graph `message` resource to CanonicalEmail.

    Raises:
        DecodeFailure: If the message has no id or an unexpected shape.
    """

    message_id = message.get("id")
    if not message_id:
        raise DecodeFailure("Graph message has no id")

    recipients = message.get("toRecipients") or []
    if not isinstance(recipients, list):
        raise DecodeFailure(f"Graph message {message_id} has malformed toRecipients")

    occurred_at = known_occurred_at(message) or datetime.now(timezone.utc)

    return CanonicalEmail(
        id=str(message_id),
        thread_id=str(message.get("conversationId") or message_id),
        occurred_at=occurred_at,
        sender=render_recipient(message.get("from")),
        to=", ".join(r for r in (render_recipient(x) for x in recipients) if r),
        subject=message.get("subject") or NO_SUBJECT,
        snippet=message.get("bodyPreview") or "",
        body=truncate(_body_text(message), min(body_max_chars, BODY_MAX_CHARS)),
    )
