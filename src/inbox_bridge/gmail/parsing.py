"""Helpers for parsing Gmail API messages (format=full) into canonical emails."""

from __future__ import annotations

import base64
import binascii
import html
import re
from datetime import datetime, timezone
from email.utils import getaddresses, parsedate_to_datetime
from typing import Any

from inbox_bridge.exceptions import DecodeFailure
from inbox_bridge.models import BODY_MAX_CHARS, NO_SUBJECT, CanonicalEmail
from inbox_bridge.utils import format_address, html_to_text, truncate

_CHARSET_RE = re.compile(r"charset=\"?([\w.:-]+)\"?", re.IGNORECASE)


def _header_map(headers: list[dict[str, Any]] | None) -> dict[str, str]:
    result: dict[str, str] = {}
    for h in headers or []:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first.
            result.setdefault(name.lower(), value)
    return result


def render_address_list(value: str | None) -> str:
    """Render an address header as `Name <addr>, ...` display text."""

    if not value:
        return ""
    rendered = [format_address(name, addr) for name, addr in getaddresses([value])]
    rendered = [r for r in rendered if r]
    return ", ".join(rendered) if rendered else value.strip()


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError):
        return None


def known_occurred_at(message: dict[str, Any]) -> datetime | None:
    """Best-effort message time: `internalDate`, then the Date header."""

    internal_date_raw = message.get("internalDate")
    if internal_date_raw is not None:
        try:
            return datetime.fromtimestamp(int(internal_date_raw) / 1000.0, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            pass
    payload = message.get("payload") or {}
    return _parse_date(_header_map(payload.get("headers")).get("date"))


def _charset(part: dict[str, Any]) -> str:
    content_type = _header_map(part.get("headers")).get("content-type", "")
    match = _CHARSET_RE.search(content_type)
    return match.group(1) if match else "utf-8"


def decode_body_data(data: str, charset: str = "utf-8") -> str:
    """Decode a Gmail base64url body segment.

    Raises:
        DecodeFailure: If `data` is not valid base64url.
    """

    data = data.strip()
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeFailure(f"invalid base64url body data: {exc}") from exc

    try:
        return raw.decode(charset, errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def _find_part(parts: list[dict[str, Any]], mime_prefix: str) -> dict[str, Any] | None:
    for part in parts:
        mime = (part.get("mimeType") or "").lower()
        data = (part.get("body") or {}).get("data")
        if mime.startswith(mime_prefix) and data:
            return part
    return None


def _part_text(part: dict[str, Any]) -> str:
    mime = (part.get("mimeType") or "").lower()
    text = decode_body_data((part.get("body") or {})["data"], _charset(part))
    return html_to_text(text) if mime.startswith("text/html") else text


def _pick(parts: list[dict[str, Any]]) -> dict[str, Any] | None:
    return _find_part(parts, "text/plain") or _find_part(parts, "text/html")


def extract_body(payload: dict[str, Any]) -> str:
    """Extract a plain-text body from a Gmail message payload.

    Searches the top-level parts first, preferring text/plain over text/html.
    Nested parts are searched only when the top level has neither, and only one
    level deep. Returns "" when no text part exists.

    Raises:
        DecodeFailure: If the chosen part's data cannot be decoded.
    """

    parts = payload.get("parts") or []
    if not parts:
        data = (payload.get("body") or {}).get("data")
        return _part_text(payload) if data else ""

    chosen = _pick(parts)
    if chosen is None:
        nested = [sub for part in parts for sub in (part.get("parts") or [])]
        chosen = _pick(nested)

    return _part_text(chosen) if chosen is not None else ""


def message_to_canonical(message: dict[str, Any], body_max_chars: int = BODY_MAX_CHARS) -> CanonicalEmail:
    """Convert a Gmail API message (format=full) to CanonicalEmail.

    Raises:
        DecodeFailure: If the message has no id or its body cannot be decoded.
    """

    message_id = message.get("id")
    if not message_id:
        raise DecodeFailure("Gmail message has no id")

    payload = message.get("payload") or {}
    hm = _header_map(payload.get("headers"))

    return CanonicalEmail(
        id=str(message_id),
        thread_id=str(message.get("threadId") or message_id),
        occurred_at=known_occurred_at(message) or datetime.now(timezone.utc),
        sender=render_address_list(hm.get("from")),
        to=render_address_list(hm.get("to")),
        subject=hm.get("subject") or NO_SUBJECT,
        snippet=html.unescape(message.get("snippet") or ""),
        body=truncate(extract_body(payload), min(body_max_chars, BODY_MAX_CHARS)),
    )
