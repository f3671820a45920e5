"""Utility functions for Inbox Bridge."""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timezone

from bs4 import BeautifulSoup

_BLOCK_TAGS = ("p", "div", "tr", "li", "h1", "h2", "h3", "h4", "h5", "h6")
_INLINE_WS_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def months_ago(months: int, now: datetime | None = None) -> datetime:
    """Return the same wall-clock instant `months` calendar months earlier.

    The day is clamped to the last day of the target month (e.g. 31 May minus
    three months is 28/29 Feb).
    """

    now = now or datetime.now(timezone.utc)
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def html_to_text(payload: str) -> str:
    """Reduce an HTML document to readable plain text."""

    soup = BeautifulSoup(payload, "html.parser")
    for tag in soup.find_all("head"):
        tag.decompose()
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for cell in soup.find_all(["td", "th"]):
        cell.append(" ")
    for block in soup.find_all(_BLOCK_TAGS):
        block.append("\n")

    text = _INLINE_WS_RE.sub(" ", soup.get_text())
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return "\n".join(line.strip() for line in text.split("\n")).strip()


def format_address(name: str | None, address: str | None) -> str:
    """Render `Name <address>`, falling back to whichever part is present."""

    name = (name or "").strip()
    address = (address or "").strip()
    if name and address and name != address:
        return f"{name} <{address}>"
    return address or name


def truncate(text: str, limit: int) -> str:
    """Cut `text` to `limit` characters without a truncation marker."""

    return text[:limit] if len(text) > limit else text
