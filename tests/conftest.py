"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
import time
from typing import Any

import pytest


def b64url(text: str) -> str:
    """Encode text the way Gmail encodes body data."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


class FakeRequest:
    def __init__(self, result: Any, delay: float = 0.0) -> None:
        self._result = result
        self._delay = delay

    def execute(self, **kwargs: Any) -> Any:
        if self._delay:
            time.sleep(self._delay)
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class FakeMessages:
    def __init__(self, service: FakeGmailService) -> None:
        self._service = service

    def list(self, **kwargs: Any) -> FakeRequest:
        self._service.list_calls.append(kwargs)
        pages = self._service.pages
        index = len(self._service.list_calls) - 1
        return FakeRequest(pages[index] if index < len(pages) else {}, self._service.list_delay)

    def get(self, *, userId: str, id: str, format: str) -> FakeRequest:
        self._service.get_calls.append(id)
        return FakeRequest(self._service.messages[id], self._service.delays.get(id, 0.0))


class FakeUsers:
    def __init__(self, service: FakeGmailService) -> None:
        self._service = service

    def messages(self) -> FakeMessages:
        return FakeMessages(self._service)


class FakeGmailService:
    """Minimal stand-in for the googleapiclient Gmail service object.

    `pages` are returned by successive list() calls; `messages` maps id to the
    full message dict or to an exception raised on execute(). `delays` (per
    message id) and `list_delay` make execute() block, in seconds.
    """

    def __init__(
        self,
        pages: list[dict[str, Any]],
        messages: dict[str, Any],
        delays: dict[str, float] | None = None,
        list_delay: float = 0.0,
    ) -> None:
        self.pages = pages
        self.messages = messages
        self.delays = delays or {}
        self.list_delay = list_delay
        self.list_calls: list[dict[str, Any]] = []
        self.get_calls: list[str] = []

    def users(self) -> FakeUsers:
        return FakeUsers(self)


@pytest.fixture
def mock_settings(tmp_path):
    """Provide settings bound to a throwaway SQLite store."""
    from inbox_bridge.config import Settings

    return Settings(
        database_url=f"sqlite:///{tmp_path / 'identities.sqlite3'}",
        jwt_secret="test-bearer-secret-0123456789abcdef",
        session_secret="test-session-secret-0123456789abcdef",
        provider_timeout_seconds=2.0,
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def repository(mock_settings):
    """Provide an initialized identity repository."""
    from inbox_bridge.store import IdentityRepository

    repo = IdentityRepository(mock_settings.database_url)
    repo.initialize()
    return repo


@pytest.fixture
def google_identity(repository):
    """An identity created by a Google login for a@x.com."""
    from inbox_bridge.models import ProviderKind

    return repository.upsert_from_provider_login(
        ProviderKind.GOOGLE,
        "google-123",
        "a@x.com",
        "Alice Example",
        "google-access-1",
        "google-refresh-1",
    )


@pytest.fixture
def sample_email_data() -> dict:
    """Provide a Gmail message as returned by users.messages.get(format=full)."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Welcome to this week&#39;s Python tips!",
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                {"name": "From", "value": "Python Weekly <newsletter@python.org>"},
                {"name": "To", "value": "user@example.com"},
            ],
            "parts": [
                {
                    "mimeType": "text/html",
                    "body": {"data": b64url("<p>Welcome to this <b>week</b></p>")},
                },
                {
                    "mimeType": "text/plain",
                    "body": {"data": b64url("Welcome to this week's Python tips!")},
                },
            ],
        },
    }


class FakeAdapter:
    """Mailbox adapter returning canned raw messages.

    `to_canonical` delegates to the real provider parser unless a message id is
    listed in `broken`, in which case it raises like a malformed payload would.
    """

    def __init__(self, kind, raws=None, error: Exception | None = None, broken=()) -> None:
        self.kind = kind
        self.raws = list(raws or [])
        self.error = error
        self.broken = set(broken)
        self.calls: list[tuple[Any, Any]] = []

    async def list_recent_messages(self, credential, since):
        self.calls.append((credential, since))
        if self.error is not None:
            raise self.error
        return list(self.raws)

    def to_canonical(self, raw):
        from inbox_bridge.exceptions import DecodeFailure
        from inbox_bridge.gmail import message_to_canonical as gmail_to_canonical
        from inbox_bridge.graph import message_to_canonical as graph_to_canonical
        from inbox_bridge.models import ProviderKind

        if raw.message_id in self.broken:
            raise DecodeFailure(f"cannot decode {raw.message_id}")
        if self.kind is ProviderKind.GOOGLE:
            return gmail_to_canonical(raw.payload)
        return graph_to_canonical(raw.payload)

    def occurred_at(self, raw):
        return None


def gmail_raw(message_id: str, text: str = "hello"):
    """A successfully fetched Gmail RawMessage."""
    from inbox_bridge.models import ProviderKind, RawMessage

    payload = {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "internalDate": "1735776000000",
        "snippet": text,
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "Subject", "value": f"Subject {message_id}"},
                {"name": "From", "value": "Sender <s@x.com>"},
            ],
            "body": {"data": b64url(text)},
        },
    }
    return RawMessage(ProviderKind.GOOGLE, message_id, payload)


def graph_raw(message_id: str):
    """A Graph RawMessage as listed by /me/messages."""
    from inbox_bridge.models import ProviderKind, RawMessage

    payload = {
        "id": message_id,
        "conversationId": f"c-{message_id}",
        "subject": f"Outlook {message_id}",
        "bodyPreview": "preview",
        "receivedDateTime": "2025-01-02T10:00:00Z",
        "from": {"emailAddress": {"name": "Dan", "address": "dan@x.com"}},
        "toRecipients": [{"emailAddress": {"address": "a@x.com"}}],
        "body": {"contentType": "text", "content": "plain body"},
    }
    return RawMessage(ProviderKind.MICROSOFT, message_id, payload)
