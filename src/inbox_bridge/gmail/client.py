"""Gmail mailbox adapter.

Lists recent message ids for a linked Google credential, then fetches each
message's full payload individually.

Notes:
    The Google API client is synchronous. Calls are wrapped with
    `asyncio.to_thread` and bounded by `asyncio.wait_for`. Each call builds its
    own service object because the underlying httplib2 transport is not
    thread-safe.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from inbox_bridge.config import Settings
from inbox_bridge.exceptions import ProviderUnavailable
from inbox_bridge.gmail.parsing import known_occurred_at, message_to_canonical
from inbox_bridge.models import CanonicalEmail, ProviderCredential, ProviderKind, RawMessage

logger = structlog.get_logger()

ServiceFactory = Callable[[ProviderCredential], Any]


def build_gmail_service(credential: ProviderCredential, timeout: float) -> Any:
    """Build a Gmail API service authorized with the stored access token.

    Only the access token is handed to google-auth; the credential is never
    refreshed here.
    """

    # Imported lazily to keep import-time cost low and tests fast.
    import httplib2
    from google.oauth2.credentials import Credentials
    from google_auth_httplib2 import AuthorizedHttp
    from googleapiclient.discovery import build

    creds = Credentials(token=credential.access_token)
    http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
    # cache_discovery=False prevents writing discovery docs to disk.
    return build("gmail", "v1", http=http, cache_discovery=False)


class GmailAdapter:
    """Gmail implementation of the mailbox adapter contract."""

    kind = ProviderKind.GOOGLE

    def __init__(
        self,
        settings: Settings | None = None,
        service_factory: ServiceFactory | None = None,
    ) -> None:
        """Initialize the Gmail adapter.

        Args:
            settings: Application settings. If None, uses default settings.
            service_factory: Builds a Gmail service for a credential. Defaults
                to `build_gmail_service`.
        """
        from inbox_bridge.config import get_settings

        self.settings = settings or get_settings()
        self._timeout = self.settings.provider_timeout_seconds
        self._service_factory = service_factory or (
            lambda credential: build_gmail_service(credential, self._timeout)
        )

    async def list_recent_messages(
        self,
        credential: ProviderCredential,
        since: datetime,
    ) -> list[RawMessage]:
        """List and fetch messages received after `since`, most recent first.

        A failed per-message fetch is returned as a RawMessage carrying the
        error; it never aborts the batch.

        Raises:
            ProviderUnavailable: If the id listing call fails or times out.
        """

        query = f"after:{int(since.timestamp())}"
        max_results = self.settings.gmail_max_messages
        logger.info("gmail_listing_messages", max_results=max_results, query=query)

        try:
            message_ids = await asyncio.wait_for(
                asyncio.to_thread(self._list_message_ids_sync, credential, query, max_results),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("gmail_list_messages_timeout", timeout=self._timeout)
            raise ProviderUnavailable("Gmail message listing timed out") from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_list_messages_failed", error=str(exc))
            raise ProviderUnavailable(f"Gmail message listing failed: {exc}") from exc

        semaphore = asyncio.Semaphore(max(1, self.settings.gmail_fetch_concurrency))
        # gather keeps the order of the id list regardless of completion order.
        messages = await asyncio.gather(
            *(self._fetch_message(credential, message_id, semaphore) for message_id in message_ids)
        )

        failed = sum(1 for m in messages if m.failed)
        logger.info("gmail_messages_fetched", message_count=len(messages), failed=failed)
        return list(messages)

    def to_canonical(self, raw: RawMessage) -> CanonicalEmail:
        return message_to_canonical(raw.payload or {}, self.settings.body_max_chars)

    def occurred_at(self, raw: RawMessage) -> datetime | None:
        return known_occurred_at(raw.payload) if raw.payload else None

    async def _fetch_message(
        self,
        credential: ProviderCredential,
        message_id: str,
        semaphore: asyncio.Semaphore,
    ) -> RawMessage:
        async with semaphore:
            try:
                payload = await asyncio.wait_for(
                    asyncio.to_thread(self._get_message_sync, credential, message_id),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("gmail_get_message_timeout", message_id=message_id)
                return RawMessage(self.kind, message_id, None, error="timed out")
            except Exception as exc:  # noqa: BLE001
                logger.warning("gmail_get_message_failed", message_id=message_id, error=str(exc))
                return RawMessage(self.kind, message_id, None, error=str(exc))

        return RawMessage(self.kind, message_id, payload)

    def _list_message_ids_sync(
        self,
        credential: ProviderCredential,
        query: str,
        max_results: int,
    ) -> list[str]:
        service = self._service_factory(credential)
        user_id = "me"
        message_ids: list[str] = []

        page_token: str | None = None
        while len(message_ids) < max_results:
            per_page = min(500, max_results - len(message_ids))
            request = (
                service.users()
                .messages()
                .list(userId=user_id, maxResults=per_page, q=query, pageToken=page_token)
            )
            response = request.execute()
            for msg in response.get("messages", []) or []:
                msg_id = msg.get("id")
                if msg_id:
                    message_ids.append(str(msg_id))
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return message_ids[:max_results]

    def _get_message_sync(self, credential: ProviderCredential, message_id: str) -> dict[str, Any]:
        service = self._service_factory(credential)
        request = service.users().messages().get(userId="me", id=message_id, format="full")
        return request.execute()
