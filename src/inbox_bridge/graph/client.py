"""Microsoft Graph (Outlook) mailbox adapter.

Server-side filtering and field projection return sender, recipients and body
inline, so one paginated call is enough; there is no per-message fetch. Any
failure of that call fails the whole batch.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from inbox_bridge.config import Settings
from inbox_bridge.exceptions import ProviderUnavailable
from inbox_bridge.graph.parsing import known_occurred_at, message_to_canonical
from inbox_bridge.models import CanonicalEmail, ProviderCredential, ProviderKind, RawMessage

logger = structlog.get_logger()

MESSAGE_FIELDS: tuple[str, ...] = (
    "id",
    "conversationId",
    "subject",
    "bodyPreview",
    "receivedDateTime",
    "from",
    "toRecipients",
    "body",
)


def _graph_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or "Unknown error"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Unknown error"


class GraphAdapter:
    """Microsoft Graph implementation of the mailbox adapter contract."""

    kind = ProviderKind.MICROSOFT

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Graph adapter.

        Args:
            settings: Application settings. If None, uses default settings.
            transport: Optional httpx transport (used by tests).
        """
        from inbox_bridge.config import get_settings

        self.settings = settings or get_settings()
        self._transport = transport

    async def list_recent_messages(
        self,
        credential: ProviderCredential,
        since: datetime,
    ) -> list[RawMessage]:
        """List messages received at or after `since`, most recent first.

        Raises:
            ProviderUnavailable: If the Graph call fails, times out or returns
                a non-success status.
        """

        cap = self.settings.graph_max_messages
        since_iso = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        url: str | None = f"{self.settings.graph_base_url.rstrip('/')}/me/messages"
        params: dict[str, Any] | None = {
            "$filter": f"receivedDateTime ge {since_iso}",
            "$top": str(cap),
            "$select": ",".join(MESSAGE_FIELDS),
            "$orderby": "receivedDateTime desc",
        }
        headers = {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
        }

        logger.info("graph_listing_messages", max_results=cap, since=since_iso)

        messages: list[RawMessage] = []
        async with httpx.AsyncClient(
            timeout=self.settings.provider_timeout_seconds,
            transport=self._transport,
        ) as client:
            while url and len(messages) < cap:
                data = await self._get_page(client, url, params, headers)
                for message in data.get("value") or []:
                    if isinstance(message, dict):
                        messages.append(RawMessage(self.kind, message.get("id"), message))
                    else:
                        logger.warning("graph_malformed_message", entry_type=type(message).__name__)
                        messages.append(RawMessage(self.kind, None, None, error="malformed Graph message"))
                # nextLink already carries the query string.
                url = data.get("@odata.nextLink")
                params = None

        logger.info("graph_messages_fetched", message_count=min(len(messages), cap))
        return messages[:cap]

    def to_canonical(self, raw: RawMessage) -> CanonicalEmail:
        return message_to_canonical(raw.payload or {}, self.settings.body_max_chars)

    def occurred_at(self, raw: RawMessage) -> datetime | None:
        return known_occurred_at(raw.payload) if raw.payload else None

    async def _get_page(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            logger.error("graph_list_messages_timeout", error=str(exc))
            raise ProviderUnavailable("Microsoft Graph request timed out") from exc
        except httpx.HTTPError as exc:
            logger.exception("graph_list_messages_failed", error=str(exc))
            raise ProviderUnavailable(f"Microsoft Graph request failed: {exc}") from exc

        if not response.is_success:
            message = _graph_error_message(response)
            logger.error(
                "graph_api_error",
                status_code=response.status_code,
                error=message,
            )
            raise ProviderUnavailable(f"Microsoft API error: {message}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("Microsoft Graph returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise ProviderUnavailable("Microsoft Graph returned an unexpected payload")
        return data
