"""Capability interface shared by the mailbox provider adapters."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from inbox_bridge.models import CanonicalEmail, ProviderCredential, ProviderKind, RawMessage


@runtime_checkable
class MailboxAdapter(Protocol):
    """One upstream mailbox API, tagged by the provider it serves."""

    kind: ProviderKind

    async def list_recent_messages(
        self,
        credential: ProviderCredential,
        since: datetime,
    ) -> list[RawMessage]:
        """Return provider-native messages newer than `since`, most recent first."""
        ...

    def to_canonical(self, raw: RawMessage) -> CanonicalEmail:
        """Decode one provider-native message; may raise DecodeFailure."""
        ...

    def occurred_at(self, raw: RawMessage) -> datetime | None:
        """Message time if it can be read from the payload, else None."""
        ...
