"""Normalized mailbox access for the query-assembly layer."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

import structlog

from inbox_bridge.config import Settings
from inbox_bridge.exceptions import ConfigurationError, ProviderCredentialMissing, Unauthenticated
from inbox_bridge.models import CanonicalEmail, Identity, ProviderKind
from inbox_bridge.pipeline.base import MailboxAdapter
from inbox_bridge.pipeline.normalize import NormalizationPipeline
from inbox_bridge.utils import months_ago

logger = structlog.get_logger()

# Order in which provider batches are concatenated.
PROVIDER_ORDER: tuple[ProviderKind, ...] = (ProviderKind.GOOGLE, ProviderKind.MICROSOFT)


class MailboxService:
    """Fetch and normalize recent mail for an authenticated identity."""

    def __init__(
        self,
        adapters: Iterable[MailboxAdapter],
        settings: Settings,
        pipeline: NormalizationPipeline | None = None,
    ) -> None:
        self._adapters: Mapping[ProviderKind, MailboxAdapter] = {a.kind: a for a in adapters}
        self._settings = settings
        self._pipeline = pipeline or NormalizationPipeline()

    def default_since(self) -> datetime:
        return months_ago(self._settings.mailbox_lookback_months)

    async def get_normalized_emails(
        self,
        identity: Identity | None,
        kind: ProviderKind,
        since: datetime | None = None,
    ) -> list[CanonicalEmail]:
        """Return recent mail from one provider as canonical records.

        Raises:
            Unauthenticated: If no identity was resolved for the request.
            ProviderCredentialMissing: If the identity has not linked `kind`.
            ProviderUnavailable: If the provider batch call fails.
        """

        if identity is None:
            raise Unauthenticated("Not authenticated")

        kind = ProviderKind(kind)
        credential = identity.credential_for(kind)
        if credential is None:
            raise ProviderCredentialMissing(kind.display_name)

        adapter = self._adapters.get(kind)
        if adapter is None:
            raise ConfigurationError(f"No mailbox adapter configured for {kind.value}")

        if credential.is_stale():
            # Refresh is out of scope; let the provider reject the token.
            logger.warning(
                "provider_credential_stale",
                identity_id=identity.id,
                kind=kind.value,
                expires_at=credential.expires_at.isoformat() if credential.expires_at else None,
            )

        since = since or self.default_since()
        logger.info("mailbox_fetch_started", identity_id=identity.id, kind=kind.value)
        raw_messages = await adapter.list_recent_messages(credential, since)
        return self._pipeline.normalize(adapter, raw_messages)

    async def get_all_normalized_emails(
        self,
        identity: Identity | None,
        since: datetime | None = None,
    ) -> list[CanonicalEmail]:
        """Concatenate the batches of every linked provider (Google first).

        Raises:
            Unauthenticated: If no identity was resolved for the request.
            ProviderCredentialMissing: If no provider is linked at all.
            ProviderUnavailable: If any provider batch call fails.
        """

        if identity is None:
            raise Unauthenticated("Not authenticated")

        kinds = [k for k in PROVIDER_ORDER if identity.has_link(k)]
        if not kinds:
            raise ProviderCredentialMissing(
                "Mailbox",
                hint="Sign in with Google or Microsoft to link a mailbox.",
            )

        since = since or self.default_since()
        batches = [await self.get_normalized_emails(identity, kind, since) for kind in kinds]
        return self._pipeline.merge(batches)
