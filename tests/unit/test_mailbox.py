"""Unit tests for MailboxService."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from conftest import FakeAdapter, gmail_raw, graph_raw

from inbox_bridge.exceptions import (
    ConfigurationError,
    ProviderCredentialMissing,
    ProviderUnavailable,
    Unauthenticated,
)
from inbox_bridge.models import ProviderKind
from inbox_bridge.pipeline import MailboxService


@pytest.fixture
def google_adapter():
    return FakeAdapter(ProviderKind.GOOGLE, raws=[gmail_raw("g1"), gmail_raw("g2")])


@pytest.fixture
def graph_adapter():
    return FakeAdapter(ProviderKind.MICROSOFT, raws=[graph_raw("o1")])


@pytest.fixture
def linked_identity(repository, google_identity):
    return repository.upsert_from_provider_login(
        ProviderKind.MICROSOFT, "ms-1", "a@x.com", "Alice", "ms-access", "ms-refresh"
    )


class TestMailboxService:
    """Test suite for MailboxService."""

    @pytest.mark.asyncio
    async def test_single_provider(self, mock_settings, google_identity, google_adapter, graph_adapter) -> None:
        service = MailboxService([google_adapter, graph_adapter], mock_settings)

        emails = await service.get_normalized_emails(google_identity, ProviderKind.GOOGLE)

        assert [e.id for e in emails] == ["g1", "g2"]
        credential, since = google_adapter.calls[0]
        assert credential.access_token == "google-access-1"
        now = datetime.now(timezone.utc)
        assert now - timedelta(days=63) < since < now - timedelta(days=58)

    @pytest.mark.asyncio
    async def test_explicit_since_is_passed_through(self, mock_settings, google_identity, google_adapter) -> None:
        since = datetime(2025, 3, 1, tzinfo=timezone.utc)

        await MailboxService([google_adapter], mock_settings).get_normalized_emails(
            google_identity, ProviderKind.GOOGLE, since
        )

        assert google_adapter.calls[0][1] == since

    @pytest.mark.asyncio
    async def test_unlinked_provider_raises(self, mock_settings, google_identity, graph_adapter) -> None:
        service = MailboxService([graph_adapter], mock_settings)

        with pytest.raises(ProviderCredentialMissing) as excinfo:
            await service.get_normalized_emails(google_identity, ProviderKind.MICROSOFT)

        assert excinfo.value.provider == "Microsoft"
        assert str(excinfo.value) == "Microsoft authentication required"
        assert graph_adapter.calls == []

    @pytest.mark.asyncio
    async def test_missing_identity_raises(self, mock_settings, google_adapter) -> None:
        with pytest.raises(Unauthenticated):
            await MailboxService([google_adapter], mock_settings).get_normalized_emails(
                None, ProviderKind.GOOGLE
            )

    @pytest.mark.asyncio
    async def test_missing_adapter_is_a_configuration_error(self, mock_settings, google_identity) -> None:
        with pytest.raises(ConfigurationError):
            await MailboxService([], mock_settings).get_normalized_emails(google_identity, ProviderKind.GOOGLE)

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, mock_settings, google_identity) -> None:
        failing = FakeAdapter(ProviderKind.GOOGLE, error=ProviderUnavailable("Gmail message listing failed"))

        with pytest.raises(ProviderUnavailable):
            await MailboxService([failing], mock_settings).get_normalized_emails(
                google_identity, ProviderKind.GOOGLE
            )

    @pytest.mark.asyncio
    async def test_all_providers_google_first(
        self, mock_settings, linked_identity, google_adapter, graph_adapter
    ) -> None:
        service = MailboxService([graph_adapter, google_adapter], mock_settings)

        emails = await service.get_all_normalized_emails(linked_identity)

        assert [e.id for e in emails] == ["g1", "g2", "o1"]

    @pytest.mark.asyncio
    async def test_all_providers_skips_unlinked(
        self, mock_settings, google_identity, google_adapter, graph_adapter
    ) -> None:
        service = MailboxService([google_adapter, graph_adapter], mock_settings)

        emails = await service.get_all_normalized_emails(google_identity)

        assert [e.id for e in emails] == ["g1", "g2"]
        assert graph_adapter.calls == []

    @pytest.mark.asyncio
    async def test_all_providers_without_links(self, mock_settings, google_identity, google_adapter) -> None:
        bare = google_identity.model_copy(update={"linked_providers": {}})

        with pytest.raises(ProviderCredentialMissing):
            await MailboxService([google_adapter], mock_settings).get_all_normalized_emails(bare)
