"""Unit tests for the identity/credential repository."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from inbox_bridge.exceptions import InboxBridgeError, StoreConflict, StoreUnavailable
from inbox_bridge.models import ProviderKind
from inbox_bridge.store import IdentityRepository


def test_first_login_creates_identity_with_one_provider(repository, google_identity) -> None:
    assert google_identity.primary_email == "a@x.com"
    assert google_identity.display_name == "Alice Example"
    assert google_identity.created_via is ProviderKind.GOOGLE
    assert list(google_identity.linked_providers) == [ProviderKind.GOOGLE]

    cred = google_identity.credential_for(ProviderKind.GOOGLE)
    assert cred is not None
    assert cred.access_token == "google-access-1"
    assert cred.refresh_token == "google-refresh-1"
    assert cred.expires_at is None


def test_second_provider_links_to_same_identity(repository, google_identity) -> None:
    expires_at = datetime.now(timezone.utc) + timedelta(hours=24)

    linked = repository.upsert_from_provider_login(
        ProviderKind.MICROSOFT,
        "ms-456",
        "a@x.com",
        "Alice (Work)",
        "ms-access-1",
        "ms-refresh-1",
        expires_at,
    )

    assert linked.id == google_identity.id
    assert linked.primary_email == "a@x.com"
    assert linked.display_name == "Alice Example"
    assert set(linked.linked_providers) == {ProviderKind.GOOGLE, ProviderKind.MICROSOFT}
    ms = linked.credential_for(ProviderKind.MICROSOFT)
    assert ms is not None
    assert ms.expires_at is not None
    assert abs((ms.expires_at - expires_at).total_seconds()) < 1


def test_upsert_is_idempotent_per_kind_and_email(repository, google_identity) -> None:
    repository.upsert_from_provider_login(
        ProviderKind.MICROSOFT, "ms-456", "a@x.com", "Alice", "ms-access-1", "ms-refresh-1"
    )

    refreshed = repository.upsert_from_provider_login(
        ProviderKind.GOOGLE, "google-123", "a@x.com", "Alice", "google-access-2", "google-refresh-2"
    )

    assert refreshed.id == google_identity.id
    google = refreshed.credential_for(ProviderKind.GOOGLE)
    assert google is not None
    assert google.access_token == "google-access-2"
    assert google.refresh_token == "google-refresh-2"

    ms = refreshed.credential_for(ProviderKind.MICROSOFT)
    assert ms is not None
    assert ms.access_token == "ms-access-1"

    with repository.engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM identities")).scalar_one() == 1


def test_email_lookup_is_case_insensitive(repository, google_identity) -> None:
    found = repository.find_by_email("  A@X.com ")

    assert found is not None
    assert found.id == google_identity.id


def test_find_by_id_and_missing(repository, google_identity) -> None:
    assert repository.find_by_id(google_identity.id) == google_identity
    assert repository.find_by_id("does-not-exist") is None
    assert repository.find_by_email("nobody@x.com") is None


def test_past_expiry_is_rejected(repository) -> None:
    with pytest.raises(ValueError):
        repository.upsert_from_provider_login(
            ProviderKind.MICROSOFT,
            "ms-1",
            "b@x.com",
            "Bob",
            "tok",
            "ref",
            datetime.now(timezone.utc) - timedelta(seconds=1),
        )

    assert repository.find_by_email("b@x.com") is None


def test_empty_email_is_rejected(repository) -> None:
    with pytest.raises(ValueError):
        repository.upsert_from_provider_login(ProviderKind.GOOGLE, "g", " ", "x", "tok", "ref")


def test_concurrent_logins_for_same_email_yield_one_identity(repository) -> None:
    results = []

    def login(n: int) -> None:
        results.append(
            repository.upsert_from_provider_login(
                ProviderKind.GOOGLE, "g-1", "race@x.com", "Racer", f"access-{n}", "refresh"
            )
        )

    threads = [threading.Thread(target=login, args=(n,)) for n in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({identity.id for identity in results}) == 1
    final = repository.find_by_email("race@x.com")
    assert final is not None
    assert final.credential_for(ProviderKind.GOOGLE).access_token in {f"access-{n}" for n in range(5)}


def test_unreachable_store_raises_store_unavailable(tmp_path) -> None:
    repo = IdentityRepository(f"sqlite:///{tmp_path / 'missing-dir' / 'db.sqlite3'}")

    with pytest.raises(StoreUnavailable):
        repo.find_by_email("a@x.com")


def test_persistent_write_conflict_raises_store_conflict(repository, monkeypatch) -> None:
    attempts = []

    def always_conflicts(params):
        attempts.append(params["email"])
        raise IntegrityError("INSERT INTO identities", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(repository, "_upsert", always_conflicts)

    with pytest.raises(StoreConflict) as excinfo:
        repository.upsert_from_provider_login(ProviderKind.GOOGLE, "g-1", "c@x.com", "Cy", "tok", "ref")

    assert attempts == ["c@x.com", "c@x.com"]
    assert isinstance(excinfo.value, InboxBridgeError)
    assert isinstance(excinfo.value.__cause__, IntegrityError)
