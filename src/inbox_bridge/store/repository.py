"""SQL-backed store for identities and their linked provider credentials.

One row per identity plus one row per (identity, provider kind). All writes run
inside a committed transaction before the call returns, and writes from this
process are serialized so the last login for an identity wins.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from inbox_bridge.exceptions import StoreConflict, StoreUnavailable
from inbox_bridge.models import Identity, ProviderCredential, ProviderKind

logger = structlog.get_logger()


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS identities (
        id TEXT PRIMARY KEY,
        display_name TEXT NOT NULL DEFAULT '',
        primary_email TEXT NOT NULL UNIQUE,
        created_via TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS provider_credentials (
        identity_id TEXT NOT NULL REFERENCES identities(id),
        kind TEXT NOT NULL,
        provider_user_id TEXT NOT NULL,
        access_token TEXT NOT NULL,
        refresh_token TEXT NOT NULL DEFAULT '',
        expires_at TEXT,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (identity_id, kind)
    )
    """,
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    # ISO-8601 parsing: allow trailing Z.
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(raw))


def normalize_email(email: str) -> str:
    """Canonical form used for the global uniqueness of `primary_email`."""

    return (email or "").strip().lower()


class IdentityRepository:
    """Repository for identities and their provider credentials."""

    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        """Create a repository.

        Args:
            database_url: SQLAlchemy URL; ignored when `engine` is given.
            engine: Pre-built SQLAlchemy engine.
        """

        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(database_url)
        self._engine = engine
        self._write_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        return self._engine

    def initialize(self) -> None:
        """Create the schema (idempotent)."""

        with self._guard("initialize"), self._engine.begin() as conn:
            for ddl in _SCHEMA:
                conn.execute(text(ddl))
        logger.info("identity_store_initialized")

    def find_by_email(self, email: str) -> Identity | None:
        with self._guard("find_by_email"), self._engine.connect() as conn:
            row = conn.execute(
                text("SELECT id FROM identities WHERE primary_email = :email"),
                {"email": normalize_email(email)},
            ).fetchone()
            return None if row is None else self._load(conn, str(row[0]))

    def find_by_id(self, identity_id: str) -> Identity | None:
        if not identity_id:
            return None
        with self._guard("find_by_id"), self._engine.connect() as conn:
            return self._load(conn, identity_id)

    def upsert_from_provider_login(
        self,
        kind: ProviderKind,
        provider_user_id: str,
        email: str,
        display_name: str,
        access_token: str,
        refresh_token: str,
        expires_at: datetime | None = None,
    ) -> Identity:
        """Create or refresh the identity owning `email` after a provider login.

        Only the credential for `kind` is overwritten; credentials for other
        providers on the same identity are left untouched.

        Raises:
            ValueError: If `email` is empty or `expires_at` is not in the future.
            StoreUnavailable: If the backing store cannot be reached.
            StoreConflict: If the write still conflicts after one retry.
        """

        kind = ProviderKind(kind)
        normalized = normalize_email(email)
        if not normalized:
            raise ValueError("email is required to link a provider")

        now = _now_utc()
        if expires_at is not None:
            expires_at = _as_utc(expires_at)
            if expires_at <= now:
                raise ValueError(f"expires_at must be in the future, got {expires_at.isoformat()}")

        params = {
            "kind": kind.value,
            "provider_user_id": str(provider_user_id),
            "email": normalized,
            "display_name": display_name or "",
            "access_token": access_token,
            "refresh_token": refresh_token or "",
            "expires_at": expires_at.isoformat() if expires_at else None,
            "now": now.isoformat(),
        }

        with self._guard("upsert_from_provider_login"), self._write_lock:
            try:
                identity, created = self._upsert(params)
            except IntegrityError:
                # Another writer created the same email first; retry as an update.
                logger.info("identity_create_conflict", kind=kind.value)
                try:
                    identity, created = self._upsert(params)
                except IntegrityError as exc:
                    logger.exception("identity_upsert_conflict_persisted", kind=kind.value, error=str(exc))
                    raise StoreConflict(f"conflicting writes for {kind.value} login") from exc

        logger.info(
            "identity_created" if created else "identity_credential_refreshed",
            identity_id=identity.id,
            kind=kind.value,
            linked=[k.value for k in identity.linked_providers],
        )
        return identity

    def _upsert(self, params: dict) -> tuple[Identity, bool]:
        with self._engine.begin() as conn:
            result = conn.execute(
                text("UPDATE identities SET updated_at = :now WHERE primary_email = :email"),
                params,
            )
            created = result.rowcount == 0
            if created:
                identity_id = uuid.uuid4().hex
                conn.execute(
                    text(
                        """
                        INSERT INTO identities (
                            id, display_name, primary_email, created_via, created_at, updated_at
                        )
                        VALUES (:id, :display_name, :email, :kind, :now, :now)
                        """
                    ),
                    {**params, "id": identity_id},
                )
            else:
                identity_id = str(
                    conn.execute(
                        text("SELECT id FROM identities WHERE primary_email = :email"),
                        params,
                    ).scalar_one()
                )

            conn.execute(
                text(
                    """
                    INSERT INTO provider_credentials (
                        identity_id,
                        kind,
                        provider_user_id,
                        access_token,
                        refresh_token,
                        expires_at,
                        updated_at
                    )
                    VALUES (
                        :identity_id,
                        :kind,
                        :provider_user_id,
                        :access_token,
                        :refresh_token,
                        :expires_at,
                        :now
                    )
                    ON CONFLICT (identity_id, kind) DO UPDATE
                    SET
                        provider_user_id = excluded.provider_user_id,
                        access_token = excluded.access_token,
                        refresh_token = excluded.refresh_token,
                        expires_at = excluded.expires_at,
                        updated_at = excluded.updated_at
                    """
                ),
                {**params, "identity_id": identity_id},
            )

            identity = self._load(conn, identity_id)

        assert identity is not None
        return identity, created

    def _load(self, conn: Connection, identity_id: str) -> Identity | None:
        row = (
            conn.execute(
                text(
                    """
                    SELECT id, display_name, primary_email, created_via, created_at, updated_at
                    FROM identities
                    WHERE id = :id
                    """
                ),
                {"id": identity_id},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None

        cred_rows = (
            conn.execute(
                text(
                    """
                    SELECT kind, provider_user_id, access_token, refresh_token, expires_at
                    FROM provider_credentials
                    WHERE identity_id = :id
                    """
                ),
                {"id": identity_id},
            )
            .mappings()
            .all()
        )

        linked: dict[ProviderKind, ProviderCredential] = {}
        for c in cred_rows:
            kind = ProviderKind(c["kind"])
            linked[kind] = ProviderCredential(
                kind=kind,
                provider_user_id=c["provider_user_id"],
                access_token=c["access_token"],
                refresh_token=c["refresh_token"] or "",
                expires_at=_parse_ts(c["expires_at"]),
            )

        return Identity(
            id=str(row["id"]),
            display_name=row["display_name"] or "",
            primary_email=row["primary_email"],
            created_via=ProviderKind(row["created_via"]),
            linked_providers=linked,
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (OperationalError, InterfaceError) as exc:
            logger.exception("identity_store_unavailable", operation=operation, error=str(exc))
            raise StoreUnavailable(f"credential store unavailable during {operation}") from exc
