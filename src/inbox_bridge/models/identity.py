"""Identity, linked provider credential and per-request auth context models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ProviderKind(str, Enum):
    """External mailbox provider enumeration."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"

    @property
    def display_name(self) -> str:
        return "Google" if self is ProviderKind.GOOGLE else "Microsoft"


class AuthMethod(str, Enum):
    """How a request's identity was proven."""

    SESSION = "session"
    BEARER_TOKEN = "bearer_token"
    NONE = "none"


class ProviderCredential(BaseModel):
    """Token pair and metadata linking an identity to one mailbox provider."""

    kind: ProviderKind = Field(description="Provider this credential belongs to")
    provider_user_id: str = Field(description="Opaque user id issued by the provider")
    access_token: str = Field(description="Provider access token, stored verbatim")
    refresh_token: str = Field(default="", description="Provider refresh token, stored verbatim")
    expires_at: datetime | None = Field(
        default=None,
        description="Access token expiry; None means unknown and is assumed valid",
    )

    def is_stale(self, now: datetime | None = None) -> bool:
        """Return True when the access token is known to have expired.

        A credential without an expiry is never reported stale; the provider
        is left to reject it.
        """

        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


class Identity(BaseModel):
    """The application's representation of one end user."""

    id: str = Field(description="Opaque unique identifier")
    display_name: str = Field(default="", description="Display name from the provider profile")
    primary_email: str = Field(description="Globally unique email address")
    created_via: ProviderKind = Field(description="Provider used for the first login")
    linked_providers: dict[ProviderKind, ProviderCredential] = Field(
        default_factory=dict,
        description="At most one credential per provider kind",
    )
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last credential refresh")

    def credential_for(self, kind: ProviderKind) -> ProviderCredential | None:
        return self.linked_providers.get(kind)

    def has_link(self, kind: ProviderKind) -> bool:
        return kind in self.linked_providers


class AuthContext(BaseModel):
    """Request-scoped result of authentication. Never persisted."""

    identity: Identity | None = None
    method: AuthMethod = AuthMethod.NONE

    @property
    def is_authenticated(self) -> bool:
        return self.method is not AuthMethod.NONE and self.identity is not None

    @classmethod
    def anonymous(cls) -> AuthContext:
        return cls(identity=None, method=AuthMethod.NONE)
