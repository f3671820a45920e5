"""Completion of a provider OAuth login.

The redirect/consent handshake itself happens elsewhere. This module takes the
profile and token pair it produced, links them to an identity, records the
identity in the session and mints a bearer token for the frontend.
"""

from __future__ import annotations

import asyncio
from collections.abc import MutableMapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import structlog
from pydantic import BaseModel, Field

from inbox_bridge.auth.authenticator import SESSION_IDENTITY_KEY
from inbox_bridge.auth.tokens import BearerTokenCodec
from inbox_bridge.config import Settings
from inbox_bridge.models import Identity, ProviderKind
from inbox_bridge.store import IdentityRepository

logger = structlog.get_logger()


class ProviderProfile(BaseModel):
    """The subset of a provider's user profile needed to link an identity."""

    kind: ProviderKind
    provider_user_id: str
    email: str
    display_name: str = ""


class ProviderTokens(BaseModel):
    """Token pair returned by a provider's token endpoint."""

    access_token: str
    refresh_token: str = ""
    expires_in: int | None = Field(default=None, description="Lifetime in seconds, if reported")


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    bearer_token: str
    redirect_url: str


def profile_from_google(userinfo: dict[str, Any]) -> ProviderProfile:
    """Build a profile from a Google userinfo / passport-style profile payload."""

    email = userinfo.get("email")
    if not email:
        emails = userinfo.get("emails") or []
        if emails:
            first = emails[0]
            email = first.get("value") if isinstance(first, dict) else first
    if not email:
        raise ValueError("Google profile has no email address")

    return ProviderProfile(
        kind=ProviderKind.GOOGLE,
        provider_user_id=str(userinfo.get("sub") or userinfo.get("id") or ""),
        email=str(email),
        display_name=str(userinfo.get("name") or userinfo.get("displayName") or ""),
    )


def profile_from_microsoft(me: dict[str, Any]) -> ProviderProfile:
    """Build a profile from a Microsoft Graph `/me` payload.

    Work accounts may leave `mail` empty; `userPrincipalName` is used instead.
    """

    email = me.get("mail") or me.get("userPrincipalName")
    if not email:
        raise ValueError("Microsoft profile has no mail or userPrincipalName")

    return ProviderProfile(
        kind=ProviderKind.MICROSOFT,
        provider_user_id=str(me.get("id") or ""),
        email=str(email),
        display_name=str(me.get("displayName") or ""),
    )


class LoginService:
    """Link a completed provider login to an identity."""

    def __init__(
        self,
        store: IdentityRepository,
        tokens: BearerTokenCodec,
        settings: Settings,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._settings = settings

    def _expiry_for(self, kind: ProviderKind, tokens: ProviderTokens) -> datetime | None:
        now = datetime.now(timezone.utc)
        if tokens.expires_in is not None and tokens.expires_in > 0:
            return now + timedelta(seconds=tokens.expires_in)
        if kind is ProviderKind.MICROSOFT:
            return now + timedelta(seconds=self._settings.microsoft_token_ttl_seconds)
        return None

    async def complete(
        self,
        profile: ProviderProfile,
        tokens: ProviderTokens,
        session: MutableMapping[str, Any] | None = None,
    ) -> LoginResult:
        """Upsert the identity, bind it to the session and issue a bearer token.

        Raises:
            StoreUnavailable: If the credential store cannot be reached.
        """

        identity = await asyncio.to_thread(
            self._store.upsert_from_provider_login,
            profile.kind,
            profile.provider_user_id,
            profile.email,
            profile.display_name,
            tokens.access_token,
            tokens.refresh_token,
            self._expiry_for(profile.kind, tokens),
        )

        if session is not None:
            session[SESSION_IDENTITY_KEY] = identity.id

        bearer = self._tokens.issue(identity)
        redirect_url = (
            f"{self._settings.frontend_url.rstrip('/')}/auth-callback?{urlencode({'token': bearer})}"
        )
        logger.info("provider_login_completed", identity_id=identity.id, kind=profile.kind.value)
        return LoginResult(identity=identity, bearer_token=bearer, redirect_url=redirect_url)


def logout(session: MutableMapping[str, Any]) -> None:
    """Forget the identity bound to `session`."""

    session.clear()
