"""Hybrid request authentication.

Bearer tokens and server-side sessions coexist: the frontend calls the API
cross-origin with stateless tokens while the OAuth redirect flow relies on the
session. Verifiers run in order and the first one that proves an identity wins.
A verifier that cannot prove anything returns None and the next one runs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from inbox_bridge.auth.tokens import BearerTokenCodec
from inbox_bridge.exceptions import InvalidBearerToken, Unauthenticated
from inbox_bridge.models import AuthContext, AuthMethod, Identity
from inbox_bridge.store import IdentityRepository

logger = structlog.get_logger()

SESSION_IDENTITY_KEY = "identity_id"


@dataclass(frozen=True)
class RequestCredentials:
    """Raw credential evidence carried by one request."""

    bearer_token: str | None = None
    session_identity_id: str | None = None


Verifier = Callable[[RequestCredentials], Awaitable[Identity | None]]


def parse_bearer(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header value."""

    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def credentials_from_request(request: Any) -> RequestCredentials:
    """Collect credential evidence from a Starlette request.

    The session is only read when `SessionMiddleware` is installed.
    """

    token = parse_bearer(request.headers.get("authorization"))
    session_identity_id = None
    if "session" in request.scope:
        raw = request.session.get(SESSION_IDENTITY_KEY)
        session_identity_id = str(raw) if raw else None
    return RequestCredentials(bearer_token=token, session_identity_id=session_identity_id)


class HybridAuthenticator:
    """Resolve request credentials to an identity. Read-only on the store."""

    def __init__(self, store: IdentityRepository, tokens: BearerTokenCodec) -> None:
        self._store = store
        self._tokens = tokens
        self._verifiers: list[tuple[AuthMethod, Verifier]] = [
            (AuthMethod.BEARER_TOKEN, self._verify_bearer),
            (AuthMethod.SESSION, self._verify_session),
        ]

    async def authenticate(self, credentials: RequestCredentials) -> AuthContext:
        """Return the AuthContext for `credentials`; never raises for bad tokens.

        Raises:
            StoreUnavailable: If the credential store cannot be reached.
        """

        for method, verify in self._verifiers:
            identity = await verify(credentials)
            if identity is not None:
                logger.debug("request_authenticated", method=method.value, identity_id=identity.id)
                return AuthContext(identity=identity, method=method)

        return AuthContext.anonymous()

    async def require(self, credentials: RequestCredentials) -> AuthContext:
        """Like `authenticate` but raise when no verifier proves an identity.

        Raises:
            Unauthenticated: If neither bearer token nor session is valid.
        """

        context = await self.authenticate(credentials)
        if not context.is_authenticated:
            raise Unauthenticated("Not authenticated")
        return context

    async def _verify_bearer(self, credentials: RequestCredentials) -> Identity | None:
        if not credentials.bearer_token:
            return None

        try:
            claims = self._tokens.verify(credentials.bearer_token)
        except InvalidBearerToken as exc:
            logger.info("bearer_token_rejected", reason=str(exc))
            return None

        identity = await asyncio.to_thread(self._store.find_by_id, claims.identity_id)
        if identity is None:
            logger.info("bearer_token_identity_missing", identity_id=claims.identity_id)
        return identity

    async def _verify_session(self, credentials: RequestCredentials) -> Identity | None:
        if not credentials.session_identity_id:
            return None

        identity = await asyncio.to_thread(self._store.find_by_id, credentials.session_identity_id)
        if identity is None:
            logger.info("session_identity_missing", identity_id=credentials.session_identity_id)
        return identity
