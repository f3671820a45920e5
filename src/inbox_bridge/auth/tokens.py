"""Signed bearer tokens (HS256 JWT).

The token carries the identity id and a few non-secret claims. Provider
access/refresh tokens are never embedded; they are always re-read from the
credential store.
"""

from __future__ import annotations

import time
from typing import Any

import jwt
import structlog
from pydantic import BaseModel, Field

from inbox_bridge.config import Settings
from inbox_bridge.exceptions import ConfigurationError, InvalidBearerToken
from inbox_bridge.models import Identity, ProviderKind

logger = structlog.get_logger()


class BearerClaims(BaseModel):
    """Decoded bearer token payload."""

    identity_id: str = Field(description="Identity the token was issued for")
    primary_email: str = Field(default="", description="Email at issue time")
    has_google_link: bool = Field(default=False)
    has_microsoft_link: bool = Field(default=False)
    issued_at: int = Field(description="Issue time, seconds since epoch")
    expires_at: int = Field(description="Expiry, seconds since epoch")


class BearerTokenCodec:
    """Issue and verify bearer tokens with a process-wide signing secret."""

    def __init__(self, settings: Settings) -> None:
        if not settings.jwt_secret:
            raise ConfigurationError("jwt_secret must not be empty")
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._issuer = settings.jwt_issuer
        self._ttl = settings.jwt_ttl_seconds

    def issue(self, identity: Identity, ttl: int | None = None) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": identity.id,
            "email": identity.primary_email,
            "has_google_link": identity.has_link(ProviderKind.GOOGLE),
            "has_microsoft_link": identity.has_link(ProviderKind.MICROSOFT),
            "iat": now,
            "exp": now + (ttl if ttl is not None else self._ttl),
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        logger.info("bearer_token_issued", identity_id=identity.id, exp=payload["exp"])
        return token

    def verify(self, token: str) -> BearerClaims:
        """Verify signature, issuer and expiry.

        Raises:
            InvalidBearerToken: For any malformed, forged or expired token.
        """

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub", "iss"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidBearerToken("token expired") from exc
        except jwt.PyJWTError as exc:
            raise InvalidBearerToken(f"invalid token: {exc}") from exc

        return BearerClaims(
            identity_id=str(claims["sub"]),
            primary_email=str(claims.get("email") or ""),
            has_google_link=bool(claims.get("has_google_link")),
            has_microsoft_link=bool(claims.get("has_microsoft_link")),
            issued_at=int(claims["iat"]),
            expires_at=int(claims["exp"]),
        )
