"""Request authentication, bearer tokens and login completion."""

from .authenticator import (
    SESSION_IDENTITY_KEY,
    HybridAuthenticator,
    RequestCredentials,
    credentials_from_request,
    parse_bearer,
)
from .login import (
    LoginResult,
    LoginService,
    ProviderProfile,
    ProviderTokens,
    logout,
    profile_from_google,
    profile_from_microsoft,
)
from .tokens import BearerClaims, BearerTokenCodec

__all__ = [
    "BearerClaims",
    "BearerTokenCodec",
    "HybridAuthenticator",
    "LoginResult",
    "LoginService",
    "ProviderProfile",
    "ProviderTokens",
    "RequestCredentials",
    "SESSION_IDENTITY_KEY",
    "credentials_from_request",
    "logout",
    "parse_bearer",
    "profile_from_google",
    "profile_from_microsoft",
]
