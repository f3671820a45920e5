"""Data models for Inbox Bridge.

This module contains Pydantic models for data validation and serialization.
"""

from inbox_bridge.models.email import (
    BODY_MAX_CHARS,
    NO_SUBJECT,
    RETRIEVAL_ERROR,
    CanonicalEmail,
    RawMessage,
)
from inbox_bridge.models.identity import (
    AuthContext,
    AuthMethod,
    Identity,
    ProviderCredential,
    ProviderKind,
)

__all__ = [
    "AuthContext",
    "AuthMethod",
    "BODY_MAX_CHARS",
    "CanonicalEmail",
    "Identity",
    "NO_SUBJECT",
    "ProviderCredential",
    "ProviderKind",
    "RETRIEVAL_ERROR",
    "RawMessage",
]
