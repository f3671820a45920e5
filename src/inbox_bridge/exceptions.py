"""Custom exceptions for Inbox Bridge."""


class InboxBridgeError(Exception):
    """Base exception for all Inbox Bridge errors."""


class ConfigurationError(InboxBridgeError):
    """Exception raised for configuration related errors."""


class AuthRequired(InboxBridgeError):
    """Exception raised when a request lacks the credentials it needs."""


class Unauthenticated(AuthRequired):
    """Exception raised when neither bearer token nor session proves an identity."""


class ProviderCredentialMissing(AuthRequired):
    """Exception raised when an identity has no linked credential for a provider."""

    def __init__(self, provider: str, hint: str | None = None) -> None:
        self.provider = provider
        self.hint = hint or f"Link your {provider} account again to grant mailbox access."
        super().__init__(f"{provider} authentication required")


class InvalidBearerToken(InboxBridgeError):
    """Exception raised when a bearer token is malformed, forged or expired."""


class ProviderUnavailable(InboxBridgeError):
    """Exception raised when an upstream mailbox API call fails or times out."""


class StoreUnavailable(InboxBridgeError):
    """Exception raised when the credential store cannot be reached."""


class DecodeFailure(InboxBridgeError):
    """Exception raised for a malformed message payload from a provider."""


class StoreConflict(StoreUnavailable):
    """Exception raised when a credential write keeps conflicting with another writer."""
