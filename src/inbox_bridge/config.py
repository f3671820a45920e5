"""Configuration management for Inbox Bridge.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
Components receive an explicit `Settings` instance at construction time.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the INBOX_BRIDGE_ prefix (e.g., INBOX_BRIDGE_JWT_SECRET).
    """

    model_config = SettingsConfigDict(
        env_prefix="INBOX_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Credential store
    database_url: str = Field(
        default="sqlite:///inbox_bridge.sqlite3",
        description="SQLAlchemy URL of the identity/credential store",
    )

    # Bearer tokens
    jwt_secret: str = Field(
        default="dev-bearer-secret-change-me-in-production",
        description="Process-wide secret used to sign and verify bearer tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="Bearer token signing algorithm")
    jwt_issuer: str = Field(default="inbox-bridge", description="Bearer token issuer claim")
    jwt_ttl_seconds: int = Field(
        default=24 * 3600,
        description="Bearer token lifetime in seconds",
    )

    # Sessions
    session_secret: str = Field(
        default="dev-session-secret-change-me-in-production",
        description="Secret used to sign the session cookie",
    )
    session_cookie: str = Field(default="inbox_bridge_session", description="Session cookie name")
    session_max_age: int = Field(
        default=24 * 3600,
        description="Session cookie lifetime in seconds",
    )

    # Frontend
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Frontend origin, used for CORS and post-login redirects",
    )

    # Mailbox fetching
    mailbox_lookback_months: int = Field(
        default=2,
        description="How many calendar months of mail to fetch by default",
    )
    gmail_max_messages: int = Field(
        default=150,
        description="Maximum number of Gmail message ids fetched per batch",
    )
    gmail_fetch_concurrency: int = Field(
        default=10,
        description="Maximum number of concurrent Gmail per-message fetches",
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph API base URL",
    )
    graph_max_messages: int = Field(
        default=100,
        description="Maximum number of Outlook messages fetched per batch",
    )
    provider_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single upstream provider call in seconds",
    )
    body_max_chars: int = Field(
        default=2000,
        description="Hard cap on the normalized body length",
    )
    microsoft_token_ttl_seconds: int = Field(
        default=24 * 3600,
        description="Assumed lifetime of a Microsoft access token when none is reported",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
