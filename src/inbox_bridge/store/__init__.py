"""Identity and provider credential persistence."""

from .repository import IdentityRepository, normalize_email

__all__ = ["IdentityRepository", "normalize_email"]
