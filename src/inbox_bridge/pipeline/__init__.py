"""Provider adapter contract, normalization and mailbox access."""

from .base import MailboxAdapter
from .mailbox import PROVIDER_ORDER, MailboxService
from .normalize import NormalizationPipeline, error_placeholder

__all__ = [
    "MailboxAdapter",
    "MailboxService",
    "NormalizationPipeline",
    "PROVIDER_ORDER",
    "error_placeholder",
]
