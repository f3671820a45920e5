"""Microsoft Graph (Outlook) adapter and message parsing."""

from .client import GraphAdapter
from .parsing import message_to_canonical

__all__ = ["GraphAdapter", "message_to_canonical"]
