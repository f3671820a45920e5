"""Inbox Bridge - linked mailbox access with hybrid authentication.

This package links one application identity to Google and Microsoft
mailboxes, authenticates requests by bearer token or session, and normalizes
provider messages into one canonical email record.
"""

__version__ = "0.1.0"

from inbox_bridge.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
