"""Gmail adapter and message parsing."""

from .client import GmailAdapter, build_gmail_service
from .parsing import decode_body_data, extract_body, message_to_canonical

__all__ = [
    "GmailAdapter",
    "build_gmail_service",
    "decode_body_data",
    "extract_body",
    "message_to_canonical",
]
