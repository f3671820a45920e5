"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from inbox_bridge.auth import HybridAuthenticator, credentials_from_request
from inbox_bridge.models import AuthContext
from inbox_bridge.pipeline import MailboxService


def get_mailbox(request: Request) -> MailboxService:
    return request.app.state.mailbox


async def require_auth(request: Request) -> AuthContext:
    """Gate for every identity-reading route; raises Unauthenticated (401)."""

    authenticator: HybridAuthenticator = request.app.state.authenticator
    return await authenticator.require(credentials_from_request(request))
