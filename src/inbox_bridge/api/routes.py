"""Auth and mailbox HTTP routes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from inbox_bridge.api.deps import get_mailbox, require_auth
from inbox_bridge.auth import logout
from inbox_bridge.models import AuthContext, CanonicalEmail, ProviderKind
from inbox_bridge.pipeline import MailboxService

auth_router = APIRouter(prefix="/auth", tags=["auth"])
emails_router = APIRouter(prefix="/emails", tags=["emails"])


class LinkedProvider(BaseModel):
    provider_user_id: str
    expires_at: datetime | None
    stale: bool


class CurrentUser(BaseModel):
    id: str
    name: str
    email: str
    auth_provider: str
    auth_method: str
    linked_providers: dict[str, LinkedProvider]


class MeResponse(BaseModel):
    success: bool = True
    user: CurrentUser


class EmailsResponse(BaseModel):
    success: bool = True
    emails: list[dict[str, Any]]


@auth_router.get("/me", response_model=MeResponse)
async def me(context: AuthContext = Depends(require_auth)) -> MeResponse:
    identity = context.identity
    assert identity is not None
    now = datetime.now(timezone.utc)
    return MeResponse(
        user=CurrentUser(
            id=identity.id,
            name=identity.display_name,
            email=identity.primary_email,
            auth_provider=identity.created_via.value,
            auth_method=context.method.value,
            linked_providers={
                kind.value: LinkedProvider(
                    provider_user_id=cred.provider_user_id,
                    expires_at=cred.expires_at,
                    stale=cred.is_stale(now),
                )
                for kind, cred in identity.linked_providers.items()
            },
        )
    )


@auth_router.get("/logout")
async def logout_route(request: Request) -> dict[str, Any]:
    logout(request.session)
    return {"success": True, "message": "Logged out successfully"}


def _emails_response(emails: list[CanonicalEmail]) -> EmailsResponse:
    return EmailsResponse(emails=[e.to_wire() for e in emails])


@emails_router.get("/gmail", response_model=EmailsResponse)
async def gmail_emails(
    since: datetime | None = None,
    context: AuthContext = Depends(require_auth),
    mailbox: MailboxService = Depends(get_mailbox),
) -> EmailsResponse:
    emails = await mailbox.get_normalized_emails(context.identity, ProviderKind.GOOGLE, since)
    return _emails_response(emails)


@emails_router.get("/outlook", response_model=EmailsResponse)
async def outlook_emails(
    since: datetime | None = None,
    context: AuthContext = Depends(require_auth),
    mailbox: MailboxService = Depends(get_mailbox),
) -> EmailsResponse:
    emails = await mailbox.get_normalized_emails(context.identity, ProviderKind.MICROSOFT, since)
    return _emails_response(emails)


@emails_router.get("", response_model=EmailsResponse)
async def all_emails(
    since: datetime | None = None,
    context: AuthContext = Depends(require_auth),
    mailbox: MailboxService = Depends(get_mailbox),
) -> EmailsResponse:
    emails = await mailbox.get_all_normalized_emails(context.identity, since)
    return _emails_response(emails)
