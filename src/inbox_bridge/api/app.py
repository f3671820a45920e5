"""FastAPI application factory.

Every component receives the explicit `Settings` instance built here; nothing
reads configuration from the environment at request time.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from inbox_bridge.api.routes import auth_router, emails_router
from inbox_bridge.auth import BearerTokenCodec, HybridAuthenticator, LoginService
from inbox_bridge.config import Settings, get_settings
from inbox_bridge.exceptions import (
    ProviderCredentialMissing,
    ProviderUnavailable,
    StoreUnavailable,
    Unauthenticated,
)
from inbox_bridge.gmail import GmailAdapter
from inbox_bridge.graph import GraphAdapter
from inbox_bridge.log import configure_logging
from inbox_bridge.pipeline import MailboxAdapter, MailboxService
from inbox_bridge.store import IdentityRepository

logger = structlog.get_logger()


def create_app(
    settings: Settings | None = None,
    *,
    store: IdentityRepository | None = None,
    adapters: Iterable[MailboxAdapter] | None = None,
) -> FastAPI:
    """Build the HTTP app.

    Args:
        settings: Application settings. If None, uses default settings.
        store: Credential store. Defaults to one on `settings.database_url`.
        adapters: Mailbox adapters. Defaults to Gmail and Graph adapters.
    """

    settings = settings or get_settings()
    configure_logging(settings)

    store = store or IdentityRepository(settings.database_url)
    tokens = BearerTokenCodec(settings)
    if adapters is None:
        adapters = [GmailAdapter(settings), GraphAdapter(settings)]

    app = FastAPI(title="Inbox Bridge")
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = tokens
    app.state.authenticator = HybridAuthenticator(store, tokens)
    app.state.login = LoginService(store, tokens, settings)
    app.state.mailbox = MailboxService(adapters, settings)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        same_site="lax",
    )
    # Added last so it wraps the session middleware.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(emails_router)

    @app.on_event("startup")
    def _startup() -> None:
        store.initialize()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.exception_handler(Unauthenticated)
    async def _unauthenticated(request: Request, exc: Unauthenticated) -> JSONResponse:
        return JSONResponse(status_code=401, content={"success": False, "message": "Not authenticated"})

    @app.exception_handler(ProviderCredentialMissing)
    async def _credential_missing(request: Request, exc: ProviderCredentialMissing) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": str(exc), "hint": exc.hint},
        )

    @app.exception_handler(ProviderUnavailable)
    async def _provider_unavailable(request: Request, exc: ProviderUnavailable) -> JSONResponse:
        logger.error("provider_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=502,
            content={"success": False, "message": "Failed to fetch emails", "error": str(exc)},
        )

    @app.exception_handler(StoreUnavailable)
    async def _store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": "Credential store unavailable"},
        )

    logger.info("app_created", frontend_url=settings.frontend_url)
    return app
