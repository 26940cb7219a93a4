"""FastAPI application linking wallets to GitHub accounts.

Run with ``uvicorn services.github_oauth.app.main:create_app --factory`` or
``python -m services.github_oauth.app.main``. The factory refuses to build an
app without a usable session key, so misconfiguration fails at startup.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from libs.env import parse_env_list
from libs.observability.logging import RequestContextMiddleware, configure_logging
from libs.observability.metrics import setup_metrics

from .cipher import TokenCipher
from .config import Settings, get_settings, resolve_session_key
from .deps import Gateway
from .flow import VerificationFlow
from .github import GitHubClient
from .ledger import Ledger, build_ledger
from .routers import auth, resources, verify
from .state import Clock, InMemoryStateStore, StateStore, epoch_ms

SERVICE_NAME = "github-oauth"

logger = logging.getLogger(__name__)


def _log_startup(settings: Settings, gateway: Gateway) -> None:
    logger.info("GitHub callback URL: %s", settings.github_redirect_uri)
    if not settings.github_configured:
        logger.warning("GitHub OAuth credentials not set. Authentication will not work correctly.")
    if not gateway.ledger.write_enabled:
        logger.warning(
            "Blockchain verification is in development mode. Changes will not be saved on-chain."
        )
    if gateway.ephemeral_key:
        logger.warning("Session key is ephemeral; sessions will not survive a restart.")


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[StateStore] = None,
    ledger: Optional[Ledger] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Clock = epoch_ms,
) -> FastAPI:
    """Build the gateway; collaborators may be injected for tests or other deployments."""

    configure_logging(SERVICE_NAME)
    settings = settings or get_settings()
    session_key = resolve_session_key(settings)

    cipher = TokenCipher(session_key.key)
    store = store if store is not None else InMemoryStateStore(settings.state_ttl_ms, clock=clock)
    ledger = ledger if ledger is not None else build_ledger(settings)
    github = GitHubClient(settings, client=http_client)
    gateway = Gateway(
        settings=settings,
        store=store,
        github=github,
        ledger=ledger,
        cipher=cipher,
        flow=VerificationFlow(
            store,
            github,
            ledger,
            cipher,
            settings,
            ephemeral_key=session_key.ephemeral,
            clock=clock,
        ),
        ephemeral_key=session_key.ephemeral,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        _log_startup(settings, gateway)
        try:
            yield
        finally:
            await github.aclose()

    app = FastAPI(title="GitHub OAuth Gateway", version="0.1.0", lifespan=lifespan)
    app.state.gateway = gateway
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            origin.rstrip("/")
            for origin in parse_env_list(settings.frontend_url, ["http://localhost:3000"])
        ],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        allow_credentials=True,
    )
    app.add_middleware(RequestContextMiddleware, service_name=SERVICE_NAME)
    setup_metrics(app, service_name=SERVICE_NAME)

    app.include_router(auth.router)
    app.include_router(resources.router)
    app.include_router(verify.router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main() -> None:  # pragma: no cover - CLI entry-point
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":  # pragma: no cover - CLI entry-point
    main()
