"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tronsigner import __version__
from tronsigner.config import Settings, get_settings
from tronsigner.idempotency.store import IdempotencyStore
from tronsigner.services.factory import build_orchestrator
from tronsigner.withdrawal.base import LedgerClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await app.state.orchestrator.store.init()
    yield
    # Shutdown
    orchestrator = app.state.orchestrator
    await orchestrator.settle_pending(timeout=app.state.settings.broadcast_timeout_sec)
    await orchestrator.store.close()


def create_app(
    settings: Optional[Settings] = None,
    ledger: Optional[LedgerClient] = None,
    store: Optional[IdempotencyStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Key material is parsed here, so a malformed key fails before serving.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="TRON Signer",
        description="Authenticated, idempotent TRC20 transfer signing",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.orchestrator = build_orchestrator(settings, ledger=ledger, store=store)

    # Register routes
    from tronsigner.api.routers import signer
    from tronsigner.api.routes import health

    app.include_router(health.router, tags=["Health"])
    app.include_router(signer.router)

    return app
