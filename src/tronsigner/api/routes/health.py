"""Health check endpoints."""

from fastapi import APIRouter, Request

from tronsigner import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "tronsigner"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with redacted configuration."""
    settings = request.app.state.settings
    orchestrator = request.app.state.orchestrator
    return {
        "status": "healthy",
        "service": "tronsigner",
        "version": __version__,
        "signer_address": orchestrator.hot_keys.address,
        "idempotency_backend": orchestrator.store.backend,
        "idempotency_persistent": settings.uses_persistent_store,
        "unsettled_ledger_calls": orchestrator.unsettled_count,
        "config": settings.get_safe_dict(),
    }
