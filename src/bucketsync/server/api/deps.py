"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from bucketsync.sync.orchestrator import SyncOrchestrator


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Get the sync orchestrator from app state."""
    orchestrator: SyncOrchestrator | None = request.app.state.orchestrator
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync orchestrator not configured",
        )
    return orchestrator
