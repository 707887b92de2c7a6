"""Storage API routes: mount status and manual sync trigger."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from bucketsync.server.api.deps import get_orchestrator
from bucketsync.server.schemas import StorageStatusResponse, SyncResponse
from bucketsync.sync.orchestrator import SyncOrchestrator
from bucketsync.sync.types import SyncFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/storage", tags=["storage"])

# Reported when the mount could not be probed at all
UNKNOWN_MOUNT_STATE = "unknown"


@router.get("", response_model=StorageStatusResponse)
async def storage_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> StorageStatusResponse:
    """Report configuration, mount state and the last completed sync."""
    config = orchestrator.config
    mount_state: str | None = None
    fs_type: str | None = None
    last_sync: str | None = None

    if config.is_configured:
        try:
            probe = await orchestrator.mount_controller.probe()
        except Exception as e:
            logger.warning(f"Could not probe mount at {config.mount_path}: {e}")
            mount_state = UNKNOWN_MOUNT_STATE
        else:
            mount_state = probe.state.value
            fs_type = probe.fs_type
            if probe.is_mounted:
                last_sync = await orchestrator.read_last_sync()

    return StorageStatusResponse(
        configured=config.is_configured,
        bucket=config.bucket_name,
        mount_path=config.mount_path,
        mount_state=mount_state,
        fs_type=fs_type,
        last_sync=last_sync,
    )


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Run a sync now and return its result.

    200 on success (including a skipped duplicate run), 400 when storage is
    not configured, 500 for any other failure.
    """
    result = await orchestrator.sync()
    body = SyncResponse.from_result(result).model_dump(by_alias=True, exclude_none=True)

    if result.success:
        status_code = status.HTTP_200_OK
    elif result.kind == SyncFailure.NOT_CONFIGURED:
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=body)
