"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from bucketsync.sync.types import SyncResult


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Storage schemas ===


class SyncResponse(BaseModel):
    """Outcome of a sync run."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    last_sync: str | None = Field(default=None, alias="lastSync")
    error: str | None = None
    details: str | None = None
    kind: str | None = None

    @classmethod
    def from_result(cls, result: SyncResult) -> SyncResponse:
        """Create response from a SyncResult."""
        return cls(
            success=result.success,
            last_sync=result.last_sync,
            error=result.error,
            details=result.details,
            kind=result.kind.value if result.kind else None,
        )


class StorageStatusResponse(BaseModel):
    """Current state of the bucket mount."""

    model_config = ConfigDict(populate_by_name=True)

    configured: bool
    bucket: str
    mount_path: str = Field(alias="mountPath")
    mount_state: str | None = Field(default=None, alias="mountState")
    fs_type: str | None = Field(default=None, alias="fsType")
    last_sync: str | None = Field(default=None, alias="lastSync")
