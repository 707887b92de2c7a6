"""Core module - Shared configuration and types."""

from bucketsync.core.config import (
    DEFAULT_BUCKET_NAME,
    DEFAULT_MOUNT_PATH,
    StorageConfig,
    SyncPaths,
    SyncSettings,
)
from bucketsync.core.types import ACTIVE_STATUSES, MountState, ProcessStatus, is_active

__all__ = [
    # Config
    "DEFAULT_BUCKET_NAME",
    "DEFAULT_MOUNT_PATH",
    "StorageConfig",
    "SyncPaths",
    "SyncSettings",
    # Types
    "ACTIVE_STATUSES",
    "MountState",
    "ProcessStatus",
    "is_active",
]
