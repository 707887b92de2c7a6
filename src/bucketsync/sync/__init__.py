"""Sync operations for backing a working tree with a bucket mount.

Architecture:
    SyncOrchestrator → MountController → probe → wait_for_process

Components:
- **wait_for_process**: Bounded polling wait on a lag-prone process status
- **MountController**: Probes the mount, recovers stale mounts, (re)mounts
- **SyncOrchestrator**: Dedup, preflight, staged rsync, marker verification
- **SyncRunLog**: Run-scoped, bounded event accumulator
- **best_effort**: Run an operation that must not block the critical path

All public symbols are re-exported here.
"""

from bucketsync.sync.best_effort import best_effort
from bucketsync.sync.mount import (
    MountController,
    MountProbe,
    is_mount_path_in_use,
    parse_fs_type,
)
from bucketsync.sync.orchestrator import (
    MARKER_PATTERN,
    NOT_CONFIGURED_ERROR,
    SyncOrchestrator,
)
from bucketsync.sync.run_log import RunEvent, SyncRunLog
from bucketsync.sync.types import (
    SENTINEL_VERSION,
    ProcessTimeoutError,
    ReplicationError,
    ReplicationStage,
    Sentinel,
    SyncError,
    SyncFailure,
    SyncResult,
    truncate,
)
from bucketsync.sync.wait import DEFAULT_POLL_INTERVAL, wait_for_process

__all__ = [
    # Waiting
    "DEFAULT_POLL_INTERVAL",
    "wait_for_process",
    "best_effort",
    # Mount
    "MountController",
    "MountProbe",
    "is_mount_path_in_use",
    "parse_fs_type",
    # Orchestrator
    "MARKER_PATTERN",
    "NOT_CONFIGURED_ERROR",
    "SyncOrchestrator",
    "RunEvent",
    "SyncRunLog",
    # Types
    "SENTINEL_VERSION",
    "ProcessTimeoutError",
    "ReplicationError",
    "ReplicationStage",
    "Sentinel",
    "SyncError",
    "SyncFailure",
    "SyncResult",
    "truncate",
]
