"""Shared types and exceptions for sync operations.

This module provides:
- SyncError, ProcessTimeoutError, ReplicationError: Exception classes
- SyncFailure: Classification of a failed run
- SyncResult: Outcome of one orchestrator run
- Sentinel: Wire vocabulary between the orchestrator and its shell probes
- ReplicationStage: One mirrored copy pass
- truncate: Bound captured output before it lands in logs or results
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SyncError(Exception):
    """Base exception for sync errors."""


class ProcessTimeoutError(SyncError, TimeoutError):
    """A process was still active when its wait deadline elapsed.

    Attributes:
        timeout: The wait bound in seconds.
        status: Last status observed before giving up.
    """

    def __init__(self, timeout: float, status: str) -> None:
        self.timeout = timeout
        self.status = status
        super().__init__(f"Process timed out after {timeout * 1000:.0f}ms (status={status})")


class ReplicationError(SyncError):
    """A replication stage could not complete.

    Attributes:
        stage: Name of the stage that failed.
    """

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(message)


class SyncFailure(str, Enum):
    """Why a sync run did not succeed."""

    NOT_CONFIGURED = "not_configured"
    MOUNT_UNAVAILABLE = "mount_unavailable"
    PREFLIGHT_ABORTED = "preflight_aborted"
    VERIFICATION_TIMEOUT = "verification_timeout"
    REPLICATION_FAILED = "replication_failed"
    MARKER_UNVERIFIED = "marker_unverified"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass
class SyncResult:
    """Result of a sync run.

    This is the only contract surface callers (CLI, scheduler, HTTP) need.

    Attributes:
        success: Whether the backup is known to be durable.
        last_sync: Timestamp read back from the completion marker.
        error: Short classification of the failure.
        details: Captured output explaining the failure or skip.
        kind: Machine-readable failure classification.
    """

    success: bool
    last_sync: str | None = None
    error: str | None = None
    details: str | None = None
    kind: SyncFailure | None = None

    @classmethod
    def failed(
        cls, kind: SyncFailure, error: str, details: str | None = None
    ) -> SyncResult:
        """Create a failed result."""
        return cls(success=False, error=error, details=details, kind=kind)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict, omitting unset fields."""
        data: dict[str, Any] = {"success": self.success}
        if self.last_sync is not None:
            data["lastSync"] = self.last_sync
        if self.error is not None:
            data["error"] = self.error
        if self.details is not None:
            data["details"] = self.details
        if self.kind is not None:
            data["kind"] = self.kind.value
        return data


# Version of the sentinel vocabulary below. Bump when adding or renaming.
SENTINEL_VERSION = 1


class Sentinel(str, Enum):
    """Markers printed by shell probes and matched in their captured output.

    Each probe prints exactly one of these on its own line.
    """

    OK = "__OK__"
    MISSING = "__MISSING__"
    EMPTY_LOCAL = "__EMPTY_LOCAL__"
    ERR = "__ERR__"


@dataclass(frozen=True)
class ReplicationStage:
    """One directed, delete-mirroring copy pass.

    Attributes:
        name: Stage name used in events and errors.
        source: Local source directory.
        destination: Destination directory under the mount.
        excludes: rsync exclude patterns.
    """

    name: str
    source: str
    destination: str
    excludes: tuple[str, ...] = ()


def truncate(text: str, max_length: int) -> str:
    """Truncate text, noting how many characters were dropped."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"…(+{len(text) - max_length} chars)"
