"""Shared types for bucketsync.

This module defines enums used across the sandbox, sync and server layers.
"""

from __future__ import annotations

from enum import Enum


class ProcessStatus(str, Enum):
    """Status values reported by a process supervisor.

    Supervisors may report other strings too; callers compare against these
    values and treat anything unknown as settled.
    """

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES: frozenset[str] = frozenset(
    {ProcessStatus.STARTING.value, ProcessStatus.RUNNING.value}
)


def is_active(status: object) -> bool:
    """Check whether a reported status means the process is still active."""
    return str(getattr(status, "value", status)) in ACTIVE_STATUSES


class MountState(str, Enum):
    """State of the bucket mount at the instant it was probed."""

    MOUNTED = "mounted"
    NOT_MOUNTED = "not_mounted"
    UNRESPONSIVE = "unresponsive"
