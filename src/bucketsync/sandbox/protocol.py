"""Interfaces of the external process supervisor and bucket mount primitive.

The orchestrator only ever observes these collaborators. Their reported
status and captured output may lag real completion, sometimes indefinitely,
so nothing here promises consistency between `status` and `get_logs()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class ProcessLogs:
    """Buffered output of a process. May be incomplete."""

    stdout: str = ""
    stderr: str = ""


@dataclass
class Credentials:
    """Explicit credential pair passed to the mount primitive."""

    access_key_id: str
    secret_access_key: str


class MountError(Exception):
    """The mount primitive failed."""


class MountPathInUseError(MountError):
    """The target path is already in use by a mount.

    Raised by mounters that can tell this case apart. The platform's own
    bookkeeping may report this even when nothing usable is mounted, so the
    caller must re-probe instead of trusting it.
    """

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"Mount path {path!r} is already in use")


@runtime_checkable
class ProcessHandle(Protocol):
    """A process owned by the supervisor."""

    @property
    def id(self) -> str: ...

    @property
    def command(self) -> str: ...

    @property
    def status(self) -> str: ...

    @property
    def exit_code(self) -> int | None: ...

    async def get_logs(self) -> ProcessLogs:
        """Return buffered stdout/stderr, possibly empty even after completion."""
        ...

    async def kill(self) -> None:
        """Best-effort termination."""
        ...


class ProcessSupervisor(Protocol):
    """Starts and enumerates external processes."""

    async def start_process(self, command: str) -> ProcessHandle:
        """Start `command` under a shell and return its handle immediately."""
        ...

    async def list_processes(self) -> list[ProcessHandle]:
        """List processes known to the supervisor."""
        ...


class BucketMounter(Protocol):
    """Attaches a remote bucket to a local path."""

    async def mount_bucket(
        self,
        bucket: str,
        path: str,
        *,
        endpoint: str,
        credentials: Credentials,
    ) -> None:
        """Mount `bucket` at `path`.

        Raises:
            MountPathInUseError: If the path is already in use.
            MountError: For any other mount failure.
        """
        ...
