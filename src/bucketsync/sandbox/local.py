"""Local implementations of the process supervisor and bucket mounter.

This module provides:
- LocalProcess: Handle for a shell command started on this machine
- SystemProcess: Read-only handle for an OS process found via psutil
- LocalProcessSupervisor: Starts shell commands and lists live processes
- S3fsMounter: Mounts a bucket with the s3fs FUSE driver
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import os
import signal
import threading
from collections import deque
from pathlib import Path

import psutil

from bucketsync.core.types import ProcessStatus, is_active
from bucketsync.sandbox.protocol import (
    Credentials,
    MountError,
    MountPathInUseError,
    ProcessHandle,
    ProcessLogs,
)

logger = logging.getLogger(__name__)

# Number of finished handles kept for list_processes()
MAX_TRACKED_PROCESSES = 256

# Seconds kill() waits for a killed shell to be reaped
KILL_SETTLE_TIMEOUT = 5.0

_PSUTIL_ACTIVE = {
    psutil.STATUS_RUNNING,
    psutil.STATUS_SLEEPING,
    psutil.STATUS_DISK_SLEEP,
    psutil.STATUS_IDLE,
    psutil.STATUS_WAKING,
}


class LocalProcess:
    """Shell command running on this machine.

    Status moves starting -> running -> completed/failed. Output is buffered
    as it arrives, so get_logs() may return partial output while running.
    """

    def __init__(self, command: str, process_id: str) -> None:
        self._command = command
        self._id = process_id
        self._status: str = ProcessStatus.STARTING.value
        self._exit_code: int | None = None
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._proc: asyncio.subprocess.Process | None = None
        self._task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"LocalProcess(id={self._id!r}, status={self._status!r})"

    @property
    def id(self) -> str:
        return self._id

    @property
    def command(self) -> str:
        return self._command

    @property
    def status(self) -> str:
        return self._status

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    async def start(self) -> None:
        """Spawn the shell and begin draining its output in the background."""
        try:
            self._proc = await asyncio.create_subprocess_shell(
                self._command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning(f"Failed to start process {self._id}: {e}")
            self._stderr.append(str(e))
            self._status = ProcessStatus.FAILED.value
            return

        self._status = ProcessStatus.RUNNING.value
        self._task = asyncio.create_task(self._supervise(self._proc))

    async def _supervise(self, proc: asyncio.subprocess.Process) -> None:
        await asyncio.gather(
            self._drain(proc.stdout, self._stdout),
            self._drain(proc.stderr, self._stderr),
        )
        self._settle(await proc.wait())

    def _settle(self, returncode: int) -> None:
        self._exit_code = returncode
        if returncode == 0:
            self._status = ProcessStatus.COMPLETED.value
        else:
            self._status = ProcessStatus.FAILED.value

    def refresh(self) -> None:
        """Mark the handle failed if its process is gone but never settled.

        This happens when the event loop that supervised it has closed.
        """
        if self._proc is None or not is_active(self._status):
            return
        if self._task is not None and not self._task.done():
            return
        try:
            alive = psutil.Process(self._proc.pid).status() != psutil.STATUS_ZOMBIE
        except psutil.Error:
            alive = False
        if not alive:
            self._status = ProcessStatus.FAILED.value

    @staticmethod
    async def _drain(stream: asyncio.StreamReader | None, sink: list[str]) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            sink.append(chunk.decode("utf-8", errors="replace"))

    async def get_logs(self) -> ProcessLogs:
        return ProcessLogs(stdout="".join(self._stdout), stderr="".join(self._stderr))

    async def kill(self) -> None:
        """Kill the whole process group of the shell and settle the status.

        Waits up to KILL_SETTLE_TIMEOUT for the shell to be reaped, so the
        handle no longer reports itself as running once kill() returns.
        """
        if self._proc is None or self._proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(self._proc.pid, signal.SIGKILL)
        try:
            returncode = await asyncio.wait_for(self._proc.wait(), timeout=KILL_SETTLE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Process {self._id} did not exit after SIGKILL")
            return
        self._settle(returncode)


class SystemProcess:
    """Snapshot of an OS process not started by this supervisor."""

    def __init__(self, pid: int, command: str, status: str) -> None:
        self._pid = pid
        self._command = command
        self._status = status

    def __repr__(self) -> str:
        return f"SystemProcess(pid={self._pid}, status={self._status!r})"

    @property
    def id(self) -> str:
        return f"pid:{self._pid}"

    @property
    def command(self) -> str:
        return self._command

    @property
    def status(self) -> str:
        return self._status

    @property
    def exit_code(self) -> int | None:
        return None

    async def get_logs(self) -> ProcessLogs:
        return ProcessLogs()

    async def kill(self) -> None:
        with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
            psutil.Process(self._pid).kill()


def _scan_system_processes(exclude: set[int]) -> list[SystemProcess]:
    """List OS processes via psutil, skipping the given pids."""
    found: list[SystemProcess] = []
    for proc in psutil.process_iter(["pid", "cmdline", "status"]):
        info = proc.info
        pid = info.get("pid")
        cmdline = info.get("cmdline")
        if pid in exclude or not cmdline:
            continue
        if info.get("status") in _PSUTIL_ACTIVE:
            status = ProcessStatus.RUNNING.value
        else:
            status = ProcessStatus.COMPLETED.value
        found.append(SystemProcess(pid, " ".join(cmdline), status))
    return found


class LocalProcessSupervisor:
    """Process supervisor backed by asyncio subprocesses.

    list_processes() reports handles started here plus every other live OS
    process, so a second CLI invocation can see an rsync started by the
    first one.

    Usage:
        supervisor = LocalProcessSupervisor()
        proc = await supervisor.start_process("echo hello")
        await wait_for_process(proc, timeout=5.0)
        logs = await proc.get_logs()
    """

    def __init__(self, include_system: bool = True) -> None:
        """Initialize the supervisor.

        Args:
            include_system: Include OS processes found via psutil in listings.
        """
        self._include_system = include_system
        self._processes: deque[LocalProcess] = deque(maxlen=MAX_TRACKED_PROCESSES)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    async def start_process(self, command: str) -> LocalProcess:
        with self._lock:
            process_id = f"proc-{next(self._counter)}"
        proc = LocalProcess(command, process_id)
        await proc.start()
        with self._lock:
            self._processes.append(proc)
        logger.debug(f"Started {process_id}: {command}")
        return proc

    async def list_processes(self) -> list[ProcessHandle]:
        with self._lock:
            handles = list(self._processes)
        for handle in handles:
            handle.refresh()
        tracked: list[ProcessHandle] = list(handles)
        own_pids = {p.pid for p in handles if p.pid is not None}
        if not self._include_system:
            return tracked

        exclude = own_pids | {os.getpid()}
        system = await asyncio.to_thread(_scan_system_processes, exclude)
        return tracked + list(system)


class S3fsMounter:
    """Bucket mounter using the s3fs FUSE driver.

    Credentials are written to a private passwd file because s3fs does not
    accept them on the command line.
    """

    def __init__(
        self,
        binary: str = "s3fs",
        passwd_dir: Path | None = None,
        timeout: float = 30.0,
        options: tuple[str, ...] = ("use_path_request_style", "nomixupload"),
    ) -> None:
        """Initialize the mounter.

        Args:
            binary: s3fs executable name or path.
            passwd_dir: Directory for the passwd file (default: ~/.bucketsync).
            timeout: Maximum time for the s3fs command to return.
            options: Extra `-o` options passed to s3fs.
        """
        self._binary = binary
        self._passwd_dir = passwd_dir or Path.home() / ".bucketsync"
        self._timeout = timeout
        self._options = options

    def _write_passwd_file(self, bucket: str, credentials: Credentials) -> Path:
        self._passwd_dir.mkdir(parents=True, exist_ok=True)
        passwd_file = self._passwd_dir / f".passwd-s3fs-{bucket}"
        fd = os.open(passwd_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(f"{credentials.access_key_id}:{credentials.secret_access_key}\n")
        return passwd_file

    async def _is_mount_point(self, path: str) -> bool:
        # ismount() can block forever on a hung FUSE mount; treat that as in use
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(os.path.ismount, path), timeout=5.0
            )
        except asyncio.TimeoutError:
            return True

    async def mount_bucket(
        self,
        bucket: str,
        path: str,
        *,
        endpoint: str,
        credentials: Credentials,
    ) -> None:
        if await self._is_mount_point(path):
            raise MountPathInUseError(path)

        Path(path).mkdir(parents=True, exist_ok=True)
        passwd_file = self._write_passwd_file(bucket, credentials)

        args = [self._binary, bucket, path, "-o", f"passwd_file={passwd_file}", "-o", f"url={endpoint}"]
        for option in self._options:
            args.extend(["-o", option])

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MountError(f"Failed to run {self._binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise MountError(f"{self._binary} timed out after {self._timeout:.0f}s") from e

        if proc.returncode != 0:
            message = (stderr or stdout).decode("utf-8", errors="replace").strip()
            lowered = message.lower()
            if "already" in lowered and ("mount" in lowered or "in use" in lowered):
                raise MountPathInUseError(path, message)
            raise MountError(message or f"{self._binary} exited with code {proc.returncode}")
