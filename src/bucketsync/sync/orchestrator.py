"""Sync orchestrator replicating local state into the bucket mount.

This module provides:
- SyncOrchestrator: One-way, staged, verified replication into the mount

A run moves through:

    ConfigGate -> MountGate -> DedupCheck -> PreflightVerify
        -> Replicate[config -> workspace -> skills]
        -> WriteMarker -> VerifyMarker -> Success | Failed + diagnostics

The supervisor's process status lags real completion, and captured output
can lag both. Success is therefore only reported after the completion marker
has been written and read back unchanged, never because a process said
"completed".
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime

from bucketsync.core.config import StorageConfig, SyncPaths, SyncSettings
from bucketsync.core.types import ProcessStatus, is_active
from bucketsync.sandbox.protocol import (
    BucketMounter,
    ProcessHandle,
    ProcessLogs,
    ProcessSupervisor,
)
from bucketsync.sync.best_effort import best_effort
from bucketsync.sync.commands import (
    diagnostics_command,
    is_rsync_to,
    preflight_command,
    read_marker_command,
    rsync_command,
    write_marker_command,
)
from bucketsync.sync.mount import MountController
from bucketsync.sync.run_log import SyncRunLog
from bucketsync.sync.types import (
    ProcessTimeoutError,
    ReplicationError,
    ReplicationStage,
    Sentinel,
    SyncFailure,
    SyncResult,
    truncate,
)
from bucketsync.sync.wait import wait_for_process

logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "R2 storage is not configured"
MARKER_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")

# Truncation limits for captured output
SHORT_OUTPUT = 500
LONG_OUTPUT = 2000

CONFIG_EXCLUDES = ("*.lock", "*.log", "*.tmp")


def _sentinels(stdout: str) -> set[str]:
    return {line.strip() for line in stdout.splitlines()} & {s.value for s in Sentinel}


def _has_failed(proc: ProcessHandle) -> bool:
    """Check a settled process for a failed status or non-zero exit code."""
    exit_code = getattr(proc, "exit_code", None)
    failed_status = str(getattr(proc.status, "value", proc.status)) == ProcessStatus.FAILED.value
    return failed_status or (exit_code is not None and exit_code != 0)


class SyncOrchestrator:
    """Replicates local trees into the bucket mount, safely and idempotently.

    One external process runs at a time and every wait is bounded. All
    failures come back as a SyncResult; sync() does not raise.

    Usage:
        orchestrator = SyncOrchestrator(supervisor, mounter, StorageConfig.from_env())
        result = await orchestrator.sync()
        if not result.success:
            print(result.error, result.details)
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        mounter: BucketMounter,
        config: StorageConfig,
        paths: SyncPaths | None = None,
        settings: SyncSettings | None = None,
        mount_controller: MountController | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            supervisor: Process supervisor for every shell command.
            mounter: Bucket mount primitive.
            config: Bucket, mount path and credentials.
            paths: Local source trees (default: SyncPaths()).
            settings: Timeouts and diagnostics (default: SyncSettings()).
            mount_controller: Override the mount controller (default: built
                from supervisor, mounter and config).
            clock: Source of the marker timestamp (default: current UTC time).
        """
        self._supervisor = supervisor
        self._config = config
        self._paths = paths or SyncPaths()
        self._settings = settings or SyncSettings()
        self._mount = mount_controller or MountController(
            supervisor, mounter, config, self._settings
        )
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def config(self) -> StorageConfig:
        return self._config

    @property
    def mount_controller(self) -> MountController:
        return self._mount

    @property
    def stages(self) -> list[ReplicationStage]:
        """Replication stages in the order they must run."""
        mount = self._config.mount_path
        skills_dir = self._paths.skills_dir or self._paths.workspace_dir / "skills"

        workspace_excludes: tuple[str, ...] = ()
        with contextlib.suppress(ValueError):
            relative = skills_dir.relative_to(self._paths.workspace_dir)
            workspace_excludes = (f"/{relative.as_posix()}/",)

        return [
            ReplicationStage(
                "config", str(self._paths.config_dir), f"{mount}/openclaw", CONFIG_EXCLUDES
            ),
            ReplicationStage(
                "workspace", str(self._paths.workspace_dir), f"{mount}/workspace", workspace_excludes
            ),
            ReplicationStage("skills", str(skills_dir), f"{mount}/skills"),
        ]

    async def sync(self) -> SyncResult:
        """Run one sync.

        Returns:
            SyncResult describing the outcome.
        """
        run_log = SyncRunLog(
            verbose=self._settings.verbose,
            max_events=self._settings.max_log_events,
        )
        result = await self._run(run_log)
        run_log.record("finished", success=result.success, error=result.error)
        run_log.flush(result)
        if result.success:
            logger.info(f"Sync {run_log.run_id} succeeded (lastSync={result.last_sync})")
        else:
            logger.warning(f"Sync {run_log.run_id} failed: {result.error}")
        return result

    async def _run(self, run_log: SyncRunLog) -> SyncResult:
        if not self._config.is_configured:
            return SyncResult.failed(SyncFailure.NOT_CONFIGURED, NOT_CONFIGURED_ERROR)

        run_log.record(
            "start",
            mountPath=self._config.mount_path,
            hasR2AccessKeyId=bool(self._config.access_key_id),
            hasR2SecretAccessKey=bool(self._config.secret_access_key),
            hasCfAccountId=bool(self._config.account_id),
        )

        try:
            if not await self._mount.ensure_mounted():
                run_log.record("mount_failed")
                return SyncResult.failed(SyncFailure.MOUNT_UNAVAILABLE, "Failed to mount R2 storage")
            run_log.record("mount_ok")

            active = await self._find_active_sync(run_log)
            if active is not None:
                return SyncResult(
                    success=True,
                    details=(
                        "Skipped: another rsync appears to be running "
                        f"({active.id}: {truncate(active.command, SHORT_OUTPUT)})"
                    ),
                )

            aborted = await self._preflight(run_log)
            if aborted is not None:
                return aborted

            stage_logs = ProcessLogs()
            try:
                for stage in self.stages:
                    stage_logs = await self._replicate(stage, run_log)
            except ReplicationError as e:
                run_log.record("replication_failed", stage=e.stage, error=str(e))
                return SyncResult.failed(
                    SyncFailure.REPLICATION_FAILED,
                    "Sync failed",
                    truncate(str(e), LONG_OUTPUT),
                )

            return await self._confirm(stage_logs, run_log)
        except Exception as e:
            logger.exception("Unexpected error during sync")
            run_log.record("sync_error", error=str(e))
            return SyncResult.failed(
                SyncFailure.UNEXPECTED_ERROR, "Sync error", str(e) or "Unknown error"
            )

    async def _read_logs(self, proc: ProcessHandle) -> ProcessLogs:
        try:
            return await proc.get_logs()
        except Exception as e:
            logger.debug(f"Could not read logs of {proc.id}: {e}")
            return ProcessLogs()

    async def _find_active_sync(self, run_log: SyncRunLog) -> ProcessHandle | None:
        """Look for an in-flight rsync into the mount.

        Advisory only: this is the sole guard against overlapping runs.
        """
        try:
            processes = await self._supervisor.list_processes()
        except Exception as e:
            logger.warning(f"Could not list processes, assuming no sync is running: {e}")
            run_log.record("dedup_list_failed", error=str(e))
            return None

        for proc in processes:
            command = getattr(proc, "command", "") or ""
            if is_active(proc.status) and is_rsync_to(command, self._config.mount_path):
                run_log.record("dedup_skip", processId=proc.id, status=str(proc.status))
                logger.info(f"Skipping sync: rsync already running ({proc.id})")
                return proc
        run_log.record("dedup_clear", processCount=len(processes))
        return None

    async def _preflight(self, run_log: SyncRunLog) -> SyncResult | None:
        """Refuse to run a delete-mirroring copy from a suspicious source.

        Returns:
            A failed SyncResult to abort with, or None when it is safe.
        """
        command = preflight_command(
            str(self._paths.critical_path),
            str(self._paths.workspace_dir),
            f"{self._config.mount_path}/workspace",
        )
        proc = await self._supervisor.start_process(command)
        run_log.record("verify_started", cmd=command, status=str(proc.status))

        # Tiny commands can report "running" after their output is available,
        # or "completed" before it is flushed: the sentinel decides.
        settled = True
        try:
            await wait_for_process(proc, self._settings.verify_timeout, 0.2)
        except ProcessTimeoutError as e:
            settled = False
            run_log.record("verify_wait_timeout", error=str(e))

        logs = ProcessLogs()
        for attempt in range(self._settings.log_poll_attempts):
            logs = await self._read_logs(proc)
            if _sentinels(logs.stdout or ""):
                break
            if attempt < self._settings.log_poll_attempts - 1:
                await asyncio.sleep(self._settings.log_poll_interval)

        if not settled:
            killed = await best_effort(proc.kill(), "kill of stuck source verification")
            run_log.record("verify_killed", killed=killed)

        stdout = (logs.stdout or "").strip()
        stderr = (logs.stderr or "").strip()
        found = _sentinels(stdout)
        run_log.record(
            "verify_result",
            status=str(proc.status),
            exitCode=getattr(proc, "exit_code", None),
            stdout=truncate(stdout, SHORT_OUTPUT),
            stderr=truncate(stderr, SHORT_OUTPUT),
        )

        if Sentinel.MISSING.value in found:
            return SyncResult.failed(
                SyncFailure.PREFLIGHT_ABORTED,
                f"Sync aborted: source missing {self._paths.critical_file}",
                "The local config directory is missing critical files. "
                "This could indicate corruption or an incomplete setup.",
            )
        if Sentinel.EMPTY_LOCAL.value in found:
            return SyncResult.failed(
                SyncFailure.PREFLIGHT_ABORTED,
                "Sync aborted: local workspace appears empty",
                f"The backup workspace under {self._config.mount_path}/workspace has files "
                f"but {self._paths.workspace_dir} is empty. Refusing to mirror deletions "
                "over a good backup.",
            )
        if Sentinel.OK.value not in found:
            return SyncResult.failed(
                SyncFailure.VERIFICATION_TIMEOUT,
                "Failed to verify source files",
                f"Timed out waiting for source verification output (status={proc.status}). "
                f"stdout={truncate(stdout, SHORT_OUTPUT)!r} stderr={truncate(stderr, SHORT_OUTPUT)!r}",
            )
        return None

    async def _replicate(self, stage: ReplicationStage, run_log: SyncRunLog) -> ProcessLogs:
        """Run one copy pass and make sure it did not fail.

        A pass that outlives its timeout is killed before the error is
        raised, so it does not linger as an orphan.

        Raises:
            ReplicationError: If the pass failed or timed out.
        """
        command = rsync_command(stage)
        proc = await self._supervisor.start_process(command)
        run_log.record("rsync_started", stage=stage.name, cmd=command, status=str(proc.status))

        try:
            await wait_for_process(proc, self._settings.stage_timeout)
        except ProcessTimeoutError as e:
            logs = await self._read_logs(proc)
            run_log.record(
                "rsync_wait_error",
                stage=stage.name,
                error=str(e),
                status=str(proc.status),
                stdout=truncate((logs.stdout or "").strip(), LONG_OUTPUT),
                stderr=truncate((logs.stderr or "").strip(), LONG_OUTPUT),
            )
            killed = await best_effort(proc.kill(), f"kill of stalled {stage.name} rsync")
            run_log.record("rsync_killed", stage=stage.name, killed=killed)
            raise ReplicationError(stage.name, f"Stage {stage.name!r} did not finish: {e}") from e

        logs = await self._read_logs(proc)
        exit_code = getattr(proc, "exit_code", None)
        run_log.record("rsync_done", stage=stage.name, status=str(proc.status), exitCode=exit_code)

        if _has_failed(proc):
            output = (logs.stderr or "").strip() or (logs.stdout or "").strip()
            raise ReplicationError(
                stage.name,
                output or f"Stage {stage.name!r} failed (status={proc.status}, exit code={exit_code})",
            )
        if Sentinel.MISSING.value in _sentinels(logs.stdout or ""):
            # Nothing to mirror; the destination is left as it was
            logger.warning(f"Skipped {stage.name} stage: {stage.source} does not exist")
            run_log.record("rsync_skipped", stage=stage.name, source=stage.source)
        return logs

    async def _confirm(self, stage_logs: ProcessLogs, run_log: SyncRunLog) -> SyncResult:
        """Write a fresh completion marker and read the same value back.

        A marker left by an earlier run never counts: the read-back has to
        equal the timestamp written here.
        """
        marker = self._config.last_sync_path
        written = self._clock().isoformat(timespec="seconds")

        writer = await self._supervisor.start_process(write_marker_command(marker, written))
        run_log.record("marker_write_started", timestamp=written, status=str(writer.status))
        try:
            await wait_for_process(writer, self._settings.marker_timeout)
        except ProcessTimeoutError as e:
            # The read-back below decides whether the marker landed
            run_log.record("marker_write_timeout", error=str(e))
            killed = await best_effort(writer.kill(), "kill of stuck marker write")
            run_log.record("marker_write_killed", killed=killed)
        else:
            if _has_failed(writer):
                logs = await self._read_logs(writer)
                stderr = (logs.stderr or "").strip()
                run_log.record(
                    "marker_write_failed",
                    status=str(writer.status),
                    exitCode=getattr(writer, "exit_code", None),
                    stderr=truncate(stderr, SHORT_OUTPUT),
                )
                return await self._unverified(
                    stderr or "Failed to write timestamp file", run_log
                )

        last_sync = await self._read_marker(run_log)
        if last_sync == written:
            return SyncResult(success=True, last_sync=last_sync)

        if last_sync is None:
            detail = (stage_logs.stderr or "").strip() or "No timestamp file created"
        else:
            detail = f"Timestamp file holds {last_sync!r}, expected {written!r}"
        return await self._unverified(detail, run_log)

    async def _unverified(self, detail: str, run_log: SyncRunLog) -> SyncResult:
        diagnostics = await self._diagnostics(run_log)
        details = "\n".join(part for part in (detail, diagnostics) if part)
        return SyncResult.failed(
            SyncFailure.MARKER_UNVERIFIED, "Sync failed", truncate(details, LONG_OUTPUT * 2)
        )

    async def _read_marker(
        self, run_log: SyncRunLog | None = None, attempts: int = 40
    ) -> str | None:
        # Single process polling for the file avoids one process per attempt
        proc = await self._supervisor.start_process(
            read_marker_command(self._config.last_sync_path, attempts=attempts)
        )
        try:
            await wait_for_process(proc, self._settings.marker_timeout)
        except ProcessTimeoutError as e:
            if run_log is not None:
                run_log.record("marker_read_timeout", error=str(e))
            await best_effort(proc.kill(), "kill of stuck marker read")

        logs = await self._read_logs(proc)
        lines = (logs.stdout or "").strip().splitlines()
        value = lines[0].strip() if lines else ""
        if run_log is not None:
            run_log.record(
                "timestamp_result",
                status=str(proc.status),
                exitCode=getattr(proc, "exit_code", None),
                stdout=truncate((logs.stdout or "").strip(), SHORT_OUTPUT),
                stderr=truncate((logs.stderr or "").strip(), SHORT_OUTPUT),
            )
        if not value or value == Sentinel.MISSING.value:
            return None
        return value

    async def _diagnostics(self, run_log: SyncRunLog) -> str:
        """Capture mount table and tree listings for post-hoc debugging."""
        try:
            proc = await self._supervisor.start_process(
                diagnostics_command(self._config.mount_path, self.stages)
            )
        except Exception as e:
            run_log.record("diag_failed", error=str(e))
            return ""

        settled = await best_effort(
            wait_for_process(proc, self._settings.diag_timeout, 0.2), "diagnostic snapshot"
        )
        logs = await self._read_logs(proc)
        if not settled:
            await best_effort(proc.kill(), "kill of stuck diagnostic snapshot")
        stdout = truncate((logs.stdout or "").strip(), LONG_OUTPUT)
        stderr = truncate((logs.stderr or "").strip(), LONG_OUTPUT)
        run_log.record("timestamp_missing_diag", diagStdout=stdout, diagStderr=stderr)
        return "\n".join(part for part in (stdout, stderr) if part)

    async def read_last_sync(self) -> str | None:
        """Read the completion marker from the mount.

        Returns:
            The recorded timestamp, or None if absent or malformed.
        """
        value = await self._read_marker(attempts=1)
        if value and MARKER_PATTERN.match(value):
            return value
        return None

