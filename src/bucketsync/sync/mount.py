"""Mount-state reconciliation for the bucket mount.

This module provides:
- MountProbe: Immutable snapshot of the mount state at one instant
- is_mount_path_in_use: Classify a mount failure as a "path in use" race
- MountController: Probe, recover and (re)mount idempotently

A stale FUSE mount can make even `stat` hang forever, so every probe runs
under a short wait bound and reports UNRESPONSIVE instead of hanging. The
filesystem type at the path is the authoritative signal: the kernel mount
table can disagree with what the mount primitive considers "in use".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bucketsync.core.config import StorageConfig, SyncSettings
from bucketsync.core.types import MountState
from bucketsync.sandbox.protocol import (
    BucketMounter,
    Credentials,
    MountPathInUseError,
    ProcessLogs,
    ProcessSupervisor,
)
from bucketsync.sync.best_effort import best_effort
from bucketsync.sync.commands import lazy_unmount_command, probe_command
from bucketsync.sync.types import ProcessTimeoutError, Sentinel
from bucketsync.sync.wait import wait_for_process

logger = logging.getLogger(__name__)

PROBE_POLL_INTERVAL = 0.2  # seconds


@dataclass(frozen=True)
class MountProbe:
    """State of the mount when the probe ran.

    Advisory only for that instant: anything that may change the mount
    (an unmount, a mount attempt) requires a fresh probe.
    """

    state: MountState
    fs_type: str | None = None

    @classmethod
    def mounted(cls, fs_type: str) -> MountProbe:
        return cls(MountState.MOUNTED, fs_type)

    @classmethod
    def not_mounted(cls, fs_type: str) -> MountProbe:
        return cls(MountState.NOT_MOUNTED, fs_type)

    @classmethod
    def unresponsive(cls) -> MountProbe:
        return cls(MountState.UNRESPONSIVE)

    @property
    def is_mounted(self) -> bool:
        return self.state == MountState.MOUNTED


def parse_fs_type(stdout: str) -> MountProbe:
    """Interpret the output of the probe command."""
    words = stdout.strip().split()
    fs_type = words[0] if words else ""
    if not fs_type or fs_type == Sentinel.ERR.value:
        return MountProbe.not_mounted(fs_type or Sentinel.ERR.value)
    # s3fs and other FUSE mounts report fuse, fuse.s3fs, fuseblk...
    if fs_type.startswith("fuse"):
        return MountProbe.mounted(fs_type)
    return MountProbe.not_mounted(fs_type)


def is_mount_path_in_use(error: BaseException) -> bool:
    """Check whether a mount failure means the target path is already in use.

    Mounters that know the case raise MountPathInUseError. Others only give
    free text, which is matched on the platform's current wording.
    """
    if isinstance(error, MountPathInUseError):
        return True
    message = str(error)
    return (
        "InvalidMountConfigError" in message
        and "Mount path" in message
        and "already in use" in message
    )


class MountController:
    """Ensures the bucket is mounted and live.

    Safe to call on every sync cycle: an already healthy mount costs a
    single probe and no mount call.

    Usage:
        controller = MountController(supervisor, mounter, config)
        if not await controller.ensure_mounted():
            ...  # run without durable backing this cycle
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        mounter: BucketMounter,
        config: StorageConfig,
        settings: SyncSettings | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            supervisor: Process supervisor used for probes and unmounts.
            mounter: Bucket mount primitive.
            config: Bucket, path and credentials.
            settings: Timeouts (default: SyncSettings()).
        """
        self._supervisor = supervisor
        self._mounter = mounter
        self._config = config
        self._settings = settings or SyncSettings()

    @property
    def mount_path(self) -> str:
        return self._config.mount_path

    async def probe(self) -> MountProbe:
        """Probe the mount path without hanging on a stale mount.

        Returns:
            MountProbe; UNRESPONSIVE if the probe did not settle in time.
        """
        proc = await self._supervisor.start_process(probe_command(self.mount_path))
        try:
            await wait_for_process(proc, self._settings.probe_timeout, PROBE_POLL_INTERVAL)
        except ProcessTimeoutError:
            logger.warning(f"Mount probe at {self.mount_path} did not settle; treating as unresponsive")
            await best_effort(proc.kill(), "kill of stuck mount probe")
            return MountProbe.unresponsive()

        try:
            logs = await proc.get_logs()
        except Exception as e:
            logger.debug(f"Could not read mount probe output: {e}")
            logs = ProcessLogs()
        return parse_fs_type(logs.stdout or "")

    async def lazy_unmount(self) -> bool:
        """Try to detach a hung mount without blocking on it.

        Returns:
            True if the unmount command settled in time. The mount may still
            be present either way; re-probe to find out.
        """
        logger.info(f"Attempting lazy unmount of {self.mount_path}")
        try:
            proc = await self._supervisor.start_process(lazy_unmount_command(self.mount_path))
        except Exception as e:
            logger.warning(f"Could not start lazy unmount: {e}")
            return False
        try:
            await wait_for_process(proc, self._settings.unmount_timeout, PROBE_POLL_INTERVAL)
        except ProcessTimeoutError:
            # If the unmount itself hangs, carry on and rely on the mount error
            logger.warning(f"Lazy unmount of {self.mount_path} did not settle")
            await best_effort(proc.kill(), "kill of stuck lazy unmount")
            return False
        return True

    async def _mount(self) -> None:
        await self._mounter.mount_bucket(
            self._config.bucket_name,
            self.mount_path,
            endpoint=self._config.endpoint,
            credentials=Credentials(
                access_key_id=self._config.access_key_id or "",
                secret_access_key=self._config.secret_access_key or "",
            ),
        )

    async def ensure_mounted(self) -> bool:
        """Make sure the bucket is mounted at the mount path.

        Never raises: a False return means no durable backing is available
        this cycle.

        Returns:
            True if the bucket is (now) mounted.
        """
        if not self._config.is_configured:
            logger.info(
                "R2 storage not configured (missing R2_ACCESS_KEY_ID, "
                "R2_SECRET_ACCESS_KEY, or CF_ACCOUNT_ID)"
            )
            return False

        try:
            return await self._ensure_mounted()
        except Exception:
            logger.exception(f"Unexpected error while mounting {self.mount_path}")
            return False

    async def _ensure_mounted(self) -> bool:
        initial = await self.probe()
        if initial.is_mounted:
            logger.info(f"Bucket already mounted at {self.mount_path} (fsType: {initial.fs_type})")
            return True

        if initial.state == MountState.UNRESPONSIVE:
            logger.info(f"Mount at {self.mount_path} appears unresponsive, attempting remount")
            await self.lazy_unmount()
        else:
            logger.info(f"Mount not detected at {self.mount_path} (fsType: {initial.fs_type})")

        try:
            logger.info(f"Mounting bucket {self._config.bucket_name} at {self.mount_path}")
            await self._mount()
        except Exception as e:
            logger.info(f"Mount error: {e}")
            if is_mount_path_in_use(e) and await self._recover_path_in_use():
                return True
            logger.error(f"Failed to mount bucket at {self.mount_path}: {e}")
            return False

        logger.info("Bucket mounted successfully - data will persist across sessions")
        return True

    async def _recover_path_in_use(self) -> bool:
        """Resolve a "path already in use" failure by re-probing."""
        probe = await self.probe()
        if probe.is_mounted:
            logger.info(f"Mount path is in use and appears mounted (fsType: {probe.fs_type})")
            return True
        if probe.state != MountState.UNRESPONSIVE:
            return False

        logger.info(f"Mount path is in use but unresponsive; attempting remount at {self.mount_path}")
        await self.lazy_unmount()
        try:
            await self._mount()
        except Exception as e:
            logger.info(f"Remount error: {e}")
            return False
        logger.info("Bucket mounted successfully after remount attempt")
        return True
