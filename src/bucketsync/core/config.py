"""Shared configuration classes for bucketsync.

This module defines configuration classes used by the orchestrator, the CLI
and the HTTP server.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BUCKET_NAME = "openclaw-data"
DEFAULT_MOUNT_PATH = "/data/openclaw"


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


@dataclass
class StorageConfig:
    """Configuration for the remote bucket backing the working tree.

    Only presence of the credentials matters to the orchestrator: when any of
    them is missing, no process is started and no mount is attempted.

    Attributes:
        bucket_name: Name of the R2 bucket to mount.
        mount_path: Local path where the bucket is mounted.
        account_id: Cloudflare account identifier (used to build the endpoint).
        access_key_id: R2 access key id.
        secret_access_key: R2 secret access key.
    """

    bucket_name: str = DEFAULT_BUCKET_NAME
    mount_path: str = DEFAULT_MOUNT_PATH
    account_id: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None

    def __post_init__(self) -> None:
        """Normalize mount path."""
        if self.mount_path != "/":
            self.mount_path = self.mount_path.rstrip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> StorageConfig:
        """Build a StorageConfig from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ).

        Returns:
            StorageConfig with unset credentials left as None.
        """
        env = os.environ if environ is None else environ
        return cls(
            bucket_name=env.get("R2_BUCKET_NAME") or DEFAULT_BUCKET_NAME,
            mount_path=env.get("R2_MOUNT_PATH") or DEFAULT_MOUNT_PATH,
            account_id=env.get("CF_ACCOUNT_ID") or None,
            access_key_id=env.get("R2_ACCESS_KEY_ID") or None,
            secret_access_key=env.get("R2_SECRET_ACCESS_KEY") or None,
        )

    @property
    def is_configured(self) -> bool:
        """Check whether every credential needed to mount is present."""
        return bool(self.access_key_id and self.secret_access_key and self.account_id)

    @property
    def endpoint(self) -> str:
        """Get the S3-compatible endpoint URL for the account.

        Returns:
            Endpoint URL of the form https://<account>.r2.cloudflarestorage.com.
        """
        return f"https://{self.account_id}.r2.cloudflarestorage.com"

    @property
    def last_sync_path(self) -> str:
        """Path of the completion marker inside the mount."""
        return f"{self.mount_path}/.last-sync"


@dataclass
class SyncPaths:
    """Local source trees replicated into the mount.

    Attributes:
        config_dir: Application config directory (mirrored to <mount>/openclaw/).
        workspace_dir: Working tree (mirrored to <mount>/workspace/, minus skills).
        skills_dir: Skills subtree (mirrored to <mount>/skills/).
        critical_file: File that must exist in config_dir before any sync.
    """

    config_dir: Path = field(default_factory=lambda: Path.home() / ".openclaw")
    workspace_dir: Path = field(default_factory=lambda: Path.home() / "clawd")
    skills_dir: Path | None = None
    critical_file: str = "openclaw.json"

    def __post_init__(self) -> None:
        """Resolve the skills directory relative to the workspace."""
        self.config_dir = Path(self.config_dir)
        self.workspace_dir = Path(self.workspace_dir)
        if self.skills_dir is None:
            self.skills_dir = self.workspace_dir / "skills"
        else:
            self.skills_dir = Path(self.skills_dir)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SyncPaths:
        """Build SyncPaths from BUCKETSYNC_* environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, Path] = {}
        if env.get("BUCKETSYNC_CONFIG_DIR"):
            kwargs["config_dir"] = Path(env["BUCKETSYNC_CONFIG_DIR"]).expanduser()
        if env.get("BUCKETSYNC_WORKSPACE_DIR"):
            kwargs["workspace_dir"] = Path(env["BUCKETSYNC_WORKSPACE_DIR"]).expanduser()
        if env.get("BUCKETSYNC_SKILLS_DIR"):
            kwargs["skills_dir"] = Path(env["BUCKETSYNC_SKILLS_DIR"]).expanduser()
        return cls(**kwargs)

    @property
    def critical_path(self) -> Path:
        """Absolute path of the critical config file."""
        return self.config_dir / self.critical_file


@dataclass
class SyncSettings:
    """Timeouts and diagnostics for one orchestrator.

    All durations are in seconds.

    Attributes:
        stage_timeout: Maximum time for a single rsync pass.
        probe_timeout: Maximum time for a mount probe before it is unresponsive.
        unmount_timeout: Maximum time for the lazy unmount attempt.
        verify_timeout: Best-effort wait for the preflight check.
        marker_timeout: Maximum time for the marker write and read-back.
        diag_timeout: Maximum time for the diagnostic snapshot.
        verbose: Emit run log events and the consolidated bundle.
        max_log_events: Number of most recent events kept in the bundle.
        log_poll_attempts: Reads of captured output when waiting for a sentinel.
        log_poll_interval: Delay between those reads.
    """

    stage_timeout: float = 600.0
    probe_timeout: float = 5.0
    unmount_timeout: float = 5.0
    verify_timeout: float = 10.0
    marker_timeout: float = 15.0
    diag_timeout: float = 5.0
    verbose: bool = False
    max_log_events: int = 50
    log_poll_attempts: int = 50
    log_poll_interval: float = 0.1

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SyncSettings:
        """Build SyncSettings, enabling verbose mode from DEBUG_ROUTES/DEV_MODE."""
        env = os.environ if environ is None else environ
        return cls(
            verbose=_env_flag(env.get("DEBUG_ROUTES")) or _env_flag(env.get("DEV_MODE")),
        )
