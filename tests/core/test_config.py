"""Tests for core configuration classes."""

from __future__ import annotations

from pathlib import Path

from bucketsync.core.config import (
    DEFAULT_BUCKET_NAME,
    DEFAULT_MOUNT_PATH,
    StorageConfig,
    SyncPaths,
    SyncSettings,
)
from bucketsync.core.types import ProcessStatus, is_active


class TestStorageConfig:
    """Tests for StorageConfig class."""

    def test_defaults(self) -> None:
        """Should default bucket and mount path and leave credentials unset."""
        config = StorageConfig()
        assert config.bucket_name == DEFAULT_BUCKET_NAME
        assert config.mount_path == DEFAULT_MOUNT_PATH
        assert config.is_configured is False

    def test_mount_path_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from the mount path."""
        config = StorageConfig(mount_path="/mnt/r2/")
        assert config.mount_path == "/mnt/r2"
        assert config.last_sync_path == "/mnt/r2/.last-sync"

    def test_root_mount_path_kept(self) -> None:
        assert StorageConfig(mount_path="/").mount_path == "/"

    def test_is_configured_requires_all_credentials(self) -> None:
        """Should only be configured when all three credentials are present."""
        full = StorageConfig(account_id="a", access_key_id="k", secret_access_key="s")
        assert full.is_configured is True
        assert StorageConfig(account_id="a", access_key_id="k").is_configured is False
        assert StorageConfig(access_key_id="k", secret_access_key="s").is_configured is False
        assert (
            StorageConfig(account_id="", access_key_id="k", secret_access_key="s").is_configured
            is False
        )

    def test_endpoint(self) -> None:
        """Should build the R2 endpoint from the account id."""
        config = StorageConfig(account_id="acct123")
        assert config.endpoint == "https://acct123.r2.cloudflarestorage.com"

    def test_from_env(self) -> None:
        """Should read bucket, path and credentials from the environment."""
        config = StorageConfig.from_env(
            {
                "R2_BUCKET_NAME": "my-bucket",
                "R2_MOUNT_PATH": "/srv/bucket/",
                "CF_ACCOUNT_ID": "acct",
                "R2_ACCESS_KEY_ID": "key",
                "R2_SECRET_ACCESS_KEY": "secret",
            }
        )
        assert config.bucket_name == "my-bucket"
        assert config.mount_path == "/srv/bucket"
        assert config.is_configured is True

    def test_from_env_empty_values_are_unset(self) -> None:
        """Should treat empty strings as missing."""
        config = StorageConfig.from_env({"R2_ACCESS_KEY_ID": "", "R2_BUCKET_NAME": ""})
        assert config.access_key_id is None
        assert config.bucket_name == DEFAULT_BUCKET_NAME


class TestSyncPaths:
    """Tests for SyncPaths class."""

    def test_skills_default_under_workspace(self, tmp_path: Path) -> None:
        paths = SyncPaths(config_dir=tmp_path / "cfg", workspace_dir=tmp_path / "ws")
        assert paths.skills_dir == tmp_path / "ws" / "skills"
        assert paths.critical_path == tmp_path / "cfg" / "openclaw.json"

    def test_accepts_strings(self) -> None:
        """Should coerce string paths to Path."""
        paths = SyncPaths(config_dir="/a", workspace_dir="/b", skills_dir="/c")  # type: ignore[arg-type]
        assert paths.config_dir == Path("/a")
        assert paths.skills_dir == Path("/c")

    def test_from_env(self) -> None:
        paths = SyncPaths.from_env(
            {
                "BUCKETSYNC_CONFIG_DIR": "/etc/app",
                "BUCKETSYNC_WORKSPACE_DIR": "/srv/work",
            }
        )
        assert paths.config_dir == Path("/etc/app")
        assert paths.workspace_dir == Path("/srv/work")
        assert paths.skills_dir == Path("/srv/work/skills")

    def test_from_env_defaults(self) -> None:
        paths = SyncPaths.from_env({})
        assert paths.config_dir == Path.home() / ".openclaw"
        assert paths.workspace_dir == Path.home() / "clawd"


class TestSyncSettings:
    """Tests for SyncSettings class."""

    def test_defaults(self) -> None:
        settings = SyncSettings()
        assert settings.stage_timeout == 600.0
        assert settings.probe_timeout == 5.0
        assert settings.verbose is False
        assert settings.max_log_events == 50

    def test_verbose_from_debug_routes(self) -> None:
        """Should enable verbose logs when DEBUG_ROUTES or DEV_MODE is 'true'."""
        assert SyncSettings.from_env({"DEBUG_ROUTES": "true"}).verbose is True
        assert SyncSettings.from_env({"DEV_MODE": "TRUE"}).verbose is True
        assert SyncSettings.from_env({"DEBUG_ROUTES": "1"}).verbose is False
        assert SyncSettings.from_env({}).verbose is False


class TestProcessStatus:
    """Tests for active status classification."""

    def test_starting_and_running_are_active(self) -> None:
        assert is_active("starting")
        assert is_active("running")
        assert is_active(ProcessStatus.STARTING)

    def test_settled_statuses(self) -> None:
        assert not is_active("completed")
        assert not is_active(ProcessStatus.FAILED)
        assert not is_active("unknown")
