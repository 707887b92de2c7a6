"""Shared fixtures for bucketsync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from bucketsync.core.config import StorageConfig, SyncPaths, SyncSettings
from bucketsync.sync.orchestrator import SyncOrchestrator
from tests.fakes import (
    MOUNT_PATH,
    FakeMounter,
    FakeSupervisor,
    fixed_clock,
    make_pair,
)


@pytest.fixture
def pair() -> tuple[FakeSupervisor, FakeMounter]:
    """Create a fake supervisor and mounter sharing a timeline."""
    return make_pair()


@pytest.fixture
def supervisor(pair: tuple[FakeSupervisor, FakeMounter]) -> FakeSupervisor:
    return pair[0]


@pytest.fixture
def mounter(pair: tuple[FakeSupervisor, FakeMounter]) -> FakeMounter:
    return pair[1]


@pytest.fixture
def storage_config() -> StorageConfig:
    """Create a fully configured StorageConfig."""
    return StorageConfig(
        bucket_name="test-bucket",
        mount_path=MOUNT_PATH,
        account_id="acct123",
        access_key_id="AKIDEXAMPLE",
        secret_access_key="secret-example",
    )


@pytest.fixture
def sync_paths(tmp_path: Path) -> SyncPaths:
    """Create SyncPaths under a temporary directory."""
    return SyncPaths(
        config_dir=tmp_path / ".openclaw",
        workspace_dir=tmp_path / "workspace",
    )


@pytest.fixture
def fast_settings() -> SyncSettings:
    """Settings with short timeouts so failure paths run quickly."""
    return SyncSettings(
        stage_timeout=0.3,
        probe_timeout=0.2,
        unmount_timeout=0.2,
        verify_timeout=0.2,
        marker_timeout=0.3,
        diag_timeout=0.2,
        log_poll_attempts=3,
        log_poll_interval=0.01,
    )


@pytest.fixture
def orchestrator(
    supervisor: FakeSupervisor,
    mounter: FakeMounter,
    storage_config: StorageConfig,
    sync_paths: SyncPaths,
    fast_settings: SyncSettings,
) -> SyncOrchestrator:
    """Create an orchestrator wired to the fakes."""
    return SyncOrchestrator(
        supervisor=supervisor,
        mounter=mounter,
        config=storage_config,
        paths=sync_paths,
        settings=fast_settings,
        clock=fixed_clock,
    )

