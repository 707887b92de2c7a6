"""Tests for FastAPI server endpoints."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from bucketsync.core.config import StorageConfig, SyncPaths, SyncSettings
from bucketsync.sandbox.protocol import MountError
from bucketsync.server.app import create_app
from bucketsync.sync.orchestrator import SyncOrchestrator
from tests.fakes import (
    LAST_SYNC,
    MOUNT_PATH,
    PREFLIGHT,
    PROBE,
    READ_MARKER,
    FakeMounter,
    FakeProcess,
    FakeSupervisor,
    script_healthy_run,
)


@pytest.fixture
def client(orchestrator: SyncOrchestrator) -> TestClient:
    """Create a test client around the fake-backed orchestrator."""
    return TestClient(create_app(orchestrator))


@pytest.fixture
def unconfigured_client(
    supervisor: FakeSupervisor, mounter: FakeMounter, tmp_path: Path, fast_settings: SyncSettings
) -> TestClient:
    """Create a test client whose storage has no credentials."""
    orchestrator = SyncOrchestrator(
        supervisor,
        mounter,
        StorageConfig(mount_path=MOUNT_PATH),
        SyncPaths(config_dir=tmp_path / "cfg", workspace_dir=tmp_path / "ws"),
        fast_settings,
    )
    return TestClient(create_app(orchestrator))


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Should return ok status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSyncEndpoint:
    """Tests for POST /api/storage/sync."""

    def test_success(self, client: TestClient, supervisor: FakeSupervisor) -> None:
        """Should return 200 with the verified timestamp."""
        script_healthy_run(supervisor)

        response = client.post("/api/storage/sync")

        assert response.status_code == 200
        assert response.json() == {"success": True, "lastSync": LAST_SYNC}

    def test_not_configured(self, unconfigured_client: TestClient) -> None:
        """Should return 400 when credentials are missing."""
        response = unconfigured_client.post("/api/storage/sync")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "R2 storage is not configured"
        assert data["kind"] == "not_configured"

    def test_mount_failure(
        self, client: TestClient, supervisor: FakeSupervisor, mounter: FakeMounter
    ) -> None:
        """Should return 500 for any other failure."""
        supervisor.on(PROBE, {"stdout": "__ERR__"})
        mounter.errors = [MountError("access denied")]

        response = client.post("/api/storage/sync")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to mount R2 storage"

    def test_preflight_abort(self, client: TestClient, supervisor: FakeSupervisor) -> None:
        supervisor.on(PROBE, {"stdout": "fuse.s3fs"})
        supervisor.on(PREFLIGHT, {"stdout": "__MISSING__\n"})

        response = client.post("/api/storage/sync")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Sync aborted: source missing openclaw.json"
        assert "lastSync" not in data

    def test_no_orchestrator(self) -> None:
        """Should return 503 when the server has no orchestrator."""
        client = TestClient(create_app(None))
        response = client.post("/api/storage/sync")
        assert response.status_code == 503


class TestStorageStatusEndpoint:
    """Tests for GET /api/storage."""

    def test_mounted(self, client: TestClient, supervisor: FakeSupervisor) -> None:
        """Should report mount state and the last completed sync."""
        supervisor.on(PROBE, {"stdout": "fuse.s3fs\n"})
        supervisor.on(READ_MARKER, {"stdout": f"{LAST_SYNC}\n"})

        response = client.get("/api/storage")

        assert response.status_code == 200
        assert response.json() == {
            "configured": True,
            "bucket": "test-bucket",
            "mountPath": MOUNT_PATH,
            "mountState": "mounted",
            "fsType": "fuse.s3fs",
            "lastSync": LAST_SYNC,
        }

    def test_not_mounted(self, client: TestClient, supervisor: FakeSupervisor) -> None:
        """Should not look for the marker when nothing is mounted."""
        supervisor.on(PROBE, {"stdout": "__ERR__"})

        data = client.get("/api/storage").json()

        assert data["mountState"] == "not_mounted"
        assert data["lastSync"] is None
        assert supervisor.commands(READ_MARKER) == []

    def test_not_configured(
        self, unconfigured_client: TestClient, supervisor: FakeSupervisor
    ) -> None:
        """Should not start any process without credentials."""
        data = unconfigured_client.get("/api/storage").json()

        assert data["configured"] is False
        assert data["mountState"] is None
        assert supervisor.started == []

    def test_mount_check_error_reports_unknown(
        self, client: TestClient, supervisor: FakeSupervisor
    ) -> None:
        """Should report an unknown mount state when the mount cannot be checked."""

        async def start_process(command: str) -> FakeProcess:
            raise RuntimeError("supervisor unavailable")

        supervisor.start_process = start_process  # type: ignore[method-assign]

        response = client.get("/api/storage")

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is True
        assert data["mountState"] == "unknown"
        assert data["fsType"] is None
        assert data["lastSync"] is None
