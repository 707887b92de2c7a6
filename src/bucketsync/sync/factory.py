"""Build a SyncOrchestrator wired to the local supervisor and s3fs."""

from __future__ import annotations

from collections.abc import Mapping

from bucketsync.core.config import StorageConfig, SyncPaths, SyncSettings
from bucketsync.sandbox.local import LocalProcessSupervisor, S3fsMounter
from bucketsync.sync.orchestrator import SyncOrchestrator


def create_orchestrator(
    environ: Mapping[str, str] | None = None,
    verbose: bool | None = None,
) -> SyncOrchestrator:
    """Create an orchestrator from environment configuration.

    Args:
        environ: Mapping to read configuration from (default: os.environ).
        verbose: Force verbose run logs on or off (default: from environment).

    Returns:
        SyncOrchestrator using LocalProcessSupervisor and S3fsMounter.
    """
    settings = SyncSettings.from_env(environ)
    if verbose is not None:
        settings.verbose = verbose
    return SyncOrchestrator(
        supervisor=LocalProcessSupervisor(),
        mounter=S3fsMounter(),
        config=StorageConfig.from_env(environ),
        paths=SyncPaths.from_env(environ),
        settings=settings,
    )
