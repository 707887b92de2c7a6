"""FastAPI application for the bucketsync server.

This module creates and configures the FastAPI application with:
- Health check
- Storage status and manual sync trigger
- Optional periodic sync scheduler

Usage:
    uvicorn bucketsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from bucketsync.server.api.router import router as api_router
from bucketsync.server.scheduler import SyncScheduler
from bucketsync.sync.factory import create_orchestrator
from bucketsync.sync.orchestrator import SyncOrchestrator

# Configuration from environment variables with defaults
LOG_PATH = Path(os.environ.get("BUCKETSYNC_LOG_PATH", "bucketsync-server.log"))
SYNC_INTERVAL_MINUTES = float(os.environ.get("BUCKETSYNC_SYNC_INTERVAL", "0"))

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure logging to output to stdout and optionally a file.

    Args:
        log_path: Path to the log file (None for stdout only).
        level: Log level for the bucketsync logger.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for bucketsync
    root_logger = logging.getLogger("bucketsync")
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(
    orchestrator: SyncOrchestrator | None,
    sync_interval_minutes: float = 0.0,
) -> FastAPI:
    """Create FastAPI application around an orchestrator.

    This is primarily used for testing with fake supervisors.

    Args:
        orchestrator: Orchestrator serving the storage routes.
        sync_interval_minutes: Run a periodic sync every N minutes (0 disables).

    Returns:
        Configured FastAPI application.
    """
    scheduler: SyncScheduler | None = None
    if orchestrator is not None and sync_interval_minutes > 0:
        scheduler = SyncScheduler(orchestrator, interval_minutes=sync_interval_minutes)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("bucketsync Server Starting")
        logger.info("=" * 60)
        if orchestrator is not None:
            config = orchestrator.config
            logger.info("  Bucket:     %s", config.bucket_name)
            logger.info("  Mount path: %s", config.mount_path)
            logger.info("  Configured: %s", config.is_configured)
        else:
            logger.info("  Storage:    None (sync disabled)")
        if scheduler is not None:
            logger.info("  Schedule:   every %.1f minutes", sync_interval_minutes)
            scheduler.start()
        logger.info("=" * 60)

        yield

        # Shutdown
        if scheduler is not None:
            scheduler.stop()
        logger.info("bucketsync Server shutting down")

    application = FastAPI(
        title="bucketsync Server",
        description="Replicates a local working tree into a mounted bucket",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.orchestrator = orchestrator
    application.state.scheduler = scheduler

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    return create_app(
        orchestrator=create_orchestrator(),
        sync_interval_minutes=SYNC_INTERVAL_MINUTES,
    )
