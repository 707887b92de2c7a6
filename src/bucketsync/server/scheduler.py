"""Scheduler for periodic replication.

This module provides:
- run_sync_once: Run one orchestrator pass from synchronous code
- SyncScheduler: Background job replicating into the mount every N minutes
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from bucketsync.sync.orchestrator import SyncOrchestrator
    from bucketsync.sync.types import SyncResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 5.0


def run_sync_once(orchestrator: SyncOrchestrator) -> SyncResult:
    """Run one sync pass on a fresh event loop.

    Args:
        orchestrator: Orchestrator to run.

    Returns:
        The SyncResult of the pass.
    """
    result = asyncio.run(orchestrator.sync())
    if result.success:
        if result.last_sync:
            logger.info("Scheduled sync completed (lastSync=%s)", result.last_sync)
        else:
            logger.info("Scheduled sync skipped: %s", result.details)
    else:
        logger.warning("Scheduled sync failed: %s (%s)", result.error, result.details)
    return result


class SyncScheduler:
    """Scheduler replicating local state into the mount at a fixed interval.

    The job never overlaps itself; overlapping runs from other processes
    are caught by the orchestrator's dedup check.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: Orchestrator run by each job.
            interval_minutes: Minutes between runs.
        """
        self._orchestrator = orchestrator
        self._interval_minutes = interval_minutes
        self._scheduler: BackgroundScheduler | None = None
        self.last_result: SyncResult | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _sync_job(self) -> None:
        """Job function for scheduled sync."""
        logger.info("Starting scheduled sync (every %.1f minutes)", self._interval_minutes)
        try:
            self.last_result = run_sync_once(self._orchestrator)
        except Exception:
            logger.exception("Error during scheduled sync")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._sync_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id="bucket_sync",
            name="Periodic bucket sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Sync scheduler started (every %.1f minutes)", self._interval_minutes)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Sync scheduler stopped")

    def run_now(self) -> SyncResult:
        """Run a sync immediately (manual trigger)."""
        self.last_result = run_sync_once(self._orchestrator)
        return self.last_result
