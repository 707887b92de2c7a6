"""Run-scoped event log for one sync invocation.

This module provides:
- RunEvent: One timestamped event
- SyncRunLog: Bounded, append-only event accumulator passed through a run

Events are emitted live at DEBUG when verbose, and the whole run is flushed
once at the end as a single consolidated log line.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bucketsync.sync.types import SyncResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 50


@dataclass
class RunEvent:
    """An event recorded during a sync run."""

    elapsed_ms: int
    event: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"elapsedMs": self.elapsed_ms, "event": self.event, **self.data}


class SyncRunLog:
    """Accumulates the events of one sync run.

    Only the most recent `max_events` events are kept, so long or noisy runs
    cannot grow the bundle without bound.

    Usage:
        run_log = SyncRunLog(verbose=True)
        run_log.record("mount_ok")
        ...
        run_log.flush(result)
    """

    def __init__(
        self,
        verbose: bool = False,
        max_events: int = DEFAULT_MAX_EVENTS,
        run_id: str | None = None,
    ) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.started_at = datetime.now(UTC).isoformat()
        self.verbose = verbose
        self._start = time.monotonic()
        self._events: deque[RunEvent] = deque(maxlen=max_events)
        self._dropped = 0

    @property
    def events(self) -> list[RunEvent]:
        """Recorded events, oldest first."""
        return list(self._events)

    @property
    def event_names(self) -> list[str]:
        return [e.event for e in self._events]

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)

    def record(self, event: str, **data: Any) -> RunEvent:
        """Append an event and emit it live when verbose."""
        entry = RunEvent(elapsed_ms=self.elapsed_ms(), event=event, data=data)
        if self._events.maxlen is not None and len(self._events) == self._events.maxlen:
            self._dropped += 1
        self._events.append(entry)
        if self.verbose:
            logger.debug(
                json.dumps({"msg": "[sync]", "runId": self.run_id, **entry.to_dict()}, default=str)
            )
        return entry

    def bundle(self, result: SyncResult | None = None) -> dict[str, Any]:
        """Build the consolidated record for this run."""
        data: dict[str, Any] = {
            "msg": "[sync] run",
            "runId": self.run_id,
            "startedAt": self.started_at,
            "durationMs": self.elapsed_ms(),
            "events": [e.to_dict() for e in self._events],
        }
        if self._dropped:
            data["droppedEvents"] = self._dropped
        if result is not None:
            data["result"] = result.to_dict()
        return data

    def flush(self, result: SyncResult | None = None) -> None:
        """Emit the whole run as one log line when verbose."""
        if not self.verbose:
            return
        logger.info(json.dumps(self.bundle(result), default=str))
