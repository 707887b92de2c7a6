"""Bounded waiting on external process handles.

A handle's `status` is the only signal available here, and it may never
settle. Supervisors report a transitional "starting" status before
"running", so both count as active: waiting on "running" alone would race
past a process that finished before ever being seen as running.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from bucketsync.core.types import is_active
from bucketsync.sync.types import ProcessTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5  # seconds


class HasStatus(Protocol):
    @property
    def status(self) -> str: ...


async def wait_for_process(
    proc: HasStatus,
    timeout: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """Wait until a process leaves the active statuses.

    Args:
        proc: Handle exposing a live `status` attribute.
        timeout: Maximum time to wait in seconds (must be positive).
        poll_interval: How often to re-read the status in seconds.

    Raises:
        ValueError: If timeout or poll_interval is not positive.
        ProcessTimeoutError: If the process is still active at the deadline.
            Never raised before `timeout` has elapsed.
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")
    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be positive, got {poll_interval}")

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while is_active(proc.status):
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise ProcessTimeoutError(timeout, str(getattr(proc.status, "value", proc.status)))
        await asyncio.sleep(min(poll_interval, remaining))
