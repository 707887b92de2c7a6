"""Best-effort operations that must never block the critical path.

Unmounting a hung mount, killing a stuck rsync and collecting diagnostics
can all fail. None of those failures should change the outcome of a sync,
so they are run through best_effort(), which reports success as a bool and
logs the failure instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable

logger = logging.getLogger(__name__)


async def best_effort(operation: Awaitable[object], description: str) -> bool:
    """Await an operation, swallowing and logging any exception.

    Args:
        operation: Awaitable to run.
        description: Short description for the log message.

    Returns:
        True if the operation completed, False if it raised.
    """
    try:
        await operation
    except Exception as e:
        logger.warning(f"Best-effort {description} failed: {e}")
        return False
    return True
