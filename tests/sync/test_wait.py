"""Tests for bounded process waiting."""

from __future__ import annotations

import time

import pytest

from bucketsync.core.types import ProcessStatus
from bucketsync.sync.types import ProcessTimeoutError
from bucketsync.sync.wait import wait_for_process
from tests.fakes import FakeProcess


def make_process(*statuses: str) -> FakeProcess:
    return FakeProcess("true", "fake-1", statuses=list(statuses))


class TestWaitForProcess:
    """Tests for wait_for_process."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_settled(self) -> None:
        """A completed process should not be polled again."""
        proc = make_process("completed")
        await wait_for_process(proc, timeout=1.0, poll_interval=0.01)
        assert proc.status_reads == 1

    @pytest.mark.asyncio
    async def test_waits_through_starting(self) -> None:
        """'starting' counts as active, not done."""
        proc = make_process("starting", "starting", "running", "completed")
        await wait_for_process(proc, timeout=1.0, poll_interval=0.01)
        assert proc.status_reads == 4

    @pytest.mark.asyncio
    async def test_failed_status_settles(self) -> None:
        """A failed process has settled; interpreting it is the caller's job."""
        proc = make_process("running", "failed")
        await wait_for_process(proc, timeout=1.0, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_unknown_status_settles(self) -> None:
        """Statuses outside starting/running are treated as settled."""
        proc = make_process("running", "exited-ish")
        await wait_for_process(proc, timeout=1.0, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_enum_status_is_understood(self) -> None:
        """ProcessStatus members compare like their string values."""
        proc = make_process(ProcessStatus.RUNNING, ProcessStatus.COMPLETED)
        await wait_for_process(proc, timeout=1.0, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_times_out_never_early(self) -> None:
        """A process stuck in 'running' should time out at or after the bound."""
        proc = make_process("running")
        timeout = 0.2

        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError) as exc_info:
            await wait_for_process(proc, timeout=timeout, poll_interval=0.05)
        elapsed = time.monotonic() - start

        assert elapsed >= timeout
        assert exc_info.value.status == "running"
        assert exc_info.value.timeout == timeout
        assert "timed out after 200ms" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_poll_interval_larger_than_timeout(self) -> None:
        """The deadline should bound the wait even with a coarse poll interval."""
        proc = make_process("starting")

        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError) as exc_info:
            await wait_for_process(proc, timeout=0.1, poll_interval=5.0)

        assert time.monotonic() - start < 2.0
        assert exc_info.value.status == "starting"

    @pytest.mark.asyncio
    async def test_timeout_is_a_timeout_error(self) -> None:
        """Callers catching TimeoutError should see the wait timeout too."""
        proc = make_process("running")
        with pytest.raises(TimeoutError):
            await wait_for_process(proc, timeout=0.05, poll_interval=0.01)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("timeout", "interval"), [(0, 0.1), (-1, 0.1), (1.0, 0)])
    async def test_rejects_non_positive_bounds(self, timeout: float, interval: float) -> None:
        """Zero or negative timeout/poll interval should be rejected."""
        with pytest.raises(ValueError):
            await wait_for_process(make_process("running"), timeout=timeout, poll_interval=interval)
