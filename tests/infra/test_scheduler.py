"""
Unit tests for the task scheduler

Tests delayed callbacks, cancellation and the shutdown sweep.
"""

import asyncio

import pytest

from chatrelay.infra.scheduler import TaskScheduler


class TestScheduledTask:
    """Test ScheduledTask handles."""

    @pytest.mark.asyncio
    async def test_callback_runs_after_delay(self):
        """Callback fires once the delay elapses."""
        scheduler = TaskScheduler()
        fired = []

        async def callback():
            fired.append(True)

        handle = scheduler.call_later(10, callback)
        assert scheduler.pending_count() == 1

        await handle
        assert fired == [True]
        assert handle.done
        assert not handle.cancelled
        assert scheduler.pending_count() == 0

    @pytest.mark.asyncio
    async def test_cancel_before_fire(self):
        """Cancelled tasks never run."""
        scheduler = TaskScheduler()
        fired = []

        async def callback():
            fired.append(True)

        handle = scheduler.call_later(50, callback)
        assert handle.cancel() is True

        await handle
        await asyncio.sleep(0.08)
        assert fired == []
        assert handle.cancelled

    @pytest.mark.asyncio
    async def test_cancel_after_fire_is_noop(self):
        """A finished task cannot be cancelled."""
        scheduler = TaskScheduler()

        async def callback():
            return None

        handle = scheduler.call_later(0, callback)
        await handle
        assert handle.cancel() is False

    @pytest.mark.asyncio
    async def test_callback_error_is_logged(self, caplog):
        """Callback exceptions do not escape the task."""
        scheduler = TaskScheduler()

        async def callback():
            raise ValueError("boom")

        handle = scheduler.call_later(0, callback)
        await handle
        assert "Scheduled callback failed: boom" in caplog.text


class TestTaskScheduler:
    """Test TaskScheduler sweep."""

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        """cancel_all stops every waiting task."""
        scheduler = TaskScheduler()
        fired = []

        async def callback():
            fired.append(True)

        for _ in range(3):
            scheduler.call_later(50, callback)

        assert scheduler.cancel_all() == 3
        await asyncio.sleep(0.08)
        assert fired == []
        assert scheduler.pending_count() == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_running_callbacks(self):
        """drain awaits callbacks that already started."""
        scheduler = TaskScheduler()
        started = asyncio.Event()
        finished = []

        async def callback():
            started.set()
            await asyncio.sleep(0.03)
            finished.append(True)

        handle = scheduler.call_later(0, callback)
        await started.wait()

        assert handle.running
        assert handle.cancel() is False
        assert scheduler.cancel_all() == 0

        await scheduler.drain()
        assert finished == [True]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
