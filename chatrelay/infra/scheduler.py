"""Scheduled callbacks with explicit cancel handles.

Timer-driven work (debounce flushes, delayed retries) goes through a
``TaskScheduler`` owned by one adapter, so shutdown is a single
cancellation sweep instead of relying on timers dying with the process.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class ScheduledTask:
    """
    Handle for a callback that runs after a delay.

    ``cancel()`` only affects a task that is still waiting. Once the
    callback has started it runs to completion; use
    ``TaskScheduler.drain()`` to await it.
    """

    def __init__(
        self,
        delay_ms: float,
        callback: Callable[[], Awaitable[None]],
        on_done: Callable[["ScheduledTask"], None] | None = None,
    ):
        self._delay = max(delay_ms, 0) / 1000
        self._callback = callback
        self._on_done = on_done
        self._running = False
        self._cancelled = False
        self._task: asyncio.Task[None] = asyncio.create_task(self._run())
        self._task.add_done_callback(self._finished)

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self._delay)
            self._running = True
            await self._callback()
        except asyncio.CancelledError:
            if self._running:
                raise
        except Exception as e:
            logger.error(f"Scheduled callback failed: {e}", exc_info=True)
        finally:
            self._running = False

    def _finished(self, _task: asyncio.Task[None]) -> None:
        if self._on_done:
            self._on_done(self)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """
        Cancel the task if it has not fired yet.

        Returns:
            True if the wait was cancelled, False if it already fired
        """
        if self._running or self._task.done():
            return False
        if asyncio.current_task() is self._task:
            return False
        self._cancelled = True
        return self._task.cancel()

    def __await__(self):
        return self._wait().__await__()

    async def _wait(self) -> None:
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class TaskScheduler:
    """
    Owns every ``ScheduledTask`` created by one component.

    Usage::

        scheduler = TaskScheduler()
        handle = scheduler.call_later(2000, flush)
        handle.cancel()

        # shutdown
        scheduler.cancel_all()
        await scheduler.drain()
    """

    def __init__(self):
        self._tasks: set[ScheduledTask] = set()

    def call_later(
        self,
        delay_ms: float,
        callback: Callable[[], Awaitable[None]],
    ) -> ScheduledTask:
        """Schedule ``callback`` to run ``delay_ms`` milliseconds from now"""
        task = ScheduledTask(delay_ms, callback, on_done=self._tasks.discard)
        self._tasks.add(task)
        return task

    def cancel_all(self) -> int:
        """
        Cancel every task that is still waiting.

        Returns:
            Number of tasks cancelled
        """
        cancelled = 0
        for task in list(self._tasks):
            if task.cancel():
                cancelled += 1
        if cancelled:
            logger.debug(f"Cancelled {cancelled} scheduled task(s)")
        return cancelled

    async def drain(self) -> None:
        """Wait for callbacks that are already running"""
        running = [task for task in self._tasks if task.running]
        for task in running:
            await task

    def pending_count(self) -> int:
        return sum(1 for task in self._tasks if not task.running and not task.done)


__all__ = [
    "ScheduledTask",
    "TaskScheduler",
]
