"""
Inbound message debouncing.

Batches rapid consecutive messages from the same conversation/sender so
the agent sees one turn instead of several half-sentences.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from chatrelay.infra.scheduler import ScheduledTask, TaskScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class DebounceBuffer(Generic[T]):
    """Items waiting for one key's quiet window to elapse"""

    key: str
    items: list[T] = field(default_factory=list)
    timer: ScheduledTask | None = None


class InboundDebouncer(Generic[T]):
    """
    Per-key debouncer with a trailing, extendable window.

    Every new item for a key resets that key's timer, so a continuous
    burst is delivered once input stops for ``debounce_ms``. Items whose
    key is empty, items rejected by ``should_debounce``, and every item
    when ``debounce_ms`` is 0 are delivered alone, right away, after any
    buffered items for the same key.

    Usage:
        debouncer = InboundDebouncer(
            debounce_ms=2000,
            build_key=lambda msg: f"{msg.chat_id}:{msg.sender_id}",
            should_debounce=lambda msg: not msg.attachments,
            on_flush=process_batch,
            on_error=lambda err, items: logger.error(f"batch failed: {err}"),
        )

        await debouncer.enqueue(message)
        ...
        await debouncer.flush_all()  # shutdown
    """

    def __init__(
        self,
        debounce_ms: int,
        build_key: Callable[[T], str | None],
        on_flush: Callable[[list[T]], Awaitable[None]],
        should_debounce: Callable[[T], bool] | None = None,
        on_error: Callable[[Exception, list[T]], None] | None = None,
        scheduler: TaskScheduler | None = None,
    ):
        """
        Args:
            debounce_ms: Quiet window in milliseconds; 0 disables batching
            build_key: Key for an item; None/empty means "do not batch"
            on_flush: Async handler receiving one batch in arrival order
            should_debounce: Optional predicate; False delivers immediately
            on_error: Called with the exception and batch when on_flush fails
            scheduler: Scheduler for flush timers (a private one by default)
        """
        self.debounce_ms = max(0, int(debounce_ms))
        self._build_key = build_key
        self._on_flush = on_flush
        self._should_debounce = should_debounce
        self._on_error = on_error
        self._scheduler = scheduler or TaskScheduler()
        self._buffers: dict[str, DebounceBuffer[T]] = {}
        # key -> flushes whose handler is still running
        self._in_flight: dict[str, dict[asyncio.Future[None], asyncio.Task | None]] = {}

    async def enqueue(self, item: T) -> None:
        """Add an item; returns without waiting for the window."""
        key = self._build_key(item)
        can_debounce = self.debounce_ms > 0 and (
            self._should_debounce(item) if self._should_debounce else True
        )

        if not can_debounce or not key:
            # Keep ordering: anything already buffered for this key goes first
            if key and key in self._buffers:
                await self.flush_key(key)
            await self._deliver([item])
            return

        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = DebounceBuffer(key=key)
            self._buffers[key] = buffer

        buffer.items.append(item)
        self._schedule_flush(buffer)

    def _schedule_flush(self, buffer: DebounceBuffer[T]) -> None:
        if buffer.timer:
            buffer.timer.cancel()

        async def fire() -> None:
            # A newer buffer may own the key by now
            if self._buffers.get(buffer.key) is buffer:
                await self._flush_buffer(buffer)

        buffer.timer = self._scheduler.call_later(self.debounce_ms, fire)

    async def _flush_buffer(self, buffer: DebounceBuffer[T]) -> None:
        if self._buffers.get(buffer.key) is buffer:
            del self._buffers[buffer.key]

        if buffer.timer:
            buffer.timer.cancel()
            buffer.timer = None

        if not buffer.items:
            return

        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        in_flight = self._in_flight.setdefault(buffer.key, {})
        in_flight[done] = asyncio.current_task()
        try:
            await self._deliver(buffer.items)
        finally:
            done.set_result(None)
            in_flight.pop(done, None)
            if not in_flight and self._in_flight.get(buffer.key) is in_flight:
                del self._in_flight[buffer.key]

    async def _deliver(self, items: list[T]) -> None:
        try:
            await self._on_flush(items)
        except Exception as e:
            if self._on_error:
                self._on_error(e, items)
            else:
                logger.error(f"Debounce flush failed ({len(items)} item(s)): {e}", exc_info=True)

    async def flush_key(self, key: str) -> None:
        """Deliver the buffer for ``key`` now and wait for its running flushes."""
        buffer = self._buffers.get(key)
        if buffer is not None:
            await self._flush_buffer(buffer)

        # A handler flushing its own key must not wait on itself
        current = asyncio.current_task()
        in_flight = [
            f for f, owner in self._in_flight.get(key, {}).items()
            if not f.done() and owner is not current
        ]
        if in_flight:
            await asyncio.gather(*in_flight)

    async def flush_all(self) -> None:
        """Deliver every pending buffer and wait for in-flight flushes."""
        keys = list(self._buffers.keys() | self._in_flight.keys())
        await asyncio.gather(*(self.flush_key(key) for key in keys))
        await self._scheduler.drain()

    async def close(self) -> None:
        """Cancel all flush timers, then deliver what was buffered."""
        self._scheduler.cancel_all()
        await self.flush_all()

    def is_pending(self, key: str) -> bool:
        return key in self._buffers

    def pending_count(self, key: str) -> int:
        buffer = self._buffers.get(key)
        return len(buffer.items) if buffer else 0

    def pending_keys(self) -> list[str]:
        return list(self._buffers.keys())


__all__ = [
    "DebounceBuffer",
    "InboundDebouncer",
]
