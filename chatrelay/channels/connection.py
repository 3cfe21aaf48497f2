"""
Connection management with exponential-backoff reconnection.

One ``ConnectionManager`` per adapter connection. It owns the
``ReconnectManager`` attempt counter, retries failed connects with
backoff, reacts to disconnects reported by the adapter, and can be
stopped mid-wait without sitting out the remaining delay.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from chatrelay.infra.backoff import (
    DEFAULT_RECONNECT_POLICY,
    ReconnectManager,
    ReconnectPolicy,
    SleepAborted,
    sleep_with_abort,
)

logger = logging.getLogger(__name__)

DisconnectReason = BaseException | str | None


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    STOPPED = "stopped"


class ConnectionManager:
    """
    Drives connect/reconnect for a single connection.

    - ``start()``: connect, retrying failures with backoff
    - ``on_connected()``: reset the attempt counter
    - ``on_disconnected(reason)``: schedule a reconnect in the background
    - ``stop()``: abort any pending wait and stop reconnecting

    When ``max_attempts`` retries fail the state becomes ``EXHAUSTED`` and
    nothing happens until ``reconnect()`` is called. Errors rejected by
    ``should_retry`` end in ``FAILED`` immediately.

    Usage:
        manager = ConnectionManager(
            "whatsapp",
            connect=adapter.do_connect,
            policy=config.reconnect.to_policy(),
            should_retry=is_recoverable_network_error,
        )
        await manager.start()
        ...
        await manager.stop()
    """

    def __init__(
        self,
        name: str,
        connect: Callable[[], Awaitable[None]],
        policy: ReconnectPolicy = DEFAULT_RECONNECT_POLICY,
        should_retry: Callable[[DisconnectReason], bool] | None = None,
        on_exhausted: Callable[[DisconnectReason], None] | None = None,
    ):
        self.name = name
        self._connect = connect
        self._reconnect = ReconnectManager(policy)
        self._should_retry = should_retry
        self._on_exhausted = on_exhausted
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[bool] | None = None
        self._state = ConnectionState.IDLE
        self.last_error: DisconnectReason = None
        self.total_reconnects = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._reconnect.attempts

    @property
    def policy(self) -> ReconnectPolicy:
        return self._reconnect.policy

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    async def start(self) -> bool:
        """
        Connect, retrying with backoff.

        Returns:
            True once connected; False if stopped, exhausted or failed
        """
        self._stop_event.clear()
        return await self._connect_loop()

    async def reconnect(self) -> bool:
        """Manual reconnect trigger; also revives an exhausted connection."""
        self._reconnect.reset()
        return await self.start()

    def on_connected(self) -> None:
        if self._reconnect.attempts:
            logger.info(f"[{self.name}] Reconnected after {self._reconnect.attempts} attempt(s)")
        self._reconnect.reset()
        self.last_error = None
        self._state = ConnectionState.CONNECTED

    def on_disconnected(self, reason: DisconnectReason = None) -> None:
        """Schedule a background reconnect unless stopped or already running."""
        if self._stop_event.is_set() or self._state == ConnectionState.STOPPED:
            return

        self.last_error = reason
        if not self._is_retryable(reason):
            logger.error(f"[{self.name}] Disconnected, not retrying: {reason}")
            self._state = ConnectionState.FAILED
            return

        if self._task and not self._task.done():
            return

        self._state = ConnectionState.RECONNECTING
        self._task = asyncio.create_task(self._reconnect_after_disconnect())

    async def stop(self) -> None:
        """Stop reconnecting; a pending backoff wait is aborted at once."""
        self._stop_event.set()
        self._state = ConnectionState.STOPPED
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            await task

    def _is_retryable(self, reason: DisconnectReason) -> bool:
        if self._should_retry is None:
            return True
        return self._should_retry(reason)

    async def _reconnect_after_disconnect(self) -> bool:
        if not await self._backoff(self.last_error):
            return False
        self.total_reconnects += 1
        return await self._connect_loop()

    async def _backoff(self, reason: DisconnectReason) -> bool:
        """Wait out the next delay; False if exhausted or stopped."""
        if self._reconnect.is_exhausted():
            self._state = ConnectionState.EXHAUSTED
            logger.error(
                f"[{self.name}] Reconnect attempts exhausted "
                f"({self._reconnect.attempts}/{self.policy.max_attempts}): {reason}"
            )
            if self._on_exhausted:
                self._on_exhausted(reason)
            return False

        delay = self._reconnect.next_delay()
        self._state = ConnectionState.RECONNECTING
        logger.warning(
            f"[{self.name}] Reconnecting in {delay}ms "
            f"(attempt {self._reconnect.attempts}/{self.policy.max_attempts}): {reason}"
        )

        try:
            await sleep_with_abort(delay, self._stop_event)
        except SleepAborted:
            logger.info(f"[{self.name}] Reconnect wait aborted")
            self._state = ConnectionState.STOPPED
            return False
        return True

    async def _connect_loop(self) -> bool:
        while not self._stop_event.is_set():
            if self._state != ConnectionState.RECONNECTING:
                self._state = ConnectionState.CONNECTING
            try:
                await self._connect()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.last_error = e
                if not self._is_retryable(e):
                    logger.error(f"[{self.name}] Connect failed, not retrying: {e}")
                    self._state = ConnectionState.FAILED
                    return False
                if not await self._backoff(e):
                    return False
                continue

            if self._stop_event.is_set():
                break
            self.on_connected()
            return True

        self._state = ConnectionState.STOPPED
        return False


__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "DisconnectReason",
]
