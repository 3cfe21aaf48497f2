"""Exponential backoff and reconnect primitives.

Shared by every channel adapter: a pure delay calculation, a small
stateful attempt counter per connection, and an interruptible sleep so a
shutdown can abort a pending reconnect wait.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class SleepAborted(Exception):
    """Raised when an interruptible sleep is cancelled through its signal."""

    def __init__(self, message: str = "Aborted"):
        super().__init__(message)


@dataclass(frozen=True)
class BackoffPolicy:
    """Immutable backoff configuration.

    Attributes:
        initial_ms: Delay for the first attempt
        max_ms: Upper bound for any computed delay
        factor: Exponential growth factor per attempt
        jitter: Fraction of the base delay added as random jitter (0-1)
    """

    initial_ms: int
    max_ms: int
    factor: float
    jitter: float


@dataclass(frozen=True)
class ReconnectPolicy(BackoffPolicy):
    """Backoff policy plus the number of attempts before giving up."""

    max_attempts: int = 12


# 2s growing to 30s, 12 attempts (roughly 5-10 minutes in total)
DEFAULT_RECONNECT_POLICY = ReconnectPolicy(
    initial_ms=2000,
    max_ms=30000,
    factor=1.8,
    jitter=0.25,
    max_attempts=12,
)


def compute_backoff(policy: BackoffPolicy, attempt: int) -> int:
    """
    Calculate the delay for an attempt.

    ``min(max_ms, round(initial_ms * factor ** (attempt - 1) + jitter))``
    where jitter is drawn uniformly from ``[0, base * jitter)``.

    Args:
        policy: Backoff configuration
        attempt: Attempt number, 1-indexed (values <= 1 give initial_ms)

    Returns:
        Delay in milliseconds
    """
    exponent = max(attempt - 1, 0)
    base = policy.initial_ms * (policy.factor ** exponent)
    jitter_amount = base * policy.jitter * random.random()
    return int(min(policy.max_ms, round(base + jitter_amount)))


async def sleep_with_abort(ms: float, signal: asyncio.Event | None = None) -> None:
    """
    Sleep for ``ms`` milliseconds unless ``signal`` is set first.

    Args:
        ms: Duration in milliseconds
        signal: Optional event; setting it aborts the sleep

    Raises:
        SleepAborted: If the signal was already set or gets set mid-wait
    """
    if signal is None:
        await asyncio.sleep(max(ms, 0) / 1000)
        return

    if signal.is_set():
        raise SleepAborted()

    try:
        await asyncio.wait_for(signal.wait(), timeout=max(ms, 0) / 1000)
    except asyncio.TimeoutError:
        return

    raise SleepAborted()


class ReconnectManager:
    """
    Attempt counter for one logical connection.

    Usage::

        reconnect = ReconnectManager(DEFAULT_RECONNECT_POLICY)

        while not reconnect.is_exhausted():
            try:
                await connect()
                reconnect.reset()
                break
            except ConnectionError:
                await sleep_with_abort(reconnect.next_delay(), stop_event)
    """

    def __init__(self, policy: ReconnectPolicy = DEFAULT_RECONNECT_POLICY):
        self._policy = policy
        self._attempts = 0

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def attempts(self) -> int:
        return self._attempts

    def get_attempts(self) -> int:
        """Current attempt count (0 after reset)"""
        return self._attempts

    def increment(self) -> int:
        """Bump the attempt counter and return the new count"""
        self._attempts += 1
        return self._attempts

    def reset(self) -> None:
        """Zero the counter; call after a successful connect"""
        self._attempts = 0

    def is_exhausted(self) -> bool:
        return self._attempts >= self._policy.max_attempts

    def next_delay(self) -> int:
        """Increment the counter and return the backoff for the new attempt"""
        attempt = self.increment()
        delay = compute_backoff(self._policy, attempt)
        logger.debug(f"Reconnect attempt {attempt}/{self._policy.max_attempts} in {delay}ms")
        return delay


__all__ = [
    "BackoffPolicy",
    "ReconnectPolicy",
    "DEFAULT_RECONNECT_POLICY",
    "SleepAborted",
    "compute_backoff",
    "sleep_with_abort",
    "ReconnectManager",
]
