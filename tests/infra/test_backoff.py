"""
Unit tests for backoff and reconnect primitives

Tests delay calculation, the attempt counter, and interruptible sleep.
"""

import asyncio
import time

import pytest

from chatrelay.infra import backoff
from chatrelay.infra.backoff import (
    DEFAULT_RECONNECT_POLICY,
    BackoffPolicy,
    ReconnectManager,
    ReconnectPolicy,
    SleepAborted,
    compute_backoff,
    sleep_with_abort,
)


@pytest.fixture
def no_jitter(monkeypatch):
    monkeypatch.setattr(backoff.random, "random", lambda: 0.0)


class TestComputeBackoff:
    """Test compute_backoff function."""

    def test_exponential_growth_capped(self, no_jitter):
        """Delays double until the cap."""
        policy = BackoffPolicy(initial_ms=1000, max_ms=10000, factor=2, jitter=0)
        delays = [compute_backoff(policy, attempt) for attempt in range(1, 6)]
        assert delays == [1000, 2000, 4000, 8000, 10000]

    def test_non_decreasing(self, no_jitter):
        """Delays never shrink as attempts grow."""
        policy = BackoffPolicy(initial_ms=300, max_ms=7000, factor=1.5, jitter=0)
        delays = [compute_backoff(policy, attempt) for attempt in range(1, 20)]
        assert delays == sorted(delays)
        assert max(delays) == 7000

    def test_attempt_zero_uses_initial(self, no_jitter):
        """Attempts below 1 are treated as the first attempt."""
        policy = BackoffPolicy(initial_ms=500, max_ms=10000, factor=3, jitter=0)
        assert compute_backoff(policy, 0) == 500
        assert compute_backoff(policy, -4) == 500

    def test_jitter_adds_fraction_of_base(self, monkeypatch):
        """Jitter is a fraction of the base delay."""
        monkeypatch.setattr(backoff.random, "random", lambda: 0.5)
        policy = BackoffPolicy(initial_ms=1000, max_ms=60000, factor=2, jitter=0.2)
        # base 2000 + 2000 * 0.2 * 0.5
        assert compute_backoff(policy, 2) == 2200

    def test_jitter_never_exceeds_cap(self, monkeypatch):
        """Jitter is applied before the cap."""
        monkeypatch.setattr(backoff.random, "random", lambda: 0.99)
        policy = BackoffPolicy(initial_ms=1000, max_ms=1100, factor=2, jitter=1.0)
        assert compute_backoff(policy, 1) == 1100

    def test_delay_within_bounds(self):
        """Real jitter stays within [base, base * (1 + jitter)]."""
        policy = BackoffPolicy(initial_ms=1000, max_ms=100000, factor=1.8, jitter=0.25)
        for _ in range(50):
            delay = compute_backoff(policy, 3)
            base = 1000 * 1.8 ** 2
            assert round(base) <= delay <= round(base * 1.25)

    def test_default_policy_values(self):
        """Default reconnect policy."""
        assert DEFAULT_RECONNECT_POLICY.initial_ms == 2000
        assert DEFAULT_RECONNECT_POLICY.max_ms == 30000
        assert DEFAULT_RECONNECT_POLICY.factor == 1.8
        assert DEFAULT_RECONNECT_POLICY.jitter == 0.25
        assert DEFAULT_RECONNECT_POLICY.max_attempts == 12


class TestSleepWithAbort:
    """Test sleep_with_abort function."""

    @pytest.mark.asyncio
    async def test_sleeps_without_signal(self):
        """Plain sleep completes."""
        start = time.monotonic()
        await sleep_with_abort(20)
        assert time.monotonic() - start >= 0.015

    @pytest.mark.asyncio
    async def test_completes_when_signal_not_set(self):
        """Unset signal does not interrupt the sleep."""
        await sleep_with_abort(10, asyncio.Event())

    @pytest.mark.asyncio
    async def test_already_set_signal_raises(self):
        """A signal set before the call aborts immediately."""
        signal = asyncio.Event()
        signal.set()
        with pytest.raises(SleepAborted):
            await sleep_with_abort(10000, signal)

    @pytest.mark.asyncio
    async def test_abort_mid_sleep(self):
        """Setting the signal wakes the sleeper early."""
        signal = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, signal.set)

        start = time.monotonic()
        with pytest.raises(SleepAborted, match="Aborted"):
            await sleep_with_abort(10000, signal)
        assert time.monotonic() - start < 1.0


class TestReconnectManager:
    """Test ReconnectManager counter."""

    def test_counter_lifecycle(self, no_jitter):
        """next_delay increments, reset zeroes."""
        policy = ReconnectPolicy(initial_ms=100, max_ms=1000, factor=2, jitter=0, max_attempts=3)
        manager = ReconnectManager(policy)

        assert manager.get_attempts() == 0
        assert manager.next_delay() == 100
        assert manager.next_delay() == 200
        assert manager.attempts == 2
        assert not manager.is_exhausted()

        assert manager.next_delay() == 400
        assert manager.is_exhausted()

        manager.reset()
        assert manager.get_attempts() == 0
        assert not manager.is_exhausted()

    def test_increment(self):
        """increment returns the new count."""
        manager = ReconnectManager()
        assert manager.increment() == 1
        assert manager.increment() == 2
        assert manager.policy is DEFAULT_RECONNECT_POLICY


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
