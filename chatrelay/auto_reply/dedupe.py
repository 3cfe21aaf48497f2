"""
Inbound event deduplication with TTL and size limits.

Chat transports redeliver events after reconnects and retries. Each
adapter owns one ``DedupeCache`` and checks the event's dedupe key
(``platform:conversation:event_id``) before doing any work.
"""
from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_DEDUPE_TTL_MS = 20 * 60 * 1000  # 20 minutes
DEFAULT_DEDUPE_MAX_SIZE = 5000


def _now_ms() -> float:
    return time.time() * 1000


class DedupeCache:
    """
    Time-windowed, size-bounded "seen" set.

    - ``check()`` records unseen keys and reports repeats within the TTL
    - Pruning happens on every insert; there is no background timer
    - When still over ``max_size`` after expiry, the oldest entries go first

    Usage:
        cache = DedupeCache(ttl_ms=20 * 60 * 1000, max_size=5000)

        if cache.check(f"whatsapp:{chat_id}:{message_id}"):
            return  # duplicate
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_DEDUPE_TTL_MS,
        max_size: int = DEFAULT_DEDUPE_MAX_SIZE,
    ):
        self.ttl_ms = ttl_ms
        self.max_size = max(0, max_size)
        self._entries: dict[str, float] = {}  # key -> inserted/touched at (ms)

    def check(self, key: str | None, now: float | None = None) -> bool:
        """
        Check whether ``key`` was seen within the TTL.

        Args:
            key: Dedupe key; empty or None is never a duplicate
            now: Timestamp in milliseconds (defaults to the current time)

        Returns:
            True if duplicate (skip), False if new (process)
        """
        if not key:
            return False

        if now is None:
            now = _now_ms()

        seen_at = self._entries.get(key)
        if seen_at is not None and now - seen_at < self.ttl_ms:
            # Touch
            self._entries[key] = now
            return True

        self._entries[key] = now
        self._prune(now)
        return False

    def _prune(self, now: float) -> None:
        expired = [k for k, ts in self._entries.items() if now - ts > self.ttl_ms]
        for k in expired:
            del self._entries[k]

        if len(self._entries) > self.max_size:
            oldest_first = sorted(self._entries.items(), key=lambda item: item[1])
            to_remove = len(self._entries) - self.max_size
            for k, _ in oldest_first[:to_remove]:
                del self._entries[k]
            logger.debug(f"Evicted {to_remove} oldest dedupe entries (limit={self.max_size})")

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class TtlSet:
    """
    Set of keys that expire ``ttl_ms`` after being added.

    Simpler than ``DedupeCache``: no size cap, expiry is checked lazily
    in ``has()``.
    """

    def __init__(self, ttl_ms: int):
        self.ttl_ms = ttl_ms
        self._items: dict[str, float] = {}

    def add(self, key: str) -> None:
        self._items[key] = _now_ms()

    def has(self, key: str) -> bool:
        added_at = self._items.get(key)
        if added_at is None:
            return False

        if _now_ms() - added_at > self.ttl_ms:
            del self._items[key]
            return False

        return True

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def size(self) -> int:
        return len(self._items)


__all__ = [
    "DedupeCache",
    "TtlSet",
    "DEFAULT_DEDUPE_TTL_MS",
    "DEFAULT_DEDUPE_MAX_SIZE",
]
