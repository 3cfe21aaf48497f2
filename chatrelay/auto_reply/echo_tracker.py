"""
Echo detection to prevent responding to own messages.

Transports deliver the bot's own sends back as inbound events. Outbound
delivery ids are remembered for a short window and matching inbound
events are dropped.
"""
from __future__ import annotations

import time

DEFAULT_ECHO_WINDOW_SECONDS = 60


class EchoTracker:
    """
    Tracks outbound message ids to detect echoes.

    Usage:
        tracker = EchoTracker(window_seconds=60)

        # After sending
        tracker.mark_outbound(delivery_id)

        # On receive
        if tracker.is_echo(msg.id):
            return
    """

    def __init__(self, window_seconds: float = DEFAULT_ECHO_WINDOW_SECONDS):
        self._outbound: dict[str, float] = {}  # message_id -> timestamp
        self._window = window_seconds

    def mark_outbound(self, message_id: str | None) -> None:
        if not message_id:
            return

        self._outbound[message_id] = time.monotonic()
        self._cleanup()

    def is_echo(self, message_id: str | None) -> bool:
        """
        Check (and consume) an inbound id.

        Returns:
            True if the id belongs to a recent outbound message
        """
        if not message_id:
            return False

        sent_at = self._outbound.pop(message_id, None)
        if sent_at is None:
            return False

        return time.monotonic() - sent_at <= self._window

    def _cleanup(self) -> None:
        now = time.monotonic()
        expired = [
            msg_id for msg_id, ts in self._outbound.items()
            if now - ts > self._window
        ]
        for msg_id in expired:
            del self._outbound[msg_id]

    def clear(self) -> None:
        self._outbound.clear()

    def count(self) -> int:
        return len(self._outbound)


__all__ = [
    "EchoTracker",
    "DEFAULT_ECHO_WINDOW_SECONDS",
]
