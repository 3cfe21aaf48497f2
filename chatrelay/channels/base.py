"""
Channel adapter contract and normalized message types.

Adapters wrap one chat transport. They turn raw transport events into
``InboundMessage`` objects, expose a text send primitive, and report
connection lifecycle changes so the ``ConnectionManager`` can reconnect.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .connection import ConnectionManager

logger = logging.getLogger(__name__)


class ChannelNotConnectedError(RuntimeError):
    """Raised when sending through an adapter that is not running."""


@dataclass
class InboundMessage:
    """
    Normalized inbound event.

    ``conversation_key`` is the chat the message belongs to (group id for
    groups). ``sender_identity`` is the sender's real address when known;
    ``sender_lid`` is their linked identifier when the transport disclosed
    one alongside it.
    """

    channel: str
    conversation_key: str
    sender_identity: str
    text: str = ""
    id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    is_group: bool = False
    group_id: str | None = None
    native_mentions: list[str] | None = None
    reply_to_sender_identity: str | None = None
    reply_to_sender_e164: str | None = None
    sender_lid: str | None = None
    sender_e164: str | None = None
    sender_name: str | None = None
    attachments: list[str] = field(default_factory=list)
    is_command: bool = False
    was_mentioned: bool = False
    raw: Any = None

    def dedupe_key(self) -> str | None:
        """``channel:conversation:event_id``, or None without an event id"""
        if not self.id:
            return None
        return f"{self.channel}:{self.conversation_key}:{self.id}"

    def debounce_key(self) -> str:
        """Batches are per conversation and sender"""
        return f"{self.channel}:{self.conversation_key}:{self.sender_identity}"


@dataclass
class OutboundMessage:
    channel: str
    target: str
    text: str
    reply_to: str | None = None


class ChannelAdapter(ABC):
    """
    Base class for transport adapters.

    Subclasses implement ``start``/``stop``/``send_text`` and call
    ``on_connected``/``on_disconnected`` from their transport callbacks.
    """

    id: str = "channel"
    label: str = "Channel"

    def __init__(self):
        self._connection_manager: ConnectionManager | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def connection(self) -> ConnectionManager | None:
        return self._connection_manager

    @abstractmethod
    async def start(self) -> None:
        """Connect to the transport and begin receiving."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and release transport resources."""

    @abstractmethod
    async def send_text(self, target: str, text: str, reply_to: str | None = None) -> str:
        """
        Send text to an already-resolved real address.

        Returns:
            Platform delivery id
        """

    def on_connected(self) -> None:
        self._running = True
        if self._connection_manager:
            self._connection_manager.on_connected()

    def on_disconnected(self, reason: BaseException | str | None = None) -> None:
        self._running = False
        logger.warning(f"[{self.id}] Disconnected: {reason}")
        if self._connection_manager:
            self._connection_manager.on_disconnected(reason)


__all__ = [
    "ChannelAdapter",
    "ChannelNotConnectedError",
    "InboundMessage",
    "OutboundMessage",
]
