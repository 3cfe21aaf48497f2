"""
Linked identifier resolution for outbound sends.

Some transports hide a participant's real address behind a
privacy-preserving linked identifier (LID). Messages must be sent to the
real address, and guessing wrong means delivering to the wrong person,
so resolution is fail-safe: an identifier that cannot be resolved blocks
the send.

Resolution order (first match wins):

1. The bot's own self-chat LID -> the bot's own real address
2. The transport's native LID table
3. Mappings observed on inbound traffic (sender LID + real address)
4. ``UnresolvableIdentifierError``
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from .jid import is_lid

if TYPE_CHECKING:
    from chatrelay.channels.base import InboundMessage

logger = logging.getLogger(__name__)

NativeLookup = Callable[[str], "str | None"]


class UnresolvableIdentifierError(LookupError):
    """Raised when a linked identifier has no known real address."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Cannot send to unknown linked identifier {identifier!r}: no mapping found")


class IdentityResolver:
    """
    Per-connection LID -> real address resolver.

    The observed-mapping table only grows (until ``clear()``) and is a
    weak cache: a missing entry means "unresolved", never "invalid". It is
    written by the receive path and read by the send path on the same
    event loop.

    Usage:
        resolver = IdentityResolver(
            self_chat_lid="214542927831175@lid",
            self_address="15551234567@s.whatsapp.net",
            native_lookup=lambda lid: sock.lid_mapping.get(lid),
        )

        resolver.observe_message(inbound)       # on receive
        target = resolver.resolve(msg.chat_id)  # before send
    """

    def __init__(
        self,
        self_chat_lid: str | None = None,
        self_address: str | None = None,
        native_lookup: NativeLookup | Mapping[str, str] | None = None,
        is_linked: Callable[[str], bool] = is_lid,
    ):
        self.self_chat_lid = self_chat_lid
        self.self_address = self_address
        self._native_lookup: NativeLookup | None = None
        self._is_linked = is_linked
        self._observed: dict[str, str] = {}
        self.set_native_lookup(native_lookup)

    def set_native_lookup(self, native_lookup: NativeLookup | Mapping[str, str] | None) -> None:
        """Swap the transport table, e.g. after a reconnect replaced the socket"""
        if isinstance(native_lookup, Mapping):
            self._native_lookup = native_lookup.get
        else:
            self._native_lookup = native_lookup

    def observe(self, linked_id: str | None, real_address: str | None) -> bool:
        """
        Record a mapping disclosed by inbound traffic.

        Returns:
            True if a new or changed mapping was stored
        """
        if not linked_id or not real_address:
            return False
        if not self._is_linked(linked_id) or self._is_linked(real_address):
            return False

        if self._observed.get(linked_id) == real_address:
            return False

        self._observed[linked_id] = real_address
        logger.debug(f"Learned identity mapping {linked_id} -> {real_address}")
        return True

    def observe_message(self, msg: InboundMessage) -> bool:
        """Learn from an inbound event that carries both sender forms"""
        return self.observe(msg.sender_lid, msg.sender_identity)

    def resolve(self, target: str) -> str:
        """
        Resolve a send target to a real address.

        Args:
            target: Conversation or participant address (may be a LID)

        Returns:
            Real routable address; non-linked targets pass through unchanged

        Raises:
            UnresolvableIdentifierError: If ``target`` is a LID with no mapping
        """
        if not self._is_linked(target):
            return target

        if self.self_chat_lid and self.self_address and target == self.self_chat_lid:
            return self.self_address

        if self._native_lookup:
            native = self._native_lookup(target)
            if native:
                return native

        observed = self._observed.get(target)
        if observed:
            return observed

        logger.error(f"Cannot resolve linked identifier: {target}")
        raise UnresolvableIdentifierError(target)

    def known_mappings(self) -> dict[str, str]:
        return dict(self._observed)

    def clear(self) -> None:
        self._observed.clear()


__all__ = [
    "IdentityResolver",
    "UnresolvableIdentifierError",
]
