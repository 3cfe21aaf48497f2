"""
Inbound/outbound message pipeline for one channel.

Inbound:  status filter -> dedupe -> echo -> identity learning
          -> group gating -> debouncer -> dispatch
Outbound: resolve linked identifier -> send -> remember delivery id
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from chatrelay.auto_reply.debounce import InboundDebouncer
from chatrelay.auto_reply.dedupe import DedupeCache
from chatrelay.auto_reply.echo_tracker import EchoTracker
from chatrelay.auto_reply.group_gating import apply_group_gating
from chatrelay.config.schema import ChannelConfig
from chatrelay.infra.scheduler import TaskScheduler
from chatrelay.routing.identity import IdentityResolver
from chatrelay.routing.jid import is_status_or_broadcast

from .base import InboundMessage

logger = logging.getLogger(__name__)

REASON_STATUS_BROADCAST = "status-broadcast"
REASON_DUPLICATE = "duplicate"
REASON_SELF_SENT = "self-sent"

DispatchHandler = Callable[[list[InboundMessage]], Awaitable[None]]
SendFunction = Callable[[str, str], Awaitable[str]]


@dataclass(frozen=True)
class InboundDecision:
    accepted: bool
    reason: str | None = None
    message: InboundMessage | None = None


def default_should_debounce(msg: InboundMessage) -> bool:
    """Media and commands skip batching"""
    return not msg.attachments and not msg.is_command


class InboundPipeline:
    """
    Filters inbound events for one channel and hands accepted ones to the
    debouncer, which calls ``dispatch`` with batches in arrival order.

    Usage:
        pipeline = InboundPipeline(
            "whatsapp",
            config.channel("whatsapp"),
            dispatch=agent.handle_batch,
            identity=resolver,
            echo=echo_tracker,
        )
        decision = await pipeline.handle(msg)
        ...
        await pipeline.close()
    """

    def __init__(
        self,
        channel: str,
        config: ChannelConfig,
        dispatch: DispatchHandler,
        identity: IdentityResolver | None = None,
        echo: EchoTracker | None = None,
        scheduler: TaskScheduler | None = None,
        on_error: Callable[[Exception, list[InboundMessage]], None] | None = None,
        should_debounce: Callable[[InboundMessage], bool] | None = default_should_debounce,
    ):
        self.channel = channel
        self.config = config
        self.identity = identity or IdentityResolver(
            self_chat_lid=config.self_identity.self_chat_lid,
            self_address=config.self_identity.real_address,
        )
        self.echo = echo or EchoTracker()
        self.mention_config = config.mention_config()
        self.dedupe = DedupeCache(
            ttl_ms=config.dedupe.ttl_ms,
            max_size=config.dedupe.max_size,
        )
        self.debouncer: InboundDebouncer[InboundMessage] = InboundDebouncer(
            debounce_ms=config.debounce.window_ms,
            build_key=lambda msg: msg.debounce_key(),
            on_flush=dispatch,
            should_debounce=should_debounce,
            on_error=on_error,
            scheduler=scheduler,
        )

    async def handle(self, msg: InboundMessage) -> InboundDecision:
        """
        Run one inbound event through the filters.

        Returns:
            Decision; accepted messages have been queued for dispatch
        """
        if is_status_or_broadcast(msg.conversation_key):
            return self._drop(msg, REASON_STATUS_BROADCAST)

        dedupe_key = msg.dedupe_key()
        if dedupe_key and self.dedupe.check(dedupe_key):
            return self._drop(msg, REASON_DUPLICATE)

        if self.echo.is_echo(msg.id):
            return self._drop(msg, REASON_SELF_SENT)

        self.identity.observe_message(msg)

        if msg.is_group:
            gating = apply_group_gating(
                msg.group_id or msg.conversation_key,
                msg.text,
                self.mention_config,
                groups=self.config.groups,
                mentioned_ids=msg.native_mentions,
                reply_to_sender_id=msg.reply_to_sender_identity,
                reply_to_sender_e164=msg.reply_to_sender_e164,
            )
            if not gating.should_process:
                return self._drop(msg, gating.reason)
            msg.was_mentioned = gating.was_mentioned

        await self.debouncer.enqueue(msg)
        return InboundDecision(accepted=True, message=msg)

    def _drop(self, msg: InboundMessage, reason: str | None) -> InboundDecision:
        logger.debug(f"[{self.channel}] Dropped {msg.id or '<no id>'} from {msg.conversation_key}: {reason}")
        return InboundDecision(accepted=False, reason=reason, message=msg)

    async def flush(self) -> None:
        await self.debouncer.flush_all()

    async def close(self) -> None:
        """Deliver buffered batches and stop flush timers"""
        await self.debouncer.close()


class OutboundSender:
    """
    Sends text through a channel after resolving linked identifiers.

    Raises ``UnresolvableIdentifierError`` (and sends nothing) when the
    target is a linked identifier with no known real address.
    """

    def __init__(
        self,
        channel: str,
        send: SendFunction,
        identity: IdentityResolver,
        echo: EchoTracker | None = None,
    ):
        self.channel = channel
        self._send = send
        self.identity = identity
        self.echo = echo

    async def send(self, target: str, text: str) -> str:
        address = self.identity.resolve(target)
        if address != target:
            logger.debug(f"[{self.channel}] Resolved {target} -> {address}")

        delivery_id = await self._send(address, text)
        if self.echo:
            self.echo.mark_outbound(delivery_id)
        return delivery_id


__all__ = [
    "InboundDecision",
    "InboundPipeline",
    "OutboundSender",
    "default_should_debounce",
    "REASON_STATUS_BROADCAST",
    "REASON_DUPLICATE",
    "REASON_SELF_SENT",
]
