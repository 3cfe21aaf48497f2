"""
Channel adapters and the per-channel message pipeline
"""

from .base import (
    ChannelAdapter,
    ChannelNotConnectedError,
    InboundMessage,
    OutboundMessage,
)
from .connection import ConnectionManager, ConnectionState
from .pipeline import InboundDecision, InboundPipeline, OutboundSender
from .telegram import TelegramChannel

__all__ = [
    "ChannelAdapter",
    "ChannelNotConnectedError",
    "InboundMessage",
    "OutboundMessage",
    "ConnectionManager",
    "ConnectionState",
    "InboundDecision",
    "InboundPipeline",
    "OutboundSender",
    "TelegramChannel",
]
