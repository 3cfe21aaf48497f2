"""Relay configuration: pydantic schema and JSON loader."""

from __future__ import annotations

from .loader import ConfigError, load_config
from .schema import (
    ChannelConfig,
    DebounceConfig,
    DedupeConfig,
    GroupConfig,
    ReconnectConfig,
    RelayConfig,
    SelfIdentityConfig,
)

__all__ = [
    "ConfigError",
    "load_config",
    "ChannelConfig",
    "DebounceConfig",
    "DedupeConfig",
    "GroupConfig",
    "ReconnectConfig",
    "RelayConfig",
    "SelfIdentityConfig",
]
