"""
Configuration schema.

JSON keys are camelCase (``ttlMs``, ``requireMention``, ...); the models
also accept snake_case field names when built from Python.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chatrelay.auto_reply.dedupe import DEFAULT_DEDUPE_MAX_SIZE, DEFAULT_DEDUPE_TTL_MS
from chatrelay.auto_reply.mentions import MentionConfig
from chatrelay.infra.backoff import DEFAULT_RECONNECT_POLICY, ReconnectPolicy
from chatrelay.infra.creds_queue import DEFAULT_BACKUP_FILENAME, DEFAULT_CREDS_FILENAME
from chatrelay.routing.jid import e164_to_jid


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class DedupeConfig(_Model):
    ttl_ms: int = Field(default=DEFAULT_DEDUPE_TTL_MS, ge=0)
    max_size: int = Field(default=DEFAULT_DEDUPE_MAX_SIZE, ge=1)


class DebounceConfig(_Model):
    # 0 disables batching
    window_ms: int = Field(default=0, ge=0)


class ReconnectConfig(_Model):
    initial_ms: int = Field(default=DEFAULT_RECONNECT_POLICY.initial_ms, ge=0)
    max_ms: int = Field(default=DEFAULT_RECONNECT_POLICY.max_ms, ge=0)
    factor: float = Field(default=DEFAULT_RECONNECT_POLICY.factor, ge=1.0)
    jitter: float = Field(default=DEFAULT_RECONNECT_POLICY.jitter, ge=0.0, le=1.0)
    max_attempts: int = Field(default=DEFAULT_RECONNECT_POLICY.max_attempts, ge=1)

    def to_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            initial_ms=self.initial_ms,
            max_ms=self.max_ms,
            factor=self.factor,
            jitter=self.jitter,
            max_attempts=self.max_attempts,
        )


class GroupConfig(_Model):
    """Per-group (or ``"*"``) settings; unset ``require_mention`` falls through"""

    require_mention: bool | None = None


class SelfIdentityConfig(_Model):
    """The bot's own addresses on one channel"""

    jid: str | None = None
    lid: str | None = None
    e164: str | None = None
    self_chat_lid: str | None = None

    @property
    def real_address(self) -> str | None:
        if self.jid:
            return self.jid
        if self.e164:
            return e164_to_jid(self.e164)
        return None


class ChannelConfig(_Model):
    enabled: bool = True
    dedupe: DedupeConfig = Field(default_factory=DedupeConfig)
    debounce: DebounceConfig = Field(default_factory=DebounceConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    groups: dict[str, GroupConfig] = Field(default_factory=dict)
    mention_patterns: list[str] = Field(default_factory=list)
    self_identity: SelfIdentityConfig = Field(default_factory=SelfIdentityConfig)
    auth_dir: str | None = None
    creds_filename: str = DEFAULT_CREDS_FILENAME
    backup_filename: str = DEFAULT_BACKUP_FILENAME
    bot_token: str | None = None

    @field_validator("groups", mode="before")
    @classmethod
    def _coerce_groups(cls, value: Any) -> Any:
        # {"123@g.us": true} is shorthand for requireMention=true
        if isinstance(value, dict):
            return {
                k: ({"requireMention": v} if isinstance(v, bool) else (v or {}))
                for k, v in value.items()
            }
        return value

    def mention_config(self) -> MentionConfig:
        return MentionConfig(
            mention_patterns=tuple(self.mention_patterns),
            self_e164=self.self_identity.e164,
            self_jid=self.self_identity.real_address,
            self_lid=self.self_identity.lid,
        )


class RelayConfig(_Model):
    channels: dict[str, ChannelConfig] = Field(default_factory=dict)

    def channel(self, channel_id: str) -> ChannelConfig:
        """Settings for one channel (defaults if not configured)"""
        return self.channels.get(channel_id) or ChannelConfig()


__all__ = [
    "DedupeConfig",
    "DebounceConfig",
    "ReconnectConfig",
    "GroupConfig",
    "SelfIdentityConfig",
    "ChannelConfig",
    "RelayConfig",
]
