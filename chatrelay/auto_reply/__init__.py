"""Inbound filtering: deduplication, debouncing, echo suppression and group gating."""

from __future__ import annotations

from .debounce import DebounceBuffer, InboundDebouncer
from .dedupe import DedupeCache, TtlSet
from .echo_tracker import EchoTracker
from .group_gating import (
    REASON_GROUP_NOT_ALLOWED,
    REASON_MENTION_REQUIRED,
    GroupGatingResult,
    apply_group_gating,
)
from .mentions import MentionConfig, MentionDetectionResult, detect_mention

__all__ = [
    "DebounceBuffer",
    "InboundDebouncer",
    "DedupeCache",
    "TtlSet",
    "EchoTracker",
    "GroupGatingResult",
    "apply_group_gating",
    "REASON_GROUP_NOT_ALLOWED",
    "REASON_MENTION_REQUIRED",
    "MentionConfig",
    "MentionDetectionResult",
    "detect_mention",
]
