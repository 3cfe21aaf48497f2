"""
Group message gating.

Decides whether a group message is forwarded to the agent:

1. Group allowlist: when any groups are configured, the group (or the
   ``"*"`` wildcard) must be listed
2. ``requireMention``: specific group entry, then wildcard, then True
3. Mention detection, only when a mention is required
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .mentions import MentionConfig, detect_mention

logger = logging.getLogger(__name__)

WILDCARD_GROUP = "*"

REASON_GROUP_NOT_ALLOWED = "group-not-allowed"
REASON_MENTION_REQUIRED = "mention-required"


@dataclass(frozen=True)
class GroupGatingResult:
    should_process: bool
    was_mentioned: bool = False
    reason: str | None = None
    method: str | None = None


def _require_mention_flag(entry: Any) -> bool | None:
    if entry is None:
        return None
    if isinstance(entry, Mapping):
        value = entry.get("requireMention", entry.get("require_mention"))
    else:
        value = getattr(entry, "require_mention", None)
    return value if isinstance(value, bool) else None


def resolve_require_mention(group_id: str, groups: Mapping[str, Any] | None) -> bool:
    """Specific group -> wildcard -> True"""
    groups = groups or {}
    specific = _require_mention_flag(groups.get(group_id))
    if specific is not None:
        return specific
    wildcard = _require_mention_flag(groups.get(WILDCARD_GROUP))
    if wildcard is not None:
        return wildcard
    return True


def is_group_allowed(group_id: str, groups: Mapping[str, Any] | None) -> bool:
    """An empty groups map allows every group"""
    if not groups:
        return True
    return WILDCARD_GROUP in groups or group_id in groups


def apply_group_gating(
    group_id: str,
    body: str | None,
    mention_config: MentionConfig,
    groups: Mapping[str, Any] | None = None,
    mentioned_ids: Sequence[str] | None = None,
    reply_to_sender_id: str | None = None,
    reply_to_sender_e164: str | None = None,
) -> GroupGatingResult:
    """
    Apply allowlist and mention gating to one group message.

    Args:
        group_id: Group conversation identifier
        body: Message text
        mention_config: Bot identities and mention patterns
        groups: Per-group settings (``GroupConfig`` or plain dicts), may
            contain the ``"*"`` wildcard
        mentioned_ids: Native mention list, if the transport supplied one
        reply_to_sender_id: Sender address of the replied-to message
        reply_to_sender_e164: Sender phone of the replied-to message

    Returns:
        Gating decision; ``reason`` is set when the message is dropped

    Example:
        result = apply_group_gating(
            "12345@g.us",
            "hello there",
            MentionConfig(mention_patterns=("@?bot",)),
            groups={"*": {"requireMention": True}},
        )
        # GroupGatingResult(should_process=False, reason="mention-required")
    """
    if not is_group_allowed(group_id, groups):
        logger.debug(f"Group {group_id} not in allowlist")
        return GroupGatingResult(should_process=False, reason=REASON_GROUP_NOT_ALLOWED)

    if not resolve_require_mention(group_id, groups):
        return GroupGatingResult(should_process=True, was_mentioned=False)

    detection = detect_mention(
        body,
        mention_config,
        mentioned_ids=mentioned_ids,
        reply_to_sender_id=reply_to_sender_id,
        reply_to_sender_e164=reply_to_sender_e164,
    )

    if not detection.was_mentioned:
        return GroupGatingResult(
            should_process=False,
            was_mentioned=False,
            reason=REASON_MENTION_REQUIRED,
        )

    return GroupGatingResult(should_process=True, was_mentioned=True, method=detection.method)


__all__ = [
    "GroupGatingResult",
    "apply_group_gating",
    "resolve_require_mention",
    "is_group_allowed",
    "WILDCARD_GROUP",
    "REASON_GROUP_NOT_ALLOWED",
    "REASON_MENTION_REQUIRED",
]
