"""
Mention detection for group messages.

Detection methods, in priority order:

1. Native mention list (``jid``): most reliable. If the list is present
   but does not include the bot, the sender addressed someone else on
   purpose and no weaker method is tried.
2. Regex mention patterns (``regex``), case-insensitive
3. Bot phone number digits in the text (``e164``)
4. Reply to one of the bot's own messages (``reply``, implicit mention)
"""
from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Literal, Sequence

from chatrelay.routing.jid import strip_device_suffix
from chatrelay.routing.phone import phone_digits

logger = logging.getLogger(__name__)

MentionMethod = Literal["jid", "regex", "e164", "reply"]

_ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200d\ufeff]")


@dataclass(frozen=True)
class MentionConfig:
    """The bot's identities plus configured mention patterns"""

    mention_patterns: tuple[str, ...] = ()
    self_e164: str | None = None
    self_jid: str | None = None
    self_lid: str | None = None


@dataclass(frozen=True)
class MentionDetectionResult:
    was_mentioned: bool
    implicit_mention: bool = False
    method: MentionMethod | None = None


def normalize_mention_text(text: str | None) -> str:
    """Trim and drop zero-width characters that hide inside @mentions"""
    if not text:
        return ""
    return _ZERO_WIDTH_RE.sub("", text.strip())


@functools.lru_cache(maxsize=256)
def compile_mention_pattern(pattern: str) -> re.Pattern[str] | None:
    """
    Compile a configured pattern case-insensitively.

    Returns:
        Compiled pattern, or None (logged once) if the regex is invalid
    """
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning(f"Invalid mention pattern {pattern!r}: {e}")
        return None


def _is_self(candidate: str | None, config: MentionConfig) -> bool:
    normalized = strip_device_suffix(candidate)
    if not normalized:
        return False
    return normalized in (strip_device_suffix(config.self_jid), strip_device_suffix(config.self_lid))


def detect_mention(
    body: str | None,
    config: MentionConfig,
    mentioned_ids: Sequence[str] | None = None,
    reply_to_sender_id: str | None = None,
    reply_to_sender_e164: str | None = None,
) -> MentionDetectionResult:
    """
    Detect whether the bot was mentioned.

    Args:
        body: Message text
        config: Bot identities and mention patterns
        mentioned_ids: Native mention list from the transport, if any
        reply_to_sender_id: Address of the replied-to message's sender
        reply_to_sender_e164: Phone number of the replied-to message's sender

    Returns:
        Detection result with the method that matched

    Example:
        result = detect_mention(
            "@bot what's the weather?",
            MentionConfig(mention_patterns=("@?bot",), self_jid="1234567890@s.whatsapp.net"),
        )
        # MentionDetectionResult(was_mentioned=True, implicit_mention=False, method="regex")
    """
    if mentioned_ids:
        if any(_is_self(mid, config) for mid in mentioned_ids):
            return MentionDetectionResult(was_mentioned=True, method="jid")
        return MentionDetectionResult(was_mentioned=False)

    text = normalize_mention_text(body)

    for pattern in config.mention_patterns:
        if not pattern:
            continue
        regex = compile_mention_pattern(pattern)
        if regex is not None and regex.search(text):
            return MentionDetectionResult(was_mentioned=True, method="regex")

    self_digits = phone_digits(config.self_e164)
    if self_digits and self_digits in phone_digits(text):
        return MentionDetectionResult(was_mentioned=True, method="e164")

    reply_digits = phone_digits(reply_to_sender_e164)
    is_reply_to_bot = _is_self(reply_to_sender_id, config) or (
        bool(self_digits) and reply_digits == self_digits
    )
    if is_reply_to_bot:
        return MentionDetectionResult(was_mentioned=True, implicit_mention=True, method="reply")

    return MentionDetectionResult(was_mentioned=False)


__all__ = [
    "MentionConfig",
    "MentionDetectionResult",
    "detect_mention",
    "normalize_mention_text",
    "compile_mention_pattern",
]
