"""Network error classification for reconnect decisions.

Tells transient connectivity loss (retry with backoff) apart from errors
that need outside intervention (bad token, logged-out session).
"""
from __future__ import annotations

import errno
import logging
from typing import Iterable

logger = logging.getLogger(__name__)

RECOVERABLE_ERROR_CODES = {
    "ECONNRESET",
    "ECONNREFUSED",
    "EPIPE",
    "ETIMEDOUT",
    "ESOCKETTIMEDOUT",
    "ENETUNREACH",
    "EHOSTUNREACH",
    "ENOTFOUND",
    "EAI_AGAIN",
    "ECONNABORTED",
    "ERR_NETWORK",
}

RECOVERABLE_ERROR_NAMES = {
    "TimeoutError",
    "ConnectTimeoutError",
    "ConnectionError",
    "ConnectionResetError",
    "ConnectionRefusedError",
    "ConnectionAbortedError",
    "BrokenPipeError",
    "NetworkError",
    "TimedOut",
    "ConnectError",
    "ReadTimeout",
    "ConnectionClosed",
    "ConnectionClosedError",
}

RECOVERABLE_MESSAGE_SNIPPETS = [
    "fetch failed",
    "network error",
    "network request",
    "socket hang up",
    "timeout",
    "timed out",
    "connection",
    "connect",
]


def _extract_error_code(err: BaseException) -> str | None:
    code = getattr(err, "code", None)
    if code is not None:
        return str(code)
    err_no = getattr(err, "errno", None)
    if isinstance(err_no, int):
        return errno.errorcode.get(err_no, str(err_no))
    return None


def _collect_error_candidates(err: BaseException) -> Iterable[BaseException]:
    """Yield the error followed by its chained causes/contexts."""
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def is_recoverable_network_error(
    err: BaseException | str | None,
    allow_message_match: bool = True,
) -> bool:
    """
    Check if an error (or disconnect reason) is transient connectivity loss.

    Args:
        err: Exception, or a plain-text disconnect reason
        allow_message_match: Also match well-known message snippets

    Returns:
        True if reconnecting with backoff is appropriate
    """
    if err is None:
        return True

    if isinstance(err, str):
        if not allow_message_match:
            return False
        message = err.lower()
        return any(snippet in message for snippet in RECOVERABLE_MESSAGE_SNIPPETS)

    for candidate in _collect_error_candidates(err):
        code = _extract_error_code(candidate)
        if code and code.upper() in RECOVERABLE_ERROR_CODES:
            return True

        if candidate.__class__.__name__ in RECOVERABLE_ERROR_NAMES:
            return True

        if isinstance(candidate, (ConnectionError, TimeoutError)):
            return True

        if allow_message_match:
            message = str(candidate).lower()
            if any(snippet in message for snippet in RECOVERABLE_MESSAGE_SNIPPETS):
                return True

    return False


__all__ = [
    "is_recoverable_network_error",
]
