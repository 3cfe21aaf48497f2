"""Connection-lifecycle infrastructure: backoff, scheduling, credential persistence."""

from __future__ import annotations

from .backoff import (
    DEFAULT_RECONNECT_POLICY,
    BackoffPolicy,
    ReconnectManager,
    ReconnectPolicy,
    SleepAborted,
    compute_backoff,
    sleep_with_abort,
)
from .creds_queue import (
    CredentialStore,
    CredsSaveQueue,
    maybe_restore_creds_from_backup,
)
from .network_errors import is_recoverable_network_error
from .scheduler import ScheduledTask, TaskScheduler

__all__ = [
    "BackoffPolicy",
    "ReconnectPolicy",
    "DEFAULT_RECONNECT_POLICY",
    "ReconnectManager",
    "SleepAborted",
    "compute_backoff",
    "sleep_with_abort",
    "CredentialStore",
    "CredsSaveQueue",
    "maybe_restore_creds_from_backup",
    "is_recoverable_network_error",
    "ScheduledTask",
    "TaskScheduler",
]
