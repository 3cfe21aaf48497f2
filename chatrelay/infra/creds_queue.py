"""Credential persistence with backup-before-overwrite.

Channel sessions (linked-device auth state and similar) are written from
many callbacks. ``CredsSaveQueue`` serializes every write through one
worker task and snapshots the last known-good file before each save, so
a crash mid-write can be recovered at startup with
``maybe_restore_creds_from_backup``.

Layout inside ``auth_dir``::

    creds.json          # main file, owned by the adapter's save operation
    creds.json.backup   # last main file that parsed as valid JSON
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import shutil
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CREDS_FILENAME = "creds.json"
DEFAULT_BACKUP_FILENAME = "creds.json.backup"

SaveOperation = Callable[[], Any]


def read_creds_json_raw(file_path: Path) -> str | None:
    """
    Read a credentials file without validating it.

    Returns:
        File contents, or None if missing, not a regular file, or <= 1 byte
    """
    try:
        if not file_path.is_file():
            return None
        if file_path.stat().st_size <= 1:
            return None
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _is_valid_json(raw: str | None) -> bool:
    if not raw:
        return False
    try:
        json.loads(raw)
    except ValueError:
        return False
    return True


def _atomic_copy(src: Path, dst: Path) -> None:
    """Copy src over dst via a temp file so dst is never half-written."""
    temp_path = dst.with_name(f"{dst.name}.tmp.{uuid.uuid4().hex[:8]}")
    try:
        shutil.copy2(src, temp_path)
        os.replace(temp_path, dst)
    finally:
        if temp_path.exists():
            temp_path.unlink()


class CredentialStore:
    """
    The main/backup credential file pair of one connection.

    The on-disk blob is opaque text chosen by the adapter; only its
    JSON validity is inspected.
    """

    def __init__(
        self,
        auth_dir: str | Path,
        creds_filename: str = DEFAULT_CREDS_FILENAME,
        backup_filename: str = DEFAULT_BACKUP_FILENAME,
        logger: logging.Logger | None = None,
    ):
        self.auth_dir = Path(auth_dir)
        self.creds_path = self.auth_dir / creds_filename
        self.backup_path = self.auth_dir / backup_filename
        self._logger = logger or logging.getLogger(__name__)

    def read_raw(self) -> str | None:
        return read_creds_json_raw(self.creds_path)

    def is_valid(self) -> bool:
        """Whether the main file exists and parses as JSON"""
        return _is_valid_json(self.read_raw())

    def write(self, text: str) -> None:
        """Atomically replace the main file with ``text``."""
        self.auth_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self.creds_path.with_name(
            f"{self.creds_path.name}.tmp.{uuid.uuid4().hex[:8]}"
        )
        try:
            temp_path.write_text(text, encoding="utf-8")
            os.replace(temp_path, self.creds_path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def backup(self) -> bool:
        """
        Copy the main file to the backup path if it parses.

        A corrupt main file never overwrites the backup. Failures are
        logged and swallowed; a backup is best-effort.

        Returns:
            True if the backup was refreshed
        """
        try:
            raw = self.read_raw()
            if raw is None:
                return False
            if not _is_valid_json(raw):
                self._logger.warning(
                    f"Current credentials file is corrupted, preserving existing backup: "
                    f"{self.creds_path}"
                )
                return False
            _atomic_copy(self.creds_path, self.backup_path)
            return True
        except Exception as e:
            self._logger.warning(f"Failed to backup credentials (non-critical): {e}")
            return False

    def restore_from_backup(self) -> bool:
        """
        Restore the main file from backup when the main file is unusable.

        Returns:
            True if the backup was copied over the main file. False when the
            main file is fine or no valid backup exists; the adapter then
            re-authenticates from scratch.
        """
        if self.is_valid():
            return False

        try:
            backup_raw = read_creds_json_raw(self.backup_path)
            if not _is_valid_json(backup_raw):
                return False
            _atomic_copy(self.backup_path, self.creds_path)
        except OSError as e:
            self._logger.warning(f"Failed to restore credentials from backup: {e}")
            return False

        self._logger.info(f"Restored credentials from backup: {self.backup_path}")
        return True


def maybe_restore_creds_from_backup(
    auth_dir: str | Path,
    creds_filename: str = DEFAULT_CREDS_FILENAME,
    backup_filename: str = DEFAULT_BACKUP_FILENAME,
    logger: logging.Logger | None = None,
) -> bool:
    """
    Startup recovery, run before the adapter loads its auth state.

    Example::

        if maybe_restore_creds_from_backup("./data/whatsapp-session"):
            logger.info("Recovered credentials from backup")
    """
    store = CredentialStore(auth_dir, creds_filename, backup_filename, logger=logger)
    return store.restore_from_backup()


class CredsSaveQueue:
    """
    Sequential save queue for one credential file pair.

    Save operations are closures pushed onto an ``asyncio.Queue`` and run
    one at a time by a single worker task. Each one is preceded by a
    best-effort backup. A failed save is logged and recorded; the worker
    moves on to the next operation, and ``flush()`` re-raises the first
    failure it observed.

    Usage::

        queue = CredsSaveQueue(CredentialStore("./data/session"))

        # from the transport's "credentials updated" callback
        queue.enqueue(save_creds)

        # before exit
        await queue.flush()
    """

    def __init__(
        self,
        store: CredentialStore,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self._logger = logger or logging.getLogger(__name__)
        self._queue: asyncio.Queue[tuple[SaveOperation, asyncio.Future[None]]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Future[None]] = set()
        self._first_failure: BaseException | None = None
        self._closed = False

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
        return self._queue

    def enqueue(self, save_operation: SaveOperation) -> asyncio.Future[None]:
        """
        Append a save operation to the chain. Never blocks.

        Args:
            save_operation: Sync or async callable that writes the main file

        Returns:
            Future settled with the operation's outcome
        """
        if self._closed:
            raise RuntimeError("Credential save queue is closed")

        queue = self._ensure_worker()
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending.add(future)
        future.add_done_callback(self._settled)
        queue.put_nowait((save_operation, future))
        return future

    def enqueue_blob(self, get_blob: Callable[[], str]) -> asyncio.Future[None]:
        """Enqueue a write of the adapter's current credential blob."""
        return self.enqueue(lambda: self.store.write(get_blob()))

    def pending(self) -> int:
        return len(self._pending)

    def _settled(self, future: asyncio.Future[None]) -> None:
        self._pending.discard(future)
        if future.cancelled() or future.exception() is None:
            return
        if self._first_failure is None:
            self._first_failure = future.exception()

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            save_operation, future = await self._queue.get()
            try:
                await self._safe_save(save_operation)
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                self._logger.warning(f"Credential save queue error: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(None)
            finally:
                self._queue.task_done()

    async def _safe_save(self, save_operation: SaveOperation) -> None:
        self.store.backup()

        try:
            result = save_operation()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.warning(f"Failed to save credentials: {e}", exc_info=True)
            raise

    async def flush(self) -> None:
        """
        Wait until every operation queued so far has settled.

        Raises:
            The first save failure recorded since the last flush
        """
        futures = list(self._pending)
        if futures:
            await asyncio.gather(*futures, return_exceptions=True)

        failure, self._first_failure = self._first_failure, None
        if failure is not None:
            raise failure

    async def close(self) -> None:
        """Flush outstanding saves and stop the worker."""
        self._closed = True
        try:
            await self.flush()
        finally:
            if self._worker and not self._worker.done():
                self._worker.cancel()
                try:
                    await self._worker
                except asyncio.CancelledError:
                    pass
            self._worker = None


__all__ = [
    "CredentialStore",
    "CredsSaveQueue",
    "maybe_restore_creds_from_backup",
    "read_creds_json_raw",
    "DEFAULT_CREDS_FILENAME",
    "DEFAULT_BACKUP_FILENAME",
]
