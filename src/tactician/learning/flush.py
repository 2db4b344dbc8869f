"""Deferred, coalescing writes for in-memory learning state.

Mutating operations call ``mark_dirty()`` instead of writing. The first call
schedules one delayed flush task; further calls before it fires coalesce into
that single write. ``flush()`` cancels the pending task and writes right away.

A deferred flush that fails is logged, never raised into the event loop. The
state stays dirty, so the next explicit ``flush()`` retries the write and
raises StoreWriteError if it fails again. Writes are serialized by a lock: an
explicit flush issued while a deferred write is in flight waits for it, then
retries if it failed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from tactician.core.errors import StoreWriteError
from tactician.core.logging import TacticianLogger, get_logger

_logger = get_logger("learning.flush")


def log_task_exception(
    task: asyncio.Task[Any],
    logger: TacticianLogger,
    event: str,
) -> BaseException | None:
    """Extract and log an exception from a completed task.

    Returns:
        The exception if one was found, None if the task completed normally
        or was cancelled.
    """
    if task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        logger.error(event, error=str(exc), task_name=task.get_name())
    return exc


class FlushScheduler:
    """Dirty flag plus a cancellable delayed-flush task.

    Args:
        write: Coroutine function persisting the current state.
        key: Document key, used in errors and log entries.
        delay_seconds: How long to wait before a deferred flush.
    """

    def __init__(
        self,
        write: Callable[[], Awaitable[None]],
        key: str,
        delay_seconds: float = 5.0,
    ) -> None:
        self._write = write
        self._key = key
        self._delay = delay_seconds
        self._dirty = False
        self._task: asyncio.Task[None] | None = None
        self._last_error: StoreWriteError | None = None
        self._lock = asyncio.Lock()

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def has_timer(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_error(self) -> StoreWriteError | None:
        """Failure of the most recent deferred flush, until a write succeeds."""
        return self._last_error

    def mark_dirty(self) -> None:
        """Record unsaved changes and schedule a deferred flush if none is pending.

        Must be called from inside a running event loop.
        """
        self._dirty = True
        if self.has_timer:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._deferred_flush(), name=f"flush:{self._key}"
        )
        self._task.add_done_callback(
            lambda t: log_task_exception(t, _logger, "flush.task_died")
        )

    async def flush(self) -> None:
        """Cancel any pending deferred flush and write now if dirty.

        Waits for a deferred write already in flight before checking.

        Raises:
            StoreWriteError: If the write fails. The state stays dirty.
        """
        await self._cancel_pending()
        async with self._lock:
            await self._write_if_dirty()

    def reset(self) -> None:
        """Forget unsaved changes and cancel the pending flush without awaiting it."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._dirty = False
        self._last_error = None

    async def _cancel_pending(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _write_if_dirty(self) -> None:
        if not self._dirty:
            return
        self._dirty = False
        try:
            await self._write()
        except OSError as e:
            self._dirty = True
            error = StoreWriteError(self._key, str(e))
            if self._last_error is not None:
                error.add_note(f"previous deferred flush failed: {self._last_error.reason}")
            raise error from e
        if self._last_error is not None:
            _logger.info("flush.recovered", key=self._key)
        self._last_error = None

    async def _deferred_flush(self) -> None:
        await asyncio.sleep(self._delay)
        # Detach first so a mark_dirty() during the write schedules a new task
        self._task = None
        async with self._lock:
            try:
                await self._write_if_dirty()
            except StoreWriteError as e:
                self._last_error = e
                _logger.error("flush.deferred_failed", key=self._key, error=str(e))


__all__ = ["FlushScheduler", "log_task_exception"]
