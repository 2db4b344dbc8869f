"""Base class for the tool learner: cache ownership and persistence.

This module provides ``ToolLearnerBase``, which handles:
- Loading (and migrating) the telemetry document into an in-memory cache
- Batched persistence through a FlushScheduler
- Reset, cache clearing and shutdown

Mixins inherit from this base to add usage tracking, group comparison,
candidate blending and retention.
"""

from __future__ import annotations

from tactician.core.config import ToolLearningConfig
from tactician.core.errors import StoreWriteError
from tactician.core.logging import get_logger
from tactician.learning.flush import FlushScheduler
from tactician.learning.tool_store.migration import (
    create_empty_history,
    migrate_history_document,
)
from tactician.learning.tool_store.models import ToolHistory
from tactician.learning.weighter import DecayWeighter
from tactician.store.base import DocumentStore
from tactician.utils.time import Clock, now_ms

# Module-level logger shared by the tool learner mixins
_logger = get_logger("learning.tool_learner")

HISTORY_KEY = "tool-history"


class ToolLearnerBase:
    """Owns the cached telemetry history of one process.

    The cache is loaded on first use and kept for the lifetime of the
    instance; only ``clear_cache()`` drops it. The store assumes a single
    writer process.

    Attributes:
        config: Tool learning configuration.
        weighter: Decay weighter configured from ``config``.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: ToolLearningConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the learner.

        Args:
            store: Backing document store.
            config: Tool learning configuration. Uses defaults if None.
            clock: Millisecond clock. Uses wall-clock time if None.
        """
        self._store = store
        self.config = config or ToolLearningConfig()
        self._clock: Clock = clock or now_ms
        self._logger = _logger
        self.weighter = DecayWeighter(
            half_life_ms=self.config.half_life_ms,
            min_samples=self.config.min_samples,
            high_confidence_samples=self.config.high_confidence_samples,
        )
        self._history: ToolHistory | None = None
        self._flusher = FlushScheduler(
            self._save_history,
            key=HISTORY_KEY,
            delay_seconds=self.config.flush_interval_seconds,
        )

    def _now(self) -> int:
        return self._clock()

    async def _load_history(self) -> ToolHistory:
        """Return the cached history, reading it from the store on first use."""
        if self._history is None:
            raw = await self._store.read(HISTORY_KEY)
            self._history = migrate_history_document(raw, self._now())
        return self._history

    async def _save_history(self) -> None:
        if self._history is None:
            return
        self._history.last_updated = self._now()
        await self._store.write(HISTORY_KEY, self._history.to_document())
        self._logger.debug("tool_learner.flushed", contexts=len(self._history.contexts))

    def _mark_dirty(self) -> None:
        self._flusher.mark_dirty()

    async def flush(self) -> None:
        """Write pending changes now and cancel the deferred flush.

        No-op when nothing changed.

        Raises:
            StoreWriteError: If the write fails, including a retry of a
                failed deferred flush.
        """
        await self._flusher.flush()

    async def shutdown(self) -> None:
        """Flush pending writes; call at teardown so no data is lost."""
        await self.flush()
        self._logger.info("shutdown_complete")

    async def reset_history(self) -> None:
        """Replace all learning data with an empty history and write it now.

        Raises:
            StoreWriteError: If the empty history cannot be written.
        """
        self._flusher.reset()
        self._history = create_empty_history(self._now())
        try:
            await self._save_history()
        except OSError as e:
            raise StoreWriteError(HISTORY_KEY, str(e)) from e
        self._logger.info("history_reset")

    def clear_cache(self) -> None:
        """Drop the in-memory history and any pending flush."""
        self._history = None
        self._flusher.reset()

    @property
    def buffer_state(self) -> dict[str, bool]:
        """Dirty flag and pending-timer state, for diagnostics and tests."""
        return {"dirty": self._flusher.dirty, "has_timer": self._flusher.has_timer}

    @property
    def last_flush_error(self) -> StoreWriteError | None:
        return self._flusher.last_error


__all__ = ["HISTORY_KEY", "ToolLearnerBase"]
