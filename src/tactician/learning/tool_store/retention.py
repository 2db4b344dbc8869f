"""Retention mixin for ToolLearner.

Age-based pruning of usage records and comparison groups. A cumulative score
survives only while its context still has records or groups, so pruning never
leaves an orphaned ``context::tool`` entry behind.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from tactician.core.keys import ScoreKey
from tactician.core.logging import TacticianLogger
from tactician.learning.tool_store.models import ToolHistory
from tactician.learning.tool_store.usage import rebuild_aggregates
from tactician.utils.time import MS_PER_DAY

DEFAULT_RETENTION_MS = 90 * MS_PER_DAY

_T = TypeVar("_T")


def _prune_buckets(buckets: dict[str, list[_T]], keep: Callable[[_T], bool]) -> int:
    """Filter every bucket in place, dropping emptied ones. Returns the count removed."""
    removed = 0
    for key in list(buckets):
        before = len(buckets[key])
        survivors = [item for item in buckets[key] if keep(item)]
        removed += before - len(survivors)
        if survivors:
            buckets[key] = survivors
        else:
            del buckets[key]
    return removed


class RetentionMixin:
    """Mixin providing age-based pruning of the telemetry history.

    This mixin requires that the composed class provides:
    - _load_history(): Coroutine returning the cached ToolHistory
    - _mark_dirty(): Schedule a deferred flush
    - _now(): Current time in Unix milliseconds
    """

    _logger: TacticianLogger
    _load_history: Callable[[], Awaitable[ToolHistory]]
    _mark_dirty: Callable[[], None]
    _now: Callable[[], int]

    async def prune_old_records(self, max_age_ms: int | None = None) -> int:
        """Remove records and comparison groups older than ``max_age_ms``.

        Aggregates are rebuilt and a flush is scheduled only when something
        was removed, so pruning twice with the same cutoff writes nothing
        the second time.

        Args:
            max_age_ms: Retention period. Defaults to 90 days.

        Returns:
            Number of records and groups removed.
        """
        if max_age_ms is None:
            max_age_ms = DEFAULT_RETENTION_MS
        history = await self._load_history()
        cutoff = self._now() - max_age_ms

        removed = _prune_buckets(history.contexts, lambda r: r.timestamp >= cutoff)
        removed += _prune_buckets(history.grpo_groups, lambda g: g.timestamp >= cutoff)

        orphans = [
            encoded
            for encoded in history.grpo_scores
            if ScoreKey.decode(encoded).context not in history.contexts
            and ScoreKey.decode(encoded).context not in history.grpo_groups
        ]
        for encoded in orphans:
            del history.grpo_scores[encoded]

        if removed > 0:
            rebuild_aggregates(history)
            self._mark_dirty()
            self._logger.info(
                "tool_learner.pruned",
                removed=removed,
                orphan_scores=len(orphans),
                cutoff=cutoff,
            )
        return removed


__all__ = ["DEFAULT_RETENTION_MS", "RetentionMixin"]
