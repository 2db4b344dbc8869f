"""Usage tracking mixin for ToolLearner.

Provides the decay-weighted telemetry store and the suggestion engine:
- record_usage: Append a scored usage record to a context bucket
- suggest_tool: Rank tools for a context by time-decayed score
- get_tool_stats: Per-tool running aggregates
- get_context_map: Record counts per context
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from tactician.core.config import ToolLearningConfig
from tactician.core.keys import is_related
from tactician.core.logging import TacticianLogger
from tactician.learning.tool_store.models import ToolHistory, ToolStats, UsageRecord
from tactician.learning.weighter import DecayWeighter, ToolSuggestion
from tactician.utils.numeric import clamp_score, round_score


def update_aggregate(history: ToolHistory, record: UsageRecord) -> None:
    """Fold one record into its tool's running aggregate."""
    stats = history.aggregates.get(record.tool)
    if stats is None:
        stats = ToolStats()
        history.aggregates[record.tool] = stats
    stats.total_uses += 1
    stats.total_score += record.score
    stats.avg_score = round_score(stats.total_score / stats.total_uses)
    stats.last_used = record.timestamp


def rebuild_aggregates(history: ToolHistory) -> None:
    """Recompute every aggregate from the surviving usage records."""
    history.aggregates = {}
    for records in history.contexts.values():
        for record in records:
            update_aggregate(history, record)


def related_records(history: ToolHistory, context: str) -> list[UsageRecord]:
    """All records of contexts sharing ``context``'s operation prefix."""
    collected: list[UsageRecord] = []
    for other, records in history.contexts.items():
        if is_related(context, other):
            collected.extend(records)
    return collected


class UsageMixin:
    """Mixin providing usage recording and decay-weighted suggestions.

    This mixin requires that the composed class provides:
    - _load_history(): Coroutine returning the cached ToolHistory
    - _mark_dirty(): Schedule a deferred flush
    - _now(): Current time in Unix milliseconds
    - config, weighter, _logger
    """

    config: ToolLearningConfig
    weighter: DecayWeighter
    _logger: TacticianLogger
    _load_history: Callable[[], Awaitable[ToolHistory]]
    _mark_dirty: Callable[[], None]
    _now: Callable[[], int]

    async def record_usage(
        self,
        tool: str,
        context: str,
        score: Any,
        *,
        command: str | None = None,
        domain: str | None = None,
    ) -> UsageRecord:
        """Record that a tool was used in a context with a given outcome.

        The score is clamped to [0, 1]; non-numeric input counts as 0. The
        context bucket keeps only the most recent records.

        Args:
            tool: Tool name (e.g. "Grep", "Read").
            context: Context key, usually from ``build_context_key``.
            score: Outcome score, nominally 0.0-1.0.
            command: Optional command that triggered the use.
            domain: Optional domain classification.

        Returns:
            The stored record.
        """
        history = await self._load_history()
        record = UsageRecord(
            tool=tool,
            context=context,
            score=clamp_score(score),
            timestamp=self._now(),
            command=command or None,
            domain=domain or None,
        )

        bucket = history.contexts.setdefault(context, [])
        bucket.append(record)
        overflow = len(bucket) - self.config.max_records_per_context
        if overflow > 0:
            del bucket[:overflow]

        update_aggregate(history, record)
        self._mark_dirty()
        return record

    async def suggest_tool(
        self,
        context: str,
        limit: int | None = None,
        min_score: float | None = None,
    ) -> list[ToolSuggestion]:
        """Suggest the best tools for a context, best first.

        Tools with fewer than ``min_samples`` native records never appear.
        When no native tool qualifies, records from related contexts (same
        operation prefix) are ranked the same way and labelled "low".

        Args:
            context: Context key to match.
            limit: Maximum suggestions. Defaults to config.
            min_score: Minimum weighted score. Defaults to config.
        """
        if limit is None:
            limit = self.config.default_suggestion_limit
        if min_score is None:
            min_score = self.config.default_min_score

        history = await self._load_history()
        now = self._now()

        native = self.weighter.qualifying(
            self.weighter.score_tools(history.contexts.get(context, []), now),
            min_score,
        )
        if native:
            return native[:limit]

        borrowed = self.weighter.qualifying(
            self.weighter.score_tools(related_records(history, context), now),
            min_score,
        )
        if borrowed:
            self._logger.debug(
                "suggest_tool.borrowed", context=context, tools=len(borrowed)
            )
        return [replace(s, confidence="low") for s in borrowed[:limit]]

    async def get_tool_stats(
        self, tool: str | None = None
    ) -> dict[str, ToolStats] | ToolStats | None:
        """Aggregate statistics for all tools, or for one tool.

        Returns copies so callers cannot mutate the cache.
        """
        history = await self._load_history()
        if tool is not None:
            stats = history.aggregates.get(tool)
            return stats.model_copy() if stats is not None else None
        return {name: stats.model_copy() for name, stats in history.aggregates.items()}

    async def get_context_map(self) -> dict[str, int]:
        """Map of context key to stored record count."""
        history = await self._load_history()
        return {context: len(records) for context, records in history.contexts.items()}


__all__ = [
    "UsageMixin",
    "rebuild_aggregates",
    "related_records",
    "update_aggregate",
]
