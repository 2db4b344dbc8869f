"""Group comparison mixin for ToolLearner.

Competing results for the same context are scored against each other rather
than in isolation. Each result gets a composite of four signals:

    composite = w_success * success + w_speed * speed
              + w_accuracy * accuracy + w_brevity * brevity

Speed is normalized only across results that reported a positive duration:
the fastest maps to 1.0 and the slowest to 0.0. A lone timed result, or a set
of identical timings, scores 1.0. Results without timing get a neutral 0.5.

Each competitor's relative advantage (composite minus the group mean) then
nudges its cumulative ``context::tool`` score:

    score = clamp(score + learning_rate * relative_advantage)

starting from a neutral 0.5.
"""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence

from tactician.core.config import CompositeWeights, ToolLearningConfig
from tactician.core.errors import InvalidGroupSizeError
from tactician.core.keys import ScoreKey
from tactician.core.logging import TacticianLogger
from tactician.learning.tool_store.models import (
    ComparisonGroup,
    GroupResult,
    RankedEntry,
    ToolHistory,
)
from tactician.utils.numeric import clamp_score, round_score, to_number

MIN_GROUP_SIZE = 2
NEUTRAL_SPEED = 0.5


def _duration(value: object) -> float:
    """Usable duration in ms; anything non-numeric or negative counts as untimed."""
    number = to_number(value)
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def speed_score(duration_ms: float, timed: Sequence[float]) -> float:
    """Group-relative speed of one result.

    Args:
        duration_ms: The result's duration; 0 means no usable timing.
        timed: Every strictly positive duration in the group.
    """
    if duration_ms <= 0 or not timed:
        return NEUTRAL_SPEED
    fastest, slowest = min(timed), max(timed)
    if len(timed) == 1 or fastest == slowest:
        return 1.0
    return 1.0 - (duration_ms - fastest) / (slowest - fastest)


def compute_composite(
    result: GroupResult,
    timed: Sequence[float],
    weights: CompositeWeights,
) -> float:
    """Weighted composite score of one result within its group, in [0, 1]."""
    total = weights.success + weights.speed + weights.accuracy + weights.brevity
    composite = (
        weights.success * (1.0 if result.success else 0.0)
        + weights.speed * speed_score(_duration(result.duration_ms), timed)
        + weights.accuracy * clamp_score(result.accuracy)
        + weights.brevity * clamp_score(result.brevity)
    )
    return composite / total


def count_comparisons(history: ToolHistory, context: str, tool: str) -> int:
    """How many stored groups of a context the tool took part in."""
    return sum(
        1
        for group in history.grpo_groups.get(context, [])
        if any(entry.tool == tool for entry in group.rankings)
    )


class GroupComparisonMixin:
    """Mixin providing group comparison ranking and cumulative scores.

    This mixin requires that the composed class provides:
    - _load_history(): Coroutine returning the cached ToolHistory
    - _mark_dirty(): Schedule a deferred flush
    - _now(): Current time in Unix milliseconds
    """

    config: ToolLearningConfig
    _logger: TacticianLogger
    _load_history: Callable[[], Awaitable[ToolHistory]]
    _mark_dirty: Callable[[], None]
    _now: Callable[[], int]

    async def record_group_comparison(
        self,
        context: str,
        results: Iterable[GroupResult | Mapping] | None,
    ) -> ComparisonGroup:
        """Rank simultaneous competing results and update cumulative scores.

        Args:
            context: Context key the results were produced in.
            results: Two or more results, as GroupResult or mappings with
                ``tool``, ``success``, ``durationMs``, ``accuracy``, ``brevity``.

        Returns:
            The stored comparison group, rank 1 first.

        Raises:
            InvalidGroupSizeError: If fewer than two results are given.
        """
        entries = [
            r if isinstance(r, GroupResult) else GroupResult.from_mapping(dict(r))
            for r in (results or [])
        ]
        if len(entries) < MIN_GROUP_SIZE:
            raise InvalidGroupSizeError(context, len(entries), MIN_GROUP_SIZE)

        history = await self._load_history()
        weights = self.config.composite_weights

        timed = [d for d in (_duration(r.duration_ms) for r in entries) if d > 0]
        composites = [compute_composite(r, timed, weights) for r in entries]
        group_mean = sum(composites) / len(composites)

        # sorted() is stable, so ties keep input order
        order = sorted(range(len(entries)), key=lambda i: composites[i], reverse=True)
        rankings = [
            RankedEntry(
                tool=entries[i].tool,
                composite_score=round_score(composites[i]),
                relative_advantage=round_score(composites[i] - group_mean),
                rank=rank,
            )
            for rank, i in enumerate(order, start=1)
        ]
        group = ComparisonGroup(context=context, rankings=rankings, timestamp=self._now())

        groups = history.grpo_groups.setdefault(context, [])
        groups.append(group)
        overflow = len(groups) - self.config.max_groups_per_context
        if overflow > 0:
            del groups[:overflow]

        for entry in rankings:
            key = ScoreKey(context, entry.tool).encode()
            current = history.grpo_scores.get(key, self.config.grpo_neutral_score)
            history.grpo_scores[key] = clamp_score(
                current + self.config.grpo_learning_rate * entry.relative_advantage
            )

        self._mark_dirty()
        self._logger.debug(
            "group_comparison.recorded",
            context=context,
            size=len(rankings),
            winner=rankings[0].tool,
        )
        return group

    async def get_grpo_history(self, context: str, limit: int = 10) -> list[ComparisonGroup]:
        """Most recent comparison groups of one context, oldest first."""
        if limit <= 0:
            return []
        history = await self._load_history()
        return list(history.grpo_groups.get(context, [])[-limit:])

    async def get_grpo_scores(self, context: str) -> dict[str, float]:
        """Cumulative comparison scores of one context, keyed by tool."""
        history = await self._load_history()
        scores: dict[str, float] = {}
        for encoded, score in history.grpo_scores.items():
            key = ScoreKey.decode(encoded)
            if key.context == context:
                scores[key.tool] = score
        return scores


__all__ = [
    "GroupComparisonMixin",
    "MIN_GROUP_SIZE",
    "compute_composite",
    "count_comparisons",
    "speed_score",
]
