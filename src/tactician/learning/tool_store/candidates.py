"""Candidate blending mixin for ToolLearner.

Merges the decay-weighted usage score and the cumulative comparison score of
each tool into one ranked candidate list. The first matching rule wins:

1. Enough usage samples and enough comparisons:
   ``blend * comparison + (1 - blend) * usage``
2. Enough comparisons only: the comparison score.
3. Enough usage samples only: the usage score.
4. Cold start: ``max(comparison, usage, floor)``.

When the context has fewer candidates than requested, tools seen only in
related contexts are added with their best related score, discounted.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from tactician.core.config import ToolLearningConfig
from tactician.core.keys import ScoreKey
from tactician.learning.tool_store.comparison import count_comparisons
from tactician.learning.tool_store.models import ToolCandidate, ToolHistory
from tactician.learning.tool_store.usage import related_records
from tactician.learning.weighter import DecayWeighter
from tactician.utils.numeric import round_score


def best_related_scores(history: ToolHistory, context: str) -> dict[str, float]:
    """Highest raw record score per tool across the related contexts."""
    best: dict[str, float] = {}
    for record in related_records(history, context):
        if record.tool not in best or record.score > best[record.tool]:
            best[record.tool] = record.score
    return best


class CandidateMixin:
    """Mixin providing blended tool candidates.

    This mixin requires that the composed class provides:
    - _load_history(): Coroutine returning the cached ToolHistory
    - _now(): Current time in Unix milliseconds
    - config, weighter
    """

    config: ToolLearningConfig
    weighter: DecayWeighter
    _load_history: Callable[[], Awaitable[ToolHistory]]
    _now: Callable[[], int]

    async def suggest_tool_candidates(
        self, context: str, count: int = 5
    ) -> list[ToolCandidate]:
        """Rank every known tool for a context by blended score.

        Args:
            context: Context key.
            count: Maximum candidates to return.

        Returns:
            Candidates ordered by ``combined_score``, best first.
        """
        history = await self._load_history()
        candidates: dict[str, ToolCandidate] = {}

        for suggestion in self.weighter.score_tools(
            history.contexts.get(context, []), self._now()
        ):
            candidates[suggestion.tool] = ToolCandidate(
                tool=suggestion.tool,
                toolformer_score=suggestion.weighted_score,
                toolformer_samples=suggestion.samples,
            )

        for encoded, score in history.grpo_scores.items():
            key = ScoreKey.decode(encoded)
            if key.context != context:
                continue
            candidate = candidates.setdefault(key.tool, ToolCandidate(tool=key.tool))
            candidate.grpo_score = score
            candidate.grpo_comparisons = count_comparisons(history, context, key.tool)

        if len(candidates) < count:
            for tool, score in best_related_scores(history, context).items():
                if tool not in candidates:
                    candidates[tool] = ToolCandidate(
                        tool=tool,
                        toolformer_score=round_score(score * self.config.related_discount),
                        borrowed=True,
                    )

        for candidate in candidates.values():
            candidate.combined_score = self._blend(candidate)

        ranked = sorted(candidates.values(), key=lambda c: c.combined_score, reverse=True)
        return ranked[:count]

    def _blend(self, candidate: ToolCandidate) -> float:
        has_grpo = candidate.grpo_comparisons >= self.config.min_grpo_comparisons
        has_usage = candidate.toolformer_samples >= self.config.min_samples

        if has_grpo and has_usage:
            blend = self.config.grpo_blend_weight
            return round_score(
                blend * candidate.grpo_score + (1.0 - blend) * candidate.toolformer_score
            )
        if has_grpo:
            return round_score(candidate.grpo_score)
        if has_usage:
            return round_score(candidate.toolformer_score)
        return round_score(
            max(candidate.grpo_score, candidate.toolformer_score, self.config.cold_start_floor)
        )


__all__ = ["CandidateMixin", "best_related_scores"]
