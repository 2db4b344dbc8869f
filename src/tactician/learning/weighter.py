"""Time-decay weighting of tool observations.

Older observations count for less. Each observation is weighted by

    weight = 0.5 ** (age / half_life)

so a fresh observation weighs exactly 1.0, one that is one half-life old
weighs 0.5, and the weight keeps halving with every further half-life. The
decayed score of a tool is the weight-normalized mean of its observation
scores; with equal weights it reduces to the ordinary mean.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Protocol

from tactician.utils.numeric import round_score
from tactician.utils.time import MS_PER_DAY

ConfidenceLabel = Literal["low", "medium", "high"]

DEFAULT_HALF_LIFE_MS = 7 * MS_PER_DAY
DEFAULT_MIN_SAMPLES = 3
DEFAULT_HIGH_CONFIDENCE_SAMPLES = 20


class WeightableObservation(Protocol):
    """Anything with a tool name, a score and a millisecond timestamp."""

    @property
    def tool(self) -> str: ...
    @property
    def score(self) -> float: ...
    @property
    def timestamp(self) -> int: ...


@dataclass
class ToolSuggestion:
    """Decay-weighted ranking entry for one tool.

    Attributes:
        tool: Tool name.
        weighted_score: Time-decayed mean score (0.0-1.0).
        raw_avg: Undecayed mean score.
        samples: Number of observations behind the score.
        confidence: "high", "medium" or "low".
    """

    tool: str
    weighted_score: float
    raw_avg: float
    samples: int
    confidence: ConfidenceLabel


@dataclass
class _Accumulator:
    total_weight: float = 0.0
    weighted_sum: float = 0.0
    raw_sum: float = 0.0
    count: int = 0


class DecayWeighter:
    """Computes decay weights and decayed per-tool scores."""

    def __init__(
        self,
        half_life_ms: float = DEFAULT_HALF_LIFE_MS,
        min_samples: int = DEFAULT_MIN_SAMPLES,
        high_confidence_samples: int = DEFAULT_HIGH_CONFIDENCE_SAMPLES,
    ) -> None:
        if half_life_ms <= 0:
            raise ValueError("half_life_ms must be positive")
        self.half_life_ms = half_life_ms
        self.min_samples = min_samples
        self.high_confidence_samples = high_confidence_samples

    def decay_weight(self, age_ms: float) -> float:
        """Weight of an observation of the given age.

        Negative ages (clock skew) are treated as fresh.
        """
        if age_ms <= 0:
            return 1.0
        weight: float = 0.5 ** (age_ms / self.half_life_ms)
        return weight

    def confidence_label(self, samples: int) -> ConfidenceLabel:
        if samples >= self.high_confidence_samples:
            return "high"
        if samples >= self.min_samples:
            return "medium"
        return "low"

    def score_tools(
        self,
        observations: Iterable[WeightableObservation],
        now_ms: int,
    ) -> list[ToolSuggestion]:
        """Compute decayed scores for every tool in the observations.

        Tools are returned best first; ties keep first-seen order.

        Args:
            observations: Usage observations, in any order.
            now_ms: Reference time for ages.
        """
        by_tool: dict[str, _Accumulator] = {}
        for obs in observations:
            weight = self.decay_weight(now_ms - obs.timestamp)
            acc = by_tool.setdefault(obs.tool, _Accumulator())
            acc.total_weight += weight
            acc.weighted_sum += obs.score * weight
            acc.raw_sum += obs.score
            acc.count += 1

        suggestions = [
            ToolSuggestion(
                tool=tool,
                weighted_score=round_score(
                    acc.weighted_sum / acc.total_weight if acc.total_weight > 0 else 0.0
                ),
                raw_avg=round_score(acc.raw_sum / acc.count if acc.count else 0.0),
                samples=acc.count,
                confidence=self.confidence_label(acc.count),
            )
            for tool, acc in by_tool.items()
        ]
        suggestions.sort(key=lambda s: s.weighted_score, reverse=True)
        return suggestions

    def qualifying(
        self,
        suggestions: Iterable[ToolSuggestion],
        min_score: float,
    ) -> list[ToolSuggestion]:
        """Keep suggestions with enough samples and a high enough score."""
        return [
            s
            for s in suggestions
            if s.samples >= self.min_samples and s.weighted_score >= min_score
        ]


def decay_weight(age_ms: float, half_life_ms: float = DEFAULT_HALF_LIFE_MS) -> float:
    """Convenience function to compute a decay weight without a weighter."""
    return DecayWeighter(half_life_ms=half_life_ms).decay_weight(age_ms)


__all__ = [
    "ConfidenceLabel",
    "DEFAULT_HALF_LIFE_MS",
    "DecayWeighter",
    "ToolSuggestion",
    "WeightableObservation",
    "decay_weight",
]
