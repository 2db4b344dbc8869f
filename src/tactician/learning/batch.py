"""Batch pattern learning over collected experiences.

Experiences are grouped by ``(type, category)`` and ranked inside each group
by a rule-based composite of four dimensions:

    composite = 0.35 * success + 0.25 * speed
              + 0.25 * error_rate + 0.15 * resource_efficiency

A group yields a pattern only when its best experience beats the group mean
by more than ``pattern_epsilon``; homogeneous groups teach nothing. The
winning experience's composite becomes the pattern's confidence.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from tactician.core.config import ExperienceWeights, LifelongLearningConfig
from tactician.core.keys import PatternKey
from tactician.core.logging import get_logger
from tactician.learning.experiences import (
    ErrorData,
    Experience,
    ExperiencePayload,
    ExperienceStore,
    GenericData,
    SuccessData,
    TeamData,
    ToolData,
    parse_payload,
)
from tactician.learning.patterns import LearningLog, LearningLogEntry, Pattern, PatternStore
from tactician.utils.numeric import clamp01, round_score
from tactician.utils.time import Clock, ms_to_datetime, now_ms

_logger = get_logger("learning.batch")

NEUTRAL = 0.5
INSUFFICIENT_DATA_MESSAGE = "Insufficient experiences for batch learning"


@dataclass
class ExperienceScores:
    """Per-dimension scores of one experience, each in [0, 1]."""

    success: float = NEUTRAL
    speed: float = NEUTRAL
    error_rate: float = NEUTRAL
    resource_efficiency: float = NEUTRAL

    def composite(self, weights: ExperienceWeights) -> float:
        total = weights.success + weights.speed + weights.error_rate + weights.resource_efficiency
        if total <= 0:
            return 0.0
        weighted = (
            weights.success * self.success
            + weights.speed * self.speed
            + weights.error_rate * self.error_rate
            + weights.resource_efficiency * self.resource_efficiency
        )
        return round_score(weighted / total)


def _inverse(value: float | None, scale: float) -> float:
    """1 / (1 + value / scale); missing values are neutral."""
    if value is None:
        return NEUTRAL
    return clamp01(1.0 / (1.0 + max(value, 0.0) / scale))


def score_payload(payload: ExperiencePayload) -> ExperienceScores:
    """Score a typed experience payload on every dimension."""
    match payload:
        case ToolData(calls=calls, successes=successes, avg_ms=avg_ms, success_rate=rate):
            return ExperienceScores(
                success=clamp01(rate),
                speed=_inverse(avg_ms, 5000.0),
                error_rate=clamp01(1.0 - (calls - successes) / calls) if calls > 0 else 1.0,
                resource_efficiency=clamp01(min(1.0, 10.0 / calls)) if calls > 0 else NEUTRAL,
            )
        case ErrorData(recoverable=recoverable):
            return ExperienceScores(
                success=0.0,
                speed=NEUTRAL,
                error_rate=NEUTRAL if recoverable is True else 0.0,
                resource_efficiency=0.3 if recoverable is True else 0.0,
            )
        case SuccessData(duration=duration, files_modified=files, tests_pass=tests_pass):
            tests = {True: 1.0, False: 0.0}.get(tests_pass, NEUTRAL)
            return ExperienceScores(
                success=1.0,
                speed=_inverse(duration, 60_000.0),
                error_rate=tests,
                resource_efficiency=_inverse(files, 20.0),
            )
        case TeamData(success_rate=rate, duration=duration, size=size):
            return ExperienceScores(
                success=clamp01(rate),
                speed=_inverse(duration, 120_000.0),
                error_rate=NEUTRAL if rate is None else clamp01(rate),
                resource_efficiency=_inverse(1.0 if size is None else size, 5.0),
            )
        case GenericData():
            return ExperienceScores()
    raise TypeError(f"Unsupported payload: {type(payload).__name__}")


def score_experience(experience: Experience) -> ExperienceScores:
    """Score one experience by dispatching on its typed payload."""
    return score_payload(parse_payload(experience.type, experience.data))


@dataclass
class RankedExperience:
    experience: Experience
    scores: ExperienceScores
    composite: float


def _percent(fraction: float) -> str:
    return f"{round(fraction * 100, 1):g}"


def generate_insight(
    key: PatternKey, best: RankedExperience, group_mean: float
) -> str:
    """One-sentence, human-readable summary of what the winner did better."""
    advantage = _percent(best.composite - group_mean)
    data = best.experience.data
    match key.type:
        case "tool":
            return (
                f'Tool "{key.category}" performs {advantage}% above average. '
                f"Best success rate: {_percent(best.scores.success)}%."
            )
        case "error":
            recoverable = data.get("recoverable")
            label = "unknown" if recoverable is None else str(recoverable).lower()
            return f'Error pattern "{key.category}" detected. Recoverable: {label}.'
        case "success":
            return (
                f'Task type "{key.category}" best approach scores {advantage}% above '
                f"group mean. Strategy: {data.get('strategy') or 'default'}."
            )
        case "team":
            return (
                f'Team pattern "{key.category}" scores {advantage}% above average. '
                f"Optimal size: {data.get('size') or 'unknown'}."
            )
        case _:
            return f'Pattern "{key.category}" shows {advantage}% advantage over group mean.'


@dataclass
class BatchLearnResult:
    """Outcome of one batch learning round."""

    groups_processed: int = 0
    patterns_extracted: int = 0
    patterns: list[Pattern] = field(default_factory=list)
    message: str | None = None
    log_entry: LearningLogEntry | None = None


class BatchLearner:
    """Groups, ranks and extracts patterns from experiences.

    Args:
        experiences: Store to load experiences from when none are given.
        patterns: Store the extracted patterns are merged into.
        log: Learning log receiving one entry per round.
        config: Group size, epsilon and scoring weights.
        clock: Millisecond clock.
    """

    def __init__(
        self,
        experiences: ExperienceStore,
        patterns: PatternStore,
        log: LearningLog,
        config: LifelongLearningConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._experiences = experiences
        self._patterns = patterns
        self._log = log
        self.config = config or LifelongLearningConfig()
        self._clock: Clock = clock or now_ms

    def rank_group(
        self, members: Sequence[Experience]
    ) -> tuple[list[RankedExperience], float]:
        """Score and rank one group, best first. Returns ``(ranked, group_mean)``."""
        weights = self.config.experience_weights
        ranked = []
        for experience in members:
            scores = score_experience(experience)
            ranked.append(RankedExperience(experience, scores, scores.composite(weights)))
        group_mean = round_score(sum(r.composite for r in ranked) / len(ranked))
        ranked.sort(key=lambda r: r.composite, reverse=True)
        return ranked, group_mean

    def extract_pattern(
        self, key: PatternKey, ranked: Sequence[RankedExperience], group_mean: float
    ) -> Pattern | None:
        """Build a pattern from a ranked group, or None when nothing stands out."""
        if len(ranked) < self.config.min_group_size:
            return None
        best = ranked[0]
        if best.composite <= group_mean + self.config.pattern_epsilon:
            return None
        return Pattern(
            key=key.encode(),
            type=key.type,
            category=key.category,
            confidence=clamp01(best.composite),
            best_composite=best.composite,
            group_mean=group_mean,
            sample_size=len(ranked),
            insight=generate_insight(key, best, group_mean),
            best_data=dict(best.experience.data),
            extracted_at=ms_to_datetime(self._clock()),
        )

    async def batch_learn(self, experiences: Sequence[Experience] | None = None) -> BatchLearnResult:
        """Run one learning round and log it.

        Args:
            experiences: Experiences to learn from. Loads the stored ones if None.

        Raises:
            StoreWriteError: If patterns or the log entry cannot be written.
        """
        if experiences is None:
            experiences = await self._experiences.load()

        if len(experiences) < self.config.min_group_size:
            entry = LearningLogEntry.create(self._clock(), len(experiences), 0)
            await self._log.append(entry)
            _logger.info("batch_learn.insufficient_data", experience_count=len(experiences))
            return BatchLearnResult(message=INSUFFICIENT_DATA_MESSAGE, log_entry=entry)

        groups: dict[PatternKey, list[Experience]] = {}
        for experience in experiences:
            groups.setdefault(PatternKey(experience.type, experience.category), []).append(
                experience
            )

        processed = 0
        extracted: list[Pattern] = []
        for key, members in groups.items():
            if len(members) < self.config.min_group_size:
                continue
            processed += 1
            ranked, group_mean = self.rank_group(members)
            pattern = self.extract_pattern(key, ranked, group_mean)
            if pattern is not None:
                extracted.append(pattern)

        if extracted:
            await self._patterns.update_patterns(extracted)

        entry = LearningLogEntry.create(self._clock(), len(experiences), processed, extracted)
        await self._log.append(entry)
        _logger.info(
            "batch_learn.completed",
            experience_count=len(experiences),
            groups_processed=processed,
            patterns_extracted=len(extracted),
        )
        return BatchLearnResult(
            groups_processed=processed,
            patterns_extracted=len(extracted),
            patterns=extracted,
            log_entry=entry,
        )


__all__ = [
    "BatchLearnResult",
    "BatchLearner",
    "ExperienceScores",
    "INSUFFICIENT_DATA_MESSAGE",
    "RankedExperience",
    "generate_insight",
    "score_experience",
    "score_payload",
]
