"""Lifelong learning pipeline: collect during the session, learn at its end.

LifelongLearner ties together the experience collector and store, the batch
learner, the pattern store and the learning log, all backed by one document
store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from tactician.core.config import LifelongLearningConfig
from tactician.core.logging import LearningContext, get_logger, with_context
from tactician.learning.batch import BatchLearner, BatchLearnResult
from tactician.learning.experiences import (
    Experience,
    ExperienceCollector,
    ExperienceStore,
    SessionFacts,
)
from tactician.learning.patterns import (
    LearningLog,
    LearningLogEntry,
    Pattern,
    PatternStore,
    PatternSummary,
)
from tactician.store.base import DocumentStore
from tactician.utils.numeric import round_score
from tactician.utils.time import Clock, now_ms

_logger = get_logger("learning.lifelong")

Trend = Literal["insufficient_data", "accelerating", "decelerating", "stable"]

MIN_TREND_ENTRIES = 4
TREND_MARGIN = 0.5
MIN_HEALTHY_EXPERIENCES = 10
RECENT_LEARNINGS = 5
TOP_PATTERNS = 3


@dataclass
class TypeSummary:
    count: int
    avg_confidence: float
    top_patterns: list[PatternSummary]


@dataclass
class LearningSummary:
    """Report on what the pipeline has learned so far."""

    total_sessions: int
    total_experiences: int
    total_patterns: int
    patterns_by_type: dict[str, TypeSummary] = field(default_factory=dict)
    recent_learnings: list[LearningLogEntry] = field(default_factory=list)
    trend: Trend = "insufficient_data"
    recommendations: list[str] = field(default_factory=list)


def compute_trend(entries: Sequence[LearningLogEntry]) -> Trend:
    """Compare mean patterns extracted in the earlier and later halves of the log."""
    if len(entries) < MIN_TREND_ENTRIES:
        return "insufficient_data"
    half = len(entries) // 2
    first, second = entries[:half], entries[half:]
    first_avg = sum(e.patterns_extracted for e in first) / len(first)
    second_avg = sum(e.patterns_extracted for e in second) / len(second)
    if second_avg > first_avg + TREND_MARGIN:
        return "accelerating"
    if second_avg < first_avg - TREND_MARGIN:
        return "decelerating"
    return "stable"


def summarize_type(patterns: Sequence[Pattern]) -> TypeSummary:
    top = sorted(patterns, key=lambda p: p.confidence, reverse=True)[:TOP_PATTERNS]
    return TypeSummary(
        count=len(patterns),
        avg_confidence=round_score(sum(p.confidence for p in patterns) / len(patterns)),
        top_patterns=[
            PatternSummary(key=p.key, confidence=p.confidence, insight=p.insight) for p in top
        ],
    )


def recommend(
    experience_count: int, by_type: Mapping[str, TypeSummary]
) -> list[str]:
    recommendations: list[str] = []
    total_patterns = sum(t.count for t in by_type.values())
    if experience_count < MIN_HEALTHY_EXPERIENCES:
        recommendations.append("Collect more experiences to improve learning quality.")
    if total_patterns == 0:
        recommendations.append(
            "No patterns extracted yet. Run batch_learn after collecting sufficient experiences."
        )
    error_count = by_type["error"].count if "error" in by_type else 0
    success_count = by_type["success"].count if "success" in by_type else 0
    if error_count > success_count:
        recommendations.append(
            "Error patterns outnumber success patterns. Focus on error prevention strategies."
        )
    if not recommendations:
        recommendations.append("Learning pipeline is healthy. Continue normal operation.")
    return recommendations


class LifelongLearner:
    """Collects session experiences and turns them into persisted patterns.

    Example:
        learner = LifelongLearner(JsonDocumentStore(data_dir))
        await learner.collect_experience("tool", "Grep", {"successRate": 1.0})
        result = await learner.on_session_end({"toolUsage": {...}})
    """

    def __init__(
        self,
        store: DocumentStore,
        config: LifelongLearningConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or LifelongLearningConfig()
        self._clock: Clock = clock or now_ms
        self.collector = ExperienceCollector(self._clock)
        self.experiences = ExperienceStore(store, self.config.max_experiences)
        self.patterns = PatternStore(store, self._clock)
        self.log = LearningLog(store, self.config.max_log_entries)
        self.batch = BatchLearner(
            self.experiences, self.patterns, self.log, self.config, self._clock
        )

    async def collect_experience(
        self,
        experience_type: str,
        category: str | None = None,
        data: Mapping[str, Any] | None = None,
        session_id: str | None = None,
    ) -> Experience:
        """Store a single experience.

        Raises:
            StoreWriteError: If the experience list cannot be written.
        """
        experience = self.collector.build(experience_type, category, data, session_id)
        await self.experiences.append([experience])
        return experience

    async def collect_session_experiences(
        self, facts: SessionFacts | Mapping[str, Any]
    ) -> list[Experience]:
        """Normalize a session's facts and store every resulting experience.

        Raises:
            pydantic.ValidationError: If ``facts`` is a malformed mapping.
            StoreWriteError: If the experience list cannot be written.
        """
        if not isinstance(facts, SessionFacts):
            facts = SessionFacts.model_validate(dict(facts))
        collected = self.collector.from_session(facts)
        await self.experiences.append(collected)
        _logger.debug(
            "experiences.collected", session_id=facts.session_id, count=len(collected)
        )
        return collected

    async def batch_learn(
        self, experiences: Sequence[Experience] | None = None
    ) -> BatchLearnResult:
        return await self.batch.batch_learn(experiences)

    async def update_patterns(self, patterns: Iterable[Pattern]) -> dict[str, list[Pattern]]:
        return await self.patterns.update_patterns(patterns)

    async def load_patterns(self, pattern_type: str) -> list[Pattern]:
        return await self.patterns.load_patterns(pattern_type)

    async def get_learning_summary(self, lookback: int | None = None) -> LearningSummary:
        """Summarize stored patterns and the most recent learning rounds.

        Args:
            lookback: Log entries to analyze. Defaults to config.
        """
        if lookback is None:
            lookback = self.config.summary_lookback
        experiences = await self.experiences.load()
        entries = await self.log.load()
        recent = entries[-lookback:] if lookback > 0 else []

        by_type = {
            pattern_type: summarize_type(patterns)
            for pattern_type, patterns in (await self.patterns.load_all()).items()
        }
        return LearningSummary(
            total_sessions=len(recent),
            total_experiences=len(experiences),
            total_patterns=sum(t.count for t in by_type.values()),
            patterns_by_type=by_type,
            recent_learnings=recent[-RECENT_LEARNINGS:],
            trend=compute_trend(recent),
            recommendations=recommend(len(experiences), by_type),
        )

    async def on_session_end(
        self, facts: SessionFacts | Mapping[str, Any] | None = None
    ) -> BatchLearnResult:
        """Collect a finished session's experiences, then learn from all of them."""
        if facts is None:
            facts = SessionFacts()
        elif not isinstance(facts, SessionFacts):
            facts = SessionFacts.model_validate(dict(facts))
        if not facts.session_id:
            facts = facts.model_copy(update={"session_id": f"session-{self._clock()}"})

        ctx = LearningContext(session_id=facts.session_id, component="lifelong")
        with with_context(ctx):
            await self.collect_session_experiences(facts)
            return await self.batch_learn()

    async def prune_experiences(self, max_age_ms: int) -> int:
        """Drop experiences older than ``max_age_ms``. Returns the count removed."""
        removed = await self.experiences.prune_older_than(self._clock() - max_age_ms)
        if removed:
            _logger.info("experiences.pruned", removed=removed)
        return removed


__all__ = [
    "LearningSummary",
    "LifelongLearner",
    "Trend",
    "TypeSummary",
    "compute_trend",
]
