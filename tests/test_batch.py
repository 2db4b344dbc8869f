"""Tests for tactician.learning.batch module.

Covers per-type experience scoring, group ranking, the pattern acceptance
threshold, insight templates, and one full batch learning round.
"""

from __future__ import annotations

import pytest

from tactician.core.config import ExperienceWeights, LifelongLearningConfig
from tactician.learning.batch import (
    INSUFFICIENT_DATA_MESSAGE,
    BatchLearner,
    ExperienceScores,
    score_experience,
)
from tactician.learning.experiences import ExperienceStore
from tactician.learning.patterns import LearningLog, PatternStore
from tactician.store.memory import InMemoryDocumentStore
from tests.helpers import FakeClock, make_experience

WEIGHTS = ExperienceWeights()


@pytest.fixture
def batch(memory_store: InMemoryDocumentStore, clock: FakeClock) -> BatchLearner:
    return BatchLearner(
        ExperienceStore(memory_store),
        PatternStore(memory_store, clock),
        LearningLog(memory_store),
        LifelongLearningConfig(),
        clock,
    )


def scores_of(experience_type: str, data: dict) -> ExperienceScores:
    return score_experience(make_experience(experience_type, "c", data))


# ─── Scoring ───────────────────────────────────────────────────────────


class TestScoreExperience:
    """Tests for score_experience() dispatch."""

    def test_tool(self):
        scores = scores_of(
            "tool", {"calls": 4, "successes": 3, "avgMs": 250, "successRate": 0.75}
        )
        assert scores.success == 0.75
        assert scores.speed == pytest.approx(1 / 1.05)
        assert scores.error_rate == 0.75
        assert scores.resource_efficiency == 1.0

    def test_tool_missing_timing_is_neutral(self):
        assert scores_of("tool", {"calls": 1, "successes": 1}).speed == 0.5

    def test_tool_without_calls(self):
        scores = scores_of("tool", {})
        assert scores.error_rate == 1.0
        assert scores.resource_efficiency == 0.5

    def test_non_numeric_fields_clamp_to_zero(self):
        scores = scores_of("tool", {"avgMs": "fast", "successRate": "high", "calls": 2, "successes": "x"})
        assert scores.success == 0.0
        assert scores.speed == 0.0
        assert scores.error_rate == 0.0

    @pytest.mark.parametrize(
        ("recoverable", "expected"),
        [(True, (0.0, 0.5, 0.5, 0.3)), (False, (0.0, 0.5, 0.0, 0.0)), (None, (0.0, 0.5, 0.0, 0.0))],
    )
    def test_error_driven_by_recoverable(self, recoverable, expected):
        scores = scores_of("error", {"recoverable": recoverable})
        assert (scores.success, scores.speed, scores.error_rate, scores.resource_efficiency) == expected

    @pytest.mark.parametrize(("tests_pass", "expected"), [(True, 1.0), (False, 0.0), (None, 0.5)])
    def test_success_tests_pass(self, tests_pass, expected):
        assert scores_of("success", {"testsPass": tests_pass}).error_rate == expected

    def test_success_speed_and_efficiency(self):
        scores = scores_of("success", {"duration": 60_000, "filesModified": 20})
        assert scores.success == 1.0
        assert scores.speed == 0.5
        assert scores.resource_efficiency == 0.5

    def test_team(self):
        scores = scores_of("team", {"successRate": 0.8, "size": 5})
        assert (scores.success, scores.speed, scores.error_rate, scores.resource_efficiency) == (
            0.8,
            0.5,
            0.8,
            0.5,
        )

    def test_team_defaults(self):
        scores = scores_of("team", {})
        assert scores.success == 0.0
        assert scores.error_rate == 0.5
        assert scores.resource_efficiency == pytest.approx(1 / 1.2)

    def test_unknown_type_is_neutral(self):
        scores = scores_of("insight", {"anything": 1})
        assert scores == ExperienceScores()
        assert scores.composite(WEIGHTS) == 0.5

    def test_composite_is_weighted_and_rounded(self):
        scores = ExperienceScores(success=1.0, speed=0.0, error_rate=1.0, resource_efficiency=0.0)
        assert scores.composite(WEIGHTS) == 0.6


# ─── Batch learning ────────────────────────────────────────────────────


class TestBatchLearn:
    """Tests for BatchLearner.batch_learn()."""

    @pytest.mark.asyncio
    async def test_insufficient_data(self, batch: BatchLearner, memory_store: InMemoryDocumentStore):
        result = await batch.batch_learn([make_experience("tool", "Grep")])

        assert result.message == INSUFFICIENT_DATA_MESSAGE
        assert result.patterns_extracted == 0
        assert result.groups_processed == 0
        [entry] = memory_store.documents["learning-log"]
        assert entry["experienceCount"] == 1
        assert entry["patternsExtracted"] == 0

    @pytest.mark.asyncio
    async def test_identical_group_extracts_nothing(self, batch: BatchLearner):
        data = {"calls": 4, "successes": 3, "avgMs": 250, "successRate": 0.75}
        experiences = [make_experience("tool", "Read", dict(data), index=i) for i in range(3)]

        result = await batch.batch_learn(experiences)

        assert result.groups_processed == 1
        assert result.patterns_extracted == 0

    @pytest.mark.asyncio
    async def test_dominant_experience_extracts_one_pattern(
        self, batch: BatchLearner, memory_store: InMemoryDocumentStore
    ):
        fast = make_experience(
            "success", "refactor", {"duration": 1000, "testsPass": True, "strategy": "small steps"}
        )
        slow = make_experience("success", "refactor", {"duration": 5000, "testsPass": False}, index=1)

        result = await batch.batch_learn([slow, fast])

        [pattern] = result.patterns
        assert pattern.key == "success::refactor"
        assert pattern.confidence == score_experience(fast).composite(WEIGHTS)
        assert pattern.best_composite == pattern.confidence
        assert pattern.sample_size == 2
        assert pattern.best_data["strategy"] == "small steps"
        assert 'Task type "refactor"' in pattern.insight
        assert "Strategy: small steps." in pattern.insight
        assert "success-patterns" in " ".join(memory_store.documents)

    @pytest.mark.asyncio
    async def test_singleton_groups_skipped(self, batch: BatchLearner):
        experiences = [
            make_experience("tool", "Grep", {"successRate": 1.0}),
            make_experience("tool", "Read", {"successRate": 0.0}),
            make_experience("error", "timeout", {}),
        ]

        result = await batch.batch_learn(experiences)

        assert result.groups_processed == 0
        assert result.patterns == []
        assert result.message is None

    @pytest.mark.asyncio
    async def test_epsilon_is_configurable(self, memory_store: InMemoryDocumentStore, clock: FakeClock):
        strict = BatchLearner(
            ExperienceStore(memory_store),
            PatternStore(memory_store, clock),
            LearningLog(memory_store),
            LifelongLearningConfig(pattern_epsilon=0.5),
            clock,
        )
        experiences = [
            make_experience("tool", "Grep", {"successRate": 1.0, "calls": 1, "successes": 1}),
            make_experience("tool", "Grep", {"successRate": 0.0, "calls": 1, "successes": 0}),
        ]

        assert (await strict.batch_learn(experiences)).patterns_extracted == 0

    @pytest.mark.asyncio
    async def test_loads_stored_experiences(self, batch: BatchLearner, memory_store: InMemoryDocumentStore):
        await ExperienceStore(memory_store).append(
            [
                make_experience("tool", "Grep", {"successRate": 1.0, "calls": 1, "successes": 1}),
                make_experience("tool", "Grep", {"successRate": 0.0, "calls": 1, "successes": 0}),
            ]
        )

        result = await batch.batch_learn()

        [pattern] = result.patterns
        assert pattern.insight.startswith('Tool "Grep" performs')
        assert "Best success rate: 100%." in pattern.insight

    @pytest.mark.asyncio
    async def test_every_round_is_logged(self, batch: BatchLearner, memory_store: InMemoryDocumentStore):
        team = [
            make_experience("team", "pipeline", {"successRate": 1.0, "size": 2}),
            make_experience("team", "pipeline", {"successRate": 0.1, "size": 8}),
        ]

        await batch.batch_learn([])
        result = await batch.batch_learn(team)

        log = memory_store.documents["learning-log"]
        assert len(log) == 2
        assert log[1]["groupsProcessed"] == 1
        assert log[1]["patternSummary"][0]["key"] == "team::pipeline"
        assert "Optimal size: 2." in result.patterns[0].insight
