"""Tests for the ToolLearner usage store and suggestion engine.

Covers record_usage (clamping, the per-context cap, aggregates), suggest_tool
(decay weighting, sample threshold, related-context fallback), batched
persistence, reload round-trips, reset and cache clearing.
"""

from __future__ import annotations

import pytest

from tactician.core.config import ToolLearningConfig
from tactician.core.errors import StoreWriteError
from tactician.learning.tool_store import HISTORY_KEY, ToolLearner
from tactician.store.json_backend import JsonDocumentStore
from tactician.store.memory import InMemoryDocumentStore
from tests.helpers import FakeClock


@pytest.fixture
def learner(memory_store: InMemoryDocumentStore, clock: FakeClock) -> ToolLearner:
    """Learner over an in-memory store with a frozen clock."""
    return ToolLearner(memory_store, clock=clock)


async def record_many(learner: ToolLearner, tool: str, context: str, scores: list[float]) -> None:
    for score in scores:
        await learner.record_usage(tool, context, score)


# ─── Recording ─────────────────────────────────────────────────────────


class TestRecordUsage:
    """Tests for record_usage()."""

    @pytest.mark.asyncio
    async def test_scores_are_clamped(self, learner: ToolLearner):
        high = await learner.record_usage("Read", "read:file", 1.7)
        low = await learner.record_usage("Read", "read:file", -1)
        garbage = await learner.record_usage("Read", "read:file", "abc")
        nan = await learner.record_usage("Read", "read:file", float("nan"))

        assert [high.score, low.score, garbage.score, nan.score] == [1.0, 0.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_meta_fields_are_optional(self, learner: ToolLearner):
        plain = await learner.record_usage("Grep", "search:ts", 0.9)
        tagged = await learner.record_usage(
            "Grep", "search:ts", 0.9, command="/analyze", domain="backend"
        )

        assert plain.command is None
        assert "command" not in plain.to_document()
        assert tagged.command == "/analyze"
        assert tagged.domain == "backend"

    @pytest.mark.asyncio
    async def test_bucket_capped_at_200_oldest_evicted(self, learner: ToolLearner):
        await learner.record_usage("Read", "search:file", 0.0)
        await record_many(learner, "Read", "search:file", [1.0] * 199)
        assert (await learner.get_context_map())["search:file"] == 200

        await learner.record_usage("Read", "search:file", 1.0)

        assert (await learner.get_context_map())["search:file"] == 200
        [suggestion] = await learner.suggest_tool("search:file")
        assert suggestion.raw_avg == 1.0

    @pytest.mark.asyncio
    async def test_aggregates_track_running_average(self, learner: ToolLearner, clock: FakeClock):
        await learner.record_usage("Grep", "search:ts", 1.0)
        clock.advance(1000)
        await learner.record_usage("Grep", "search:py", 0.5)

        stats = await learner.get_tool_stats("Grep")

        assert stats.total_uses == 2
        assert stats.total_score == 1.5
        assert stats.avg_score == 0.75
        assert stats.last_used == clock.now

    @pytest.mark.asyncio
    async def test_tool_stats_are_copies(self, learner: ToolLearner):
        await learner.record_usage("Grep", "search:ts", 1.0)

        all_stats = await learner.get_tool_stats()
        all_stats["Grep"].total_uses = 99

        assert (await learner.get_tool_stats("Grep")).total_uses == 1
        assert await learner.get_tool_stats("Unknown") is None

    @pytest.mark.asyncio
    async def test_recording_marks_dirty_without_writing(
        self, learner: ToolLearner, memory_store: InMemoryDocumentStore
    ):
        await learner.record_usage("Grep", "search:ts", 1.0)

        assert learner.buffer_state == {"dirty": True, "has_timer": True}
        assert memory_store.total_writes == 0
        learner.clear_cache()


# ─── Suggestions ───────────────────────────────────────────────────────


class TestSuggestTool:
    """Tests for suggest_tool()."""

    @pytest.mark.asyncio
    async def test_tools_below_min_samples_never_suggested(self, learner: ToolLearner):
        await record_many(learner, "Rare", "search:ts", [1.0, 1.0])
        await record_many(learner, "Common", "search:ts", [0.5, 0.5, 0.5])

        result = await learner.suggest_tool("search:ts")

        assert [s.tool for s in result] == ["Common"]
        assert result[0].confidence == "medium"

    @pytest.mark.asyncio
    async def test_high_confidence_at_twenty_samples(self, learner: ToolLearner):
        await record_many(learner, "Grep", "search:ts", [0.9] * 20)

        [suggestion] = await learner.suggest_tool("search:ts")

        assert suggestion.confidence == "high"
        assert suggestion.samples == 20

    @pytest.mark.asyncio
    async def test_ranked_and_limited(self, learner: ToolLearner):
        await record_many(learner, "A", "search:ts", [0.3] * 3)
        await record_many(learner, "B", "search:ts", [0.9] * 3)
        await record_many(learner, "C", "search:ts", [0.6] * 3)

        result = await learner.suggest_tool("search:ts", limit=2)

        assert [s.tool for s in result] == ["B", "C"]

    @pytest.mark.asyncio
    async def test_min_score_filters(self, learner: ToolLearner):
        await record_many(learner, "A", "search:ts", [0.3] * 3)
        await record_many(learner, "B", "search:ts", [0.9] * 3)

        result = await learner.suggest_tool("search:ts", min_score=0.5)

        assert [s.tool for s in result] == ["B"]

    @pytest.mark.asyncio
    async def test_older_records_count_less(self, learner: ToolLearner, clock: FakeClock):
        await record_many(learner, "Grep", "search:ts", [0.0] * 3)
        clock.advance(days=14)
        await record_many(learner, "Grep", "search:ts", [1.0] * 3)

        [suggestion] = await learner.suggest_tool("search:ts")

        # old records weigh 0.25 each
        assert suggestion.weighted_score == 0.8
        assert suggestion.raw_avg == 0.5

    @pytest.mark.asyncio
    async def test_falls_back_to_related_contexts_as_low(self, learner: ToolLearner):
        await record_many(learner, "Grep", "search:typescript", [0.8] * 2)
        await record_many(learner, "Grep", "search:python", [0.8])
        await record_many(learner, "Edit", "edit:python", [1.0] * 5)

        result = await learner.suggest_tool("search:rust")

        assert [s.tool for s in result] == ["Grep"]
        assert result[0].confidence == "low"
        assert result[0].samples == 3

    @pytest.mark.asyncio
    async def test_native_tools_win_over_related(self, learner: ToolLearner):
        await record_many(learner, "Glob", "search:rust", [0.5] * 3)
        await record_many(learner, "Grep", "search:python", [1.0] * 10)

        result = await learner.suggest_tool("search:rust")

        assert [s.tool for s in result] == ["Glob"]
        assert result[0].confidence == "medium"

    @pytest.mark.asyncio
    async def test_unknown_context_is_empty(self, learner: ToolLearner):
        assert await learner.suggest_tool("nothing:here") == []
        assert await learner.suggest_tool("single") == []


# ─── Persistence ───────────────────────────────────────────────────────


class TestPersistence:
    """Tests for batched writes, reload and reset."""

    @pytest.mark.asyncio
    async def test_mutations_coalesce_into_one_flush(
        self, learner: ToolLearner, memory_store: InMemoryDocumentStore
    ):
        await record_many(learner, "Grep", "search:ts", [1.0] * 10)
        await learner.flush()

        assert memory_store.writes == {HISTORY_KEY: 1}
        assert learner.buffer_state == {"dirty": False, "has_timer": False}

    @pytest.mark.asyncio
    async def test_round_trip_through_store(
        self, learner: ToolLearner, memory_store: InMemoryDocumentStore, clock: FakeClock
    ):
        scores = [0.1 * i for i in range(7)]
        await record_many(learner, "Grep", "search:ts", scores)
        await learner.shutdown()

        reloaded = ToolLearner(memory_store, clock=clock)
        history = await reloaded._load_history()

        assert [r.score for r in history.contexts["search:ts"]] == [
            r.score for r in (await learner._load_history()).contexts["search:ts"]
        ]
        assert await reloaded.get_context_map() == {"search:ts": 7}

    @pytest.mark.asyncio
    async def test_round_trip_through_json_files(
        self, json_store: JsonDocumentStore, clock: FakeClock
    ):
        learner = ToolLearner(json_store, clock=clock)
        await record_many(learner, "Read", "read:file", [0.5] * 4)
        await learner.shutdown()

        document = await json_store.read(HISTORY_KEY)
        assert document["version"] == 2
        assert document["lastUpdated"] == clock.now
        assert set(document) >= {"contexts", "aggregates", "grpoGroups", "grpoScores"}

        reloaded = ToolLearner(json_store, clock=clock)
        assert (await reloaded.get_tool_stats("Read")).total_uses == 4

    @pytest.mark.asyncio
    async def test_flush_failure_raises(
        self, learner: ToolLearner, memory_store: InMemoryDocumentStore
    ):
        await learner.record_usage("Grep", "search:ts", 1.0)
        memory_store.fail_writes = OSError("read-only filesystem")

        with pytest.raises(StoreWriteError):
            await learner.shutdown()

        memory_store.fail_writes = None
        await learner.flush()
        assert memory_store.writes == {HISTORY_KEY: 1}

    @pytest.mark.asyncio
    async def test_reset_history_writes_immediately(
        self, learner: ToolLearner, memory_store: InMemoryDocumentStore
    ):
        await record_many(learner, "Grep", "search:ts", [1.0] * 3)
        await learner.reset_history()

        assert memory_store.writes == {HISTORY_KEY: 1}
        assert memory_store.documents[HISTORY_KEY]["contexts"] == {}
        assert await learner.get_context_map() == {}
        assert learner.buffer_state["dirty"] is False

    @pytest.mark.asyncio
    async def test_clear_cache_reloads_from_store(
        self, learner: ToolLearner, memory_store: InMemoryDocumentStore
    ):
        await learner.record_usage("Grep", "search:ts", 1.0)
        await learner.flush()
        await learner.record_usage("Grep", "search:ts", 1.0)

        learner.clear_cache()

        assert learner.buffer_state == {"dirty": False, "has_timer": False}
        assert await learner.get_context_map() == {"search:ts": 1}

    @pytest.mark.asyncio
    async def test_config_controls_cap(self, memory_store: InMemoryDocumentStore, clock: FakeClock):
        learner = ToolLearner(
            memory_store, ToolLearningConfig(max_records_per_context=5), clock=clock
        )
        await record_many(learner, "Grep", "search:ts", [1.0] * 8)

        assert await learner.get_context_map() == {"search:ts": 5}
        learner.clear_cache()
