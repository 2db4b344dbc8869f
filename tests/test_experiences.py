"""Tests for tactician.learning.experiences module.

Covers ExperienceCollector normalization of session facts, typed payload
parsing, and the capped ExperienceStore.
"""

from __future__ import annotations

import math

import pytest

from tactician.core.errors import StoreWriteError
from tactician.learning.experiences import (
    EXPERIENCES_KEY,
    ErrorData,
    ExperienceCollector,
    ExperienceStore,
    GenericData,
    SessionFacts,
    SuccessData,
    TeamData,
    ToolData,
    parse_payload,
)
from tactician.store.memory import InMemoryDocumentStore
from tests.helpers import FakeClock, make_experience


@pytest.fixture
def collector(clock: FakeClock) -> ExperienceCollector:
    return ExperienceCollector(clock)


# ─── Collector ─────────────────────────────────────────────────────────


class TestBuild:
    """Tests for ExperienceCollector.build()."""

    def test_defaults(self, collector: ExperienceCollector, clock: FakeClock):
        experience = collector.build("tool")

        assert experience.category == "general"
        assert experience.data == {}
        assert experience.session_id is None
        assert experience.timestamp == clock.now
        assert experience.id.startswith(f"exp-{clock.now}-")
        assert len(experience.id.rsplit("-", 1)[1]) == 6

    def test_ids_are_unique(self, collector: ExperienceCollector):
        assert collector.build("tool").id != collector.build("tool").id

    def test_document_uses_camel_case(self, collector: ExperienceCollector):
        document = collector.build("tool", "Grep", session_id="s1").to_document()
        assert document["sessionId"] == "s1"
        assert "session_id" not in document


class TestFromSession:
    """Tests for ExperienceCollector.from_session()."""

    def test_tool_usage(self, collector: ExperienceCollector):
        facts = SessionFacts.model_validate(
            {
                "sessionId": "s1",
                "toolUsage": {
                    "Grep": {"calls": 4, "successes": 3, "totalMs": 1000},
                    "Idle": {},
                },
            }
        )

        grep, idle = collector.from_session(facts)

        assert (grep.type, grep.category, grep.session_id) == ("tool", "Grep", "s1")
        assert grep.data == {
            "calls": 4,
            "successes": 3,
            "totalMs": 1000,
            "avgMs": 250,
            "successRate": 0.75,
        }
        assert idle.data["avgMs"] == 0
        assert idle.data["successRate"] == 0

    def test_error_categories(self, collector: ExperienceCollector):
        facts = SessionFacts(
            errors=[
                {"type": "timeout", "code": "E1", "message": "slow", "recoverable": True},
                {"code": "E2"},
                {},
                "plain failure",
            ]
        )

        typed, coded, bare, text = collector.from_session(facts)

        assert typed.category == "timeout"
        assert typed.data == {"message": "slow", "code": "E1", "tool": None, "recoverable": True}
        assert coded.category == "E2"
        assert bare.category == "unknown"
        assert text.category == "unknown"
        assert text.data["message"] == "plain failure"

    def test_completed_tasks(self, collector: ExperienceCollector):
        facts = SessionFacts(
            completed_tasks=[
                {"id": "t1", "type": "refactor", "filesModified": ["a.py", "b.py"],
                 "testsPass": True, "duration": 5000, "strategy": "incremental"},
                {"taskType": "bugfix", "filesModified": 7},
                {},
            ]
        )

        refactor, bugfix, task = collector.from_session(facts)

        assert refactor.category == "refactor"
        assert refactor.data == {
            "taskId": "t1",
            "duration": 5000,
            "strategy": "incremental",
            "filesModified": 2,
            "testsPass": True,
        }
        assert bugfix.category == "bugfix"
        assert bugfix.data["filesModified"] == 0
        assert task.category == "task"

    def test_team_config(self, collector: ExperienceCollector):
        [team] = collector.from_session(SessionFacts(team_config={"size": 3}))

        assert team.category == "unknown"
        assert team.data["size"] == 3
        assert team.data["agents"] == []
        assert team.data["domain"] == "general"
        assert team.data["successRate"] is None

    def test_order_and_empty_facts(self, collector: ExperienceCollector):
        assert collector.from_session(SessionFacts()) == []

        facts = SessionFacts(
            tool_usage={"Read": {"calls": 1}},
            errors=[{"type": "x"}],
            completed_tasks=[{}],
            team_config={"pattern": "leader"},
        )
        assert [e.type for e in collector.from_session(facts)] == ["tool", "error", "success", "team"]


# ─── Payloads ──────────────────────────────────────────────────────────


class TestParsePayload:
    """Tests for parse_payload()."""

    def test_variants_by_type(self):
        assert isinstance(parse_payload("tool", {}), ToolData)
        assert isinstance(parse_payload("error", {}), ErrorData)
        assert isinstance(parse_payload("success", {}), SuccessData)
        assert isinstance(parse_payload("team", {}), TeamData)
        assert parse_payload("insight", {"a": 1}) == GenericData(fields={"a": 1})

    def test_missing_numbers_are_none(self):
        payload = parse_payload("success", {})
        assert payload.duration is None
        assert payload.tests_pass is None

    def test_non_numeric_values_are_nan(self):
        payload = parse_payload("tool", {"avgMs": "fast", "successRate": None})
        assert math.isnan(payload.avg_ms)
        assert payload.success_rate is None

    def test_non_boolean_flags_are_none(self):
        assert parse_payload("error", {"recoverable": "yes"}).recoverable is None


# ─── Store ─────────────────────────────────────────────────────────────


class TestExperienceStore:
    """Tests for ExperienceStore."""

    @pytest.mark.asyncio
    async def test_append_and_load(self, memory_store: InMemoryDocumentStore):
        store = ExperienceStore(memory_store)
        await store.append([make_experience("tool", "Grep", index=i) for i in range(3)])

        loaded = await store.load()

        assert [e.id for e in loaded] == [f"exp-1767225600000-{i:06d}" for i in range(3)]

    @pytest.mark.asyncio
    async def test_fifo_cap(self, memory_store: InMemoryDocumentStore):
        store = ExperienceStore(memory_store, max_experiences=5)
        await store.append([make_experience("tool", "A", index=i) for i in range(4)])
        await store.append([make_experience("tool", "B", index=i) for i in range(3)])

        loaded = await store.load()

        assert len(loaded) == 5
        assert [e.category for e in loaded] == ["A", "A", "B", "B", "B"]

    @pytest.mark.asyncio
    async def test_invalid_documents_degrade(self, memory_store: InMemoryDocumentStore):
        store = ExperienceStore(memory_store)
        memory_store.documents[EXPERIENCES_KEY] = {"not": "a list"}
        assert await store.load() == []

        good = make_experience("tool", "Grep").to_document()
        memory_store.documents[EXPERIENCES_KEY] = [good, {"broken": True}]
        assert [e.category for e in await store.load()] == ["Grep"]

    @pytest.mark.asyncio
    async def test_prune_older_than(self, memory_store: InMemoryDocumentStore):
        store = ExperienceStore(memory_store)
        await store.append(
            [
                make_experience("tool", "old", timestamp=100),
                make_experience("tool", "new", timestamp=200),
            ]
        )

        assert await store.prune_older_than(150) == 1
        writes = memory_store.total_writes
        assert await store.prune_older_than(150) == 0
        assert memory_store.total_writes == writes
        assert [e.category for e in await store.load()] == ["new"]

    @pytest.mark.asyncio
    async def test_write_failure_raises(self, memory_store: InMemoryDocumentStore):
        memory_store.fail_writes = OSError("disk full")
        with pytest.raises(StoreWriteError):
            await ExperienceStore(memory_store).append([make_experience("tool", "A")])
