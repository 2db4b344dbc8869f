"""Decay-weighted tool learner with modular mixins.

This package provides the ToolLearner class, composed from mixins that each
handle one concern:

- UsageMixin: Usage recording, decay-weighted suggestions, aggregates
- GroupComparisonMixin: Group comparison ranking and cumulative scores
- CandidateMixin: Blended candidates with cold-start and related borrowing
- RetentionMixin: Age-based pruning and orphan cleanup

The base class (ToolLearnerBase) provides:
- The in-memory history cache and schema migration on load
- Deferred, coalescing persistence through a FlushScheduler
- flush / shutdown / reset_history / clear_cache

Usage:
    from tactician.learning.tool_store import ToolLearner
    from tactician.store import JsonDocumentStore

    learner = ToolLearner(JsonDocumentStore(Path("~/.tactician").expanduser()))
    await learner.record_usage("Grep", "search:typescript", 0.9)
    await learner.shutdown()

ToolLearnerBase is listed LAST in the MRO so the mixins can rely on the
attributes it initializes.
"""

from tactician.learning.tool_store.base import HISTORY_KEY, ToolLearnerBase
from tactician.learning.tool_store.candidates import CandidateMixin
from tactician.learning.tool_store.comparison import GroupComparisonMixin, compute_composite
from tactician.learning.tool_store.migration import (
    create_empty_history,
    migrate_history_document,
)
from tactician.learning.tool_store.models import (
    HISTORY_SCHEMA_VERSION,
    ComparisonGroup,
    GroupResult,
    RankedEntry,
    ToolCandidate,
    ToolHistory,
    ToolStats,
    UsageRecord,
)
from tactician.learning.tool_store.retention import DEFAULT_RETENTION_MS, RetentionMixin
from tactician.learning.tool_store.usage import UsageMixin


class ToolLearner(
    UsageMixin,
    GroupComparisonMixin,
    CandidateMixin,
    RetentionMixin,
    ToolLearnerBase,
):
    """Tool learner combining all mixins.

    Learns which tool performs best in which context from scored usage
    records and from group comparisons of competing tools.

    Example:
        learner = ToolLearner(InMemoryDocumentStore())
        await learner.record_group_comparison("search:file", [
            GroupResult("Grep", success=True, duration_ms=120),
            GroupResult("Glob", success=False, duration_ms=900),
        ])
        candidates = await learner.suggest_tool_candidates("search:file")
    """

    pass


__all__ = [
    "ComparisonGroup",
    "DEFAULT_RETENTION_MS",
    "GroupResult",
    "HISTORY_KEY",
    "HISTORY_SCHEMA_VERSION",
    "RankedEntry",
    "ToolCandidate",
    "ToolHistory",
    "ToolLearner",
    "ToolLearnerBase",
    "ToolStats",
    "UsageRecord",
    "compute_composite",
    "create_empty_history",
    "migrate_history_document",
]
