"""Persisted document models and result types for the tool learner.

The telemetry history is one JSON document (schema version 2)::

    {
      "version": 2,
      "contexts":   {context: [UsageRecord, ...]},
      "aggregates": {tool: ToolStats},
      "grpoGroups": {context: [ComparisonGroup, ...]},
      "grpoScores": {"context::tool": float},
      "lastUpdated": <unix ms>
    }

Document fields use camelCase on disk; Python code uses snake_case names.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HISTORY_SCHEMA_VERSION = 2


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """Serialize to the on-disk JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UsageRecord(_Document):
    """One observed tool use. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    tool: str
    context: str
    score: float = Field(ge=0.0, le=1.0)
    timestamp: int
    command: str | None = None
    domain: str | None = None


class ToolStats(_Document):
    """Running per-tool aggregate across all contexts."""

    total_uses: int = 0
    total_score: float = 0.0
    avg_score: float = 0.0
    last_used: int = 0


class RankedEntry(_Document):
    """One competitor's standing inside a comparison group."""

    model_config = ConfigDict(frozen=True)

    tool: str
    composite_score: float
    relative_advantage: float
    rank: int


class ComparisonGroup(_Document):
    """Rankings produced from one set of simultaneous competing results."""

    model_config = ConfigDict(frozen=True)

    context: str
    rankings: list[RankedEntry]
    timestamp: int


class ToolHistory(_Document):
    """The whole telemetry document."""

    version: int = HISTORY_SCHEMA_VERSION
    contexts: dict[str, list[UsageRecord]] = Field(default_factory=dict)
    aggregates: dict[str, ToolStats] = Field(default_factory=dict)
    grpo_groups: dict[str, list[ComparisonGroup]] = Field(default_factory=dict)
    grpo_scores: dict[str, float] = Field(default_factory=dict)
    last_updated: int = 0


@dataclass
class GroupResult:
    """One competitor's outcome submitted to a group comparison.

    Attributes:
        tool: Tool or command name.
        success: Whether it succeeded (exit code 0, result found).
        duration_ms: Execution time; 0 means no usable timing.
        accuracy: Caller-assessed usefulness of the output (0.0-1.0).
        brevity: Caller-assessed conciseness of the invocation (0.0-1.0).
    """

    tool: str
    success: bool = False
    duration_ms: float = 0.0
    accuracy: float = 0.0
    brevity: float = 0.0

    @classmethod
    def from_mapping(cls, data: dict) -> GroupResult:
        """Build from a caller dict using either camelCase or snake_case keys.

        Only a real boolean True counts as success.
        """
        return cls(
            tool=str(data["tool"]),
            success=data.get("success") is True,
            duration_ms=data.get("duration_ms", data.get("durationMs", 0)) or 0,
            accuracy=data.get("accuracy", 0.0),
            brevity=data.get("brevity", 0.0),
        )


@dataclass
class ToolCandidate:
    """Blended recommendation for one tool.

    Attributes:
        tool: Tool name.
        toolformer_score: Decay-weighted score (discounted when borrowed).
        toolformer_samples: Native usage samples behind that score.
        grpo_score: Cumulative group-comparison score.
        grpo_comparisons: Comparison groups the tool appeared in.
        combined_score: Final blended score used for ranking.
        borrowed: True when the tool only appears in related contexts.
    """

    tool: str
    toolformer_score: float = 0.0
    toolformer_samples: int = 0
    grpo_score: float = 0.0
    grpo_comparisons: int = 0
    combined_score: float = 0.0
    borrowed: bool = False


__all__ = [
    "ComparisonGroup",
    "GroupResult",
    "HISTORY_SCHEMA_VERSION",
    "RankedEntry",
    "ToolCandidate",
    "ToolHistory",
    "ToolStats",
    "UsageRecord",
]
