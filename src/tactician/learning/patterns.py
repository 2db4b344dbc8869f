"""Pattern persistence with streak-based confidence tracking.

Patterns are stored per experience type, one document per type
(``patterns/{type}-patterns``)::

    {"patterns": [Pattern, ...], "updatedAt": "<ISO 8601>"}

Re-extracting a pattern merges it into the stored one:

- confidence, scores, insight, best data and extraction time are replaced
- ``first_seen`` is preserved and ``update_count`` incremented
- a higher confidence extends the success streak and clears the failure
  streak; a lower one does the opposite; an equal one leaves both as they are

The learning log (``learning-log``) is an append-only, capped record of every
batch learning round.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tactician.core.keys import PatternKey
from tactician.core.logging import get_logger
from tactician.store.base import DocumentStore, write_document
from tactician.utils.time import Clock, ms_to_datetime, now_ms

_logger = get_logger("learning.patterns")

LEARNING_LOG_KEY = "learning-log"
KNOWN_PATTERN_TYPES = ("tool", "error", "success", "team", "general")


def pattern_document_key(pattern_type: str) -> str:
    return f"patterns/{pattern_type}-patterns"


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Pattern(_Document):
    """A confidence-scored generalization extracted from one experience group.

    Attributes:
        key: ``type::category``.
        confidence: Composite score of the best experience (0.0-1.0).
        best_composite: Highest composite in the group.
        group_mean: Mean composite of the group.
        sample_size: Experiences in the group.
        insight: Human-readable summary of what worked.
        best_data: Payload of the winning experience.
        previous_confidence: Confidence before the latest merge.
    """

    key: str
    type: str
    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    best_composite: float
    group_mean: float
    sample_size: int
    insight: str
    best_data: dict[str, Any] = Field(default_factory=dict)
    extracted_at: datetime
    first_seen: datetime | None = None
    previous_confidence: float | None = None
    consecutive_successes: int = 0
    consecutive_failures: int = 0
    update_count: int = 0

    @property
    def pattern_key(self) -> PatternKey:
        return PatternKey(self.type, self.category)


class PatternCollection(_Document):
    """The stored document holding every pattern of one type."""

    patterns: list[Pattern] = Field(default_factory=list)
    updated_at: datetime | None = None


def merge_pattern(existing: Pattern | None, incoming: Pattern) -> Pattern:
    """Merge a freshly extracted pattern into its stored predecessor."""
    if existing is None:
        return incoming.model_copy(
            update={
                "first_seen": incoming.extracted_at,
                "previous_confidence": None,
                "consecutive_successes": 0,
                "consecutive_failures": 0,
                "update_count": 0,
            }
        )

    successes = existing.consecutive_successes
    failures = existing.consecutive_failures
    if incoming.confidence > existing.confidence:
        successes, failures = successes + 1, 0
    elif incoming.confidence < existing.confidence:
        successes, failures = 0, failures + 1

    return incoming.model_copy(
        update={
            "first_seen": existing.first_seen or existing.extracted_at,
            "previous_confidence": existing.confidence,
            "consecutive_successes": successes,
            "consecutive_failures": failures,
            "update_count": existing.update_count + 1,
        }
    )


class PatternStore:
    """Loads and merges pattern collections, one document per type."""

    def __init__(self, store: DocumentStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock: Clock = clock or now_ms

    async def load_patterns(self, pattern_type: str) -> list[Pattern]:
        """Stored patterns of one type; empty when missing or corrupt."""
        key = pattern_document_key(pattern_type)
        raw = await self._store.read(key)
        if raw is None:
            return []
        try:
            return PatternCollection.model_validate(raw).patterns
        except ValidationError as e:
            _logger.warning("patterns_corrupt", key=key, error_count=e.error_count())
            return []

    async def load_all(
        self, pattern_types: Iterable[str] = KNOWN_PATTERN_TYPES
    ) -> dict[str, list[Pattern]]:
        """Stored patterns by type, omitting types with none."""
        result: dict[str, list[Pattern]] = {}
        for pattern_type in pattern_types:
            patterns = await self.load_patterns(pattern_type)
            if patterns:
                result[pattern_type] = patterns
        return result

    async def update_patterns(self, patterns: Iterable[Pattern]) -> dict[str, list[Pattern]]:
        """Merge patterns into their per-type collections and write each one.

        Args:
            patterns: Freshly extracted patterns, of any mix of types.

        Returns:
            The merged collection of every type that was written.

        Raises:
            StoreWriteError: If a collection cannot be written.
        """
        by_type: dict[str, list[Pattern]] = {}
        for pattern in patterns:
            by_type.setdefault(pattern.type or "general", []).append(pattern)

        written: dict[str, list[Pattern]] = {}
        for pattern_type, incoming in by_type.items():
            merged = {p.key: p for p in await self.load_patterns(pattern_type)}
            for pattern in incoming:
                merged[pattern.key] = merge_pattern(merged.get(pattern.key), pattern)

            collection = PatternCollection(
                patterns=list(merged.values()),
                updated_at=ms_to_datetime(self._clock()),
            )
            await write_document(
                self._store, pattern_document_key(pattern_type), collection.to_document()
            )
            written[pattern_type] = collection.patterns
            _logger.debug(
                "patterns.updated",
                pattern_type=pattern_type,
                incoming=len(incoming),
                total=len(collection.patterns),
            )
        return written


class PatternSummary(_Document):
    key: str
    confidence: float
    insight: str


class LearningLogEntry(_Document):
    """One batch learning round."""

    id: str
    timestamp: datetime
    experience_count: int
    groups_processed: int = 0
    patterns_extracted: int
    pattern_summary: list[PatternSummary] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        timestamp_ms: int,
        experience_count: int,
        groups_processed: int,
        patterns: Iterable[Pattern] = (),
    ) -> LearningLogEntry:
        summary = [
            PatternSummary(key=p.key, confidence=p.confidence, insight=p.insight)
            for p in patterns
        ]
        return cls(
            id=f"learn-{timestamp_ms}-{uuid.uuid4().hex[:6]}",
            timestamp=ms_to_datetime(timestamp_ms),
            experience_count=experience_count,
            groups_processed=groups_processed,
            patterns_extracted=len(summary),
            pattern_summary=summary,
        )


class LearningLog:
    """Append-only, capped log of learning rounds."""

    def __init__(self, store: DocumentStore, max_entries: int = 200) -> None:
        self._store = store
        self.max_entries = max_entries

    async def load(self) -> list[LearningLogEntry]:
        raw = await self._store.read(LEARNING_LOG_KEY)
        if not isinstance(raw, list):
            return []
        entries: list[LearningLogEntry] = []
        for item in raw:
            try:
                entries.append(LearningLogEntry.model_validate(item))
            except ValidationError:
                _logger.warning("learning_log_entry_invalid")
        return entries

    async def append(self, entry: LearningLogEntry) -> None:
        """Append an entry, evicting the oldest beyond the cap.

        Raises:
            StoreWriteError: If the log cannot be written.
        """
        entries = (await self.load()) + [entry]
        if len(entries) > self.max_entries:
            entries = entries[-self.max_entries :]
        await write_document(
            self._store, LEARNING_LOG_KEY, [e.to_document() for e in entries]
        )


__all__ = [
    "KNOWN_PATTERN_TYPES",
    "LEARNING_LOG_KEY",
    "LearningLog",
    "LearningLogEntry",
    "Pattern",
    "PatternCollection",
    "PatternStore",
    "PatternSummary",
    "merge_pattern",
    "pattern_document_key",
]
