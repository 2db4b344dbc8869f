"""Experience collection: normalizing session facts into typed records.

An experience is one notable event of a session, grouped by ``type`` and
``category``:

    tool     one per tool in the session's usage map (category: tool name)
    error    one per error (category: error type, else code, else "unknown")
    success  one per completed task (category: task type, else "task")
    team     at most one per session (category: team pattern)

The stored ``data`` stays a plain JSON mapping. ``parse_payload`` turns it
into a typed variant (ToolData, ErrorData, SuccessData, TeamData or
GenericData) for scoring. Numeric payload fields are ``None`` when missing
and NaN when present but not numeric, so scorers can tell the two apart.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tactician.core.logging import get_logger
from tactician.store.base import DocumentStore, write_document
from tactician.utils.time import Clock, now_ms

_logger = get_logger("learning.experiences")

EXPERIENCES_KEY = "daily-experiences"
DEFAULT_CATEGORY = "general"


# ─── Experience record ───────────────────────────────────────────────────


class Experience(BaseModel):
    """One normalized experience as stored on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    type: str
    category: str = DEFAULT_CATEGORY
    data: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = None
    timestamp: int

    def to_document(self) -> dict[str, Any]:
        # sessionId is kept as null rather than dropped
        return self.model_dump(mode="json", by_alias=True)


# ─── Typed payloads ──────────────────────────────────────────────────────


def _optional_number(value: Any) -> float | None:
    """None stays None; real numbers pass through; anything else is NaN."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        return math.nan
    return float(value)


def _count(value: Any, default: float = 0.0) -> float:
    number = _optional_number(value)
    return default if number is None else number


@dataclass(frozen=True)
class ToolData:
    calls: float = 0.0
    successes: float = 0.0
    total_ms: float = 0.0
    avg_ms: float | None = None
    success_rate: float | None = None


@dataclass(frozen=True)
class ErrorData:
    message: str = ""
    code: str | None = None
    tool: str | None = None
    recoverable: bool | None = None


@dataclass(frozen=True)
class SuccessData:
    task_id: str | None = None
    duration: float | None = None
    strategy: str | None = None
    files_modified: float = 0.0
    tests_pass: bool | None = None


@dataclass(frozen=True)
class TeamData:
    pattern: str | None = None
    size: float | None = None
    agents: list[Any] = field(default_factory=list)
    domain: str = DEFAULT_CATEGORY
    success_rate: float | None = None
    duration: float | None = None


@dataclass(frozen=True)
class GenericData:
    fields: dict[str, Any] = field(default_factory=dict)


ExperiencePayload = ToolData | ErrorData | SuccessData | TeamData | GenericData


def _optional_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def parse_payload(experience_type: str, data: Mapping[str, Any] | None) -> ExperiencePayload:
    """Build the typed payload variant of an experience's data."""
    data = data or {}
    match experience_type:
        case "tool":
            return ToolData(
                calls=_count(data.get("calls")),
                successes=_count(data.get("successes")),
                total_ms=_count(data.get("totalMs")),
                avg_ms=_optional_number(data.get("avgMs")),
                success_rate=_optional_number(data.get("successRate")),
            )
        case "error":
            return ErrorData(
                message=str(data.get("message") or ""),
                code=data.get("code"),
                tool=data.get("tool"),
                recoverable=_optional_bool(data.get("recoverable")),
            )
        case "success":
            return SuccessData(
                task_id=data.get("taskId"),
                duration=_optional_number(data.get("duration")),
                strategy=data.get("strategy"),
                files_modified=_count(data.get("filesModified")),
                tests_pass=_optional_bool(data.get("testsPass")),
            )
        case "team":
            agents = data.get("agents")
            return TeamData(
                pattern=data.get("pattern"),
                size=_optional_number(data.get("size")),
                agents=list(agents) if isinstance(agents, list) else [],
                domain=data.get("domain") or DEFAULT_CATEGORY,
                success_rate=_optional_number(data.get("successRate")),
                duration=_optional_number(data.get("duration")),
            )
        case _:
            return GenericData(fields=dict(data))


# ─── Session facts ───────────────────────────────────────────────────────


class ToolUsage(BaseModel):
    """Per-tool counters reported for one session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    calls: int = 0
    successes: int = 0
    total_ms: float = 0.0


class SessionFacts(BaseModel):
    """Facts reported at the end of a session.

    Errors may be mappings or bare values (stringified into the message);
    tasks and the team configuration are free-form mappings.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    session_id: str | None = None
    tool_usage: dict[str, ToolUsage] = Field(default_factory=dict)
    errors: list[Any] = Field(default_factory=list)
    completed_tasks: list[dict[str, Any]] = Field(default_factory=list)
    team_config: dict[str, Any] | None = None


class ExperienceCollector:
    """Turns session facts into Experience records without touching storage."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or now_ms

    def new_id(self, timestamp: int) -> str:
        return f"exp-{timestamp}-{uuid.uuid4().hex[:6]}"

    def build(
        self,
        experience_type: str,
        category: str | None = None,
        data: Mapping[str, Any] | None = None,
        session_id: str | None = None,
    ) -> Experience:
        """Create one experience stamped with the current time."""
        timestamp = self._clock()
        return Experience(
            id=self.new_id(timestamp),
            type=experience_type,
            category=category or DEFAULT_CATEGORY,
            data=dict(data or {}),
            session_id=session_id,
            timestamp=timestamp,
        )

    def from_session(self, facts: SessionFacts) -> list[Experience]:
        """Normalize every fact of a session, in tool, error, success, team order."""
        session_id = facts.session_id
        collected: list[Experience] = []

        for tool, usage in facts.tool_usage.items():
            calls = usage.calls
            collected.append(
                self.build(
                    "tool",
                    tool,
                    {
                        "calls": calls,
                        "successes": usage.successes,
                        "totalMs": usage.total_ms,
                        "avgMs": round(usage.total_ms / calls) if calls > 0 else 0,
                        "successRate": usage.successes / calls if calls > 0 else 0,
                    },
                    session_id,
                )
            )

        for error in facts.errors:
            collected.append(self._error_experience(error, session_id))

        for task in facts.completed_tasks:
            files = task.get("filesModified")
            collected.append(
                self.build(
                    "success",
                    task.get("type") or task.get("taskType") or "task",
                    {
                        "taskId": task.get("id"),
                        "duration": task.get("duration"),
                        "strategy": task.get("strategy"),
                        "filesModified": len(files) if isinstance(files, list | tuple) else 0,
                        "testsPass": task.get("testsPass"),
                    },
                    session_id,
                )
            )

        if facts.team_config is not None:
            team = facts.team_config
            agents = team.get("agents")
            collected.append(
                self.build(
                    "team",
                    team.get("pattern") or "unknown",
                    {
                        "pattern": team.get("pattern"),
                        "size": team.get("size") or 0,
                        "agents": list(agents) if isinstance(agents, list) else [],
                        "domain": team.get("domain") or DEFAULT_CATEGORY,
                        "successRate": team.get("successRate"),
                        "duration": team.get("duration"),
                    },
                    session_id,
                )
            )

        return collected

    def _error_experience(self, error: Any, session_id: str | None) -> Experience:
        if not isinstance(error, Mapping):
            return self.build(
                "error",
                "unknown",
                {"message": str(error), "code": None, "tool": None, "recoverable": None},
                session_id,
            )
        return self.build(
            "error",
            error.get("type") or error.get("code") or "unknown",
            {
                "message": error.get("message") or str(dict(error)),
                "code": error.get("code"),
                "tool": error.get("tool"),
                "recoverable": error.get("recoverable"),
            },
            session_id,
        )


# ─── Persistence ─────────────────────────────────────────────────────────


class ExperienceStore:
    """Capped, FIFO list of experiences in one document.

    Writes are immediate; every method re-reads the document so the store
    holds no cache of its own.
    """

    def __init__(self, store: DocumentStore, max_experiences: int = 1000) -> None:
        self._store = store
        self.max_experiences = max_experiences

    async def load(self) -> list[Experience]:
        """All stored experiences, oldest first. Invalid entries are skipped."""
        raw = await self._store.read(EXPERIENCES_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            _logger.warning("experiences_invalid", reason="not a list")
            return []

        experiences: list[Experience] = []
        skipped = 0
        for item in raw:
            try:
                experiences.append(Experience.model_validate(item))
            except ValidationError:
                skipped += 1
        if skipped:
            _logger.warning("experiences_skipped", skipped=skipped, kept=len(experiences))
        return experiences

    async def append(self, new: Iterable[Experience]) -> list[Experience]:
        """Append experiences, evicting the oldest beyond the cap.

        Raises:
            StoreWriteError: If the document cannot be written.
        """
        new = list(new)
        if not new:
            return await self.load()
        experiences = (await self.load()) + new
        if len(experiences) > self.max_experiences:
            experiences = experiences[-self.max_experiences :]
        await self._save(experiences)
        return experiences

    async def prune_older_than(self, cutoff_ms: int) -> int:
        """Drop experiences stamped before ``cutoff_ms``; writes only on change."""
        experiences = await self.load()
        kept = [e for e in experiences if e.timestamp >= cutoff_ms]
        removed = len(experiences) - len(kept)
        if removed:
            await self._save(kept)
        return removed

    async def _save(self, experiences: list[Experience]) -> None:
        await write_document(
            self._store, EXPERIENCES_KEY, [e.to_document() for e in experiences]
        )


__all__ = [
    "DEFAULT_CATEGORY",
    "EXPERIENCES_KEY",
    "ErrorData",
    "Experience",
    "ExperienceCollector",
    "ExperiencePayload",
    "ExperienceStore",
    "GenericData",
    "SessionFacts",
    "SuccessData",
    "TeamData",
    "ToolData",
    "ToolUsage",
    "parse_payload",
]
