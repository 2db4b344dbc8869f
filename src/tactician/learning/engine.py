"""Learning engine facade.

Wires one backing document store into the tool learner and the lifelong
learner and drives their lifecycle:

    engine = LearningEngine(EngineConfig())
    await engine.initialize()          # prunes stale data if configured
    ...
    await engine.shutdown(facts)       # flushes, then learns from the session

The engine is advisory. Lifecycle steps log and count their failures instead
of raising, so the caller's primary workflow is never blocked.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tactician.core.config import EngineConfig
from tactician.core.errors import TacticianError
from tactician.core.logging import configure_from_config, get_logger
from tactician.learning.batch import BatchLearnResult
from tactician.learning.experiences import SessionFacts
from tactician.learning.lifelong import LifelongLearner
from tactician.learning.tool_store import ToolLearner
from tactician.store.base import DocumentStore
from tactician.store.json_backend import JsonDocumentStore
from tactician.utils.time import Clock, now_ms

_logger = get_logger("learning.engine")


@dataclass
class RetentionReport:
    """What one pruning pass removed."""

    records_removed: int = 0
    experiences_removed: int = 0

    @property
    def total(self) -> int:
        return self.records_removed + self.experiences_removed


@dataclass
class ShutdownReport:
    """Outcome of an engine shutdown."""

    errors: int = 0
    learning: BatchLearnResult | None = None


class LearningEngine:
    """Owns the learners of one process and their shared document store.

    Args:
        config: Engine configuration. Uses defaults if None.
        store: Backing store. Defaults to JSON files under ``config.data_dir``.
        clock: Millisecond clock shared by every component.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        store: DocumentStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = store if store is not None else JsonDocumentStore(self.config.data_dir)
        self._clock: Clock = clock or now_ms
        self.tools = ToolLearner(self.store, self.config.tool_learning, self._clock)
        self.lifelong = LifelongLearner(self.store, self.config.lifelong, self._clock)
        self._initialized = False

    @classmethod
    def from_yaml(cls, path: Path, store: DocumentStore | None = None) -> LearningEngine:
        """Load config from YAML, configure logging from it and build an engine.

        Raises:
            ConfigurationError: If the config file is unreadable or invalid.
        """
        config = EngineConfig.from_yaml(path)
        configure_from_config(config.logging)
        return cls(config, store=store)

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> RetentionReport | None:
        """Prepare the engine; prunes stale data when ``prune_on_start`` is set.

        Returns:
            The pruning report, or None if pruning was skipped or failed.
        """
        report = None
        if self.config.retention.prune_on_start:
            try:
                report = await self.prune()
            except (TacticianError, OSError) as e:
                _logger.warning("engine.prune_failed", error=str(e))
        self._initialized = True
        _logger.info(
            "engine.initialized",
            data_dir=str(self.config.data_dir),
            pruned=report.total if report else 0,
        )
        return report

    async def prune(self, max_age_ms: int | None = None) -> RetentionReport:
        """Remove telemetry and experiences older than the retention period.

        Args:
            max_age_ms: Retention period. Defaults to ``retention.max_age_days``.

        Raises:
            StoreWriteError: If pruned experiences cannot be written.
        """
        if max_age_ms is None:
            max_age_ms = self.config.retention.max_age_ms
        report = RetentionReport(
            records_removed=await self.tools.prune_old_records(max_age_ms),
        )
        if self.config.retention.prune_experiences:
            report.experiences_removed = await self.lifelong.prune_experiences(max_age_ms)
        return report

    async def shutdown(
        self, facts: SessionFacts | Mapping[str, Any] | None = None
    ) -> ShutdownReport:
        """Flush telemetry and, given session facts, run end-of-session learning.

        Failures are logged and counted, never raised.
        """
        report = ShutdownReport()
        try:
            await self.tools.shutdown()
        except TacticianError as e:
            report.errors += 1
            _logger.error("engine.flush_failed", error=str(e))

        if facts is not None:
            try:
                report.learning = await self.lifelong.on_session_end(facts)
            except (TacticianError, ValidationError, OSError) as e:
                report.errors += 1
                _logger.error("engine.learning_failed", error=str(e))

        self._initialized = False
        _logger.info("engine.shutdown", errors=report.errors)
        return report


__all__ = ["LearningEngine", "RetentionReport", "ShutdownReport"]
