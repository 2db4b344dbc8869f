"""Structured logging infrastructure for Tactician.

Provides structured logging using structlog with learning-specific context
such as session_id and component names. Supports console output, JSON output
and a rotating JSON log file.

Example usage:
    from tactician.core.logging import configure_logging, get_logger, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("tool_learner")
    logger.info("usage_recorded", tool="Grep", context="search:file")

    # Correlate every entry emitted while a session is being learned from
    ctx = LearningContext(session_id="session-42")
    with with_context(ctx):
        logger.info("batch_learn.started")  # Includes session_id, run_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from tactician.core.config import LogConfig

# Field name fragments that should never be logged
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "bearer",
})

REDACTED = "[REDACTED]"


@dataclass(frozen=True)
class LearningContext:
    """Immutable context for correlating log entries of one learning run.

    Attributes:
        session_id: Session whose experiences are being processed (if any).
        run_id: Unique identifier of this learning run.
        component: Component name for the current operation.
    """

    session_id: str | None = None
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    component: str = "unknown"

    def with_component(self, component: str) -> LearningContext:
        """Return a copy of this context bound to another component."""
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging (None values omitted)."""
        result: dict[str, Any] = {"run_id": self.run_id, "component": self.component}
        if self.session_id is not None:
            result["session_id"] = self.session_id
        return result


# ContextVar keeps concurrent asyncio tasks isolated from each other
_current_context: ContextVar[LearningContext | None] = ContextVar(
    "tactician_context", default=None
)


def get_current_context() -> LearningContext | None:
    """Get the current LearningContext if set."""
    return _current_context.get()


@contextmanager
def with_context(ctx: LearningContext) -> Iterator[LearningContext]:
    """Set the LearningContext for the duration of a block.

    Args:
        ctx: The LearningContext to use for the block.

    Yields:
        The LearningContext that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return ``[REDACTED]`` when the key looks sensitive, else the value."""
    key_lower = key.lower()
    if any(pattern in key_lower for pattern in SENSITIVE_PATTERNS):
        return REDACTED
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the active LearningContext.

    Explicitly bound fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class TacticianLogger:
    """Component logger wrapping structlog.

    The underlying structlog logger is fetched on every call, so loggers
    created at import time still respect a later ``configure_logging()``.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    @property
    def component(self) -> str:
        return self._component

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> TacticianLogger:
        """Create a new logger with additional bound context."""
        extra = {k: v for k, v in self._context.items() if k != "component"}
        return TacticianLogger(self._component, **{**extra, **context})

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an error with traceback; call from inside an except block."""
        self._get_logger().exception(event, **kw)


def _get_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure Tactician structured logging.

    Call once at application startup. Existing root handlers are replaced.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for
            structured output (to ``file_path`` or stdout), "both" for console
            to stderr plus JSON to a rotating file.
        file_path: Log file path. Required when format="both".
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to add ISO8601 timestamps.
        include_context: Whether to merge the active LearningContext.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stderr))

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    file_path,
                    maxBytes=max_file_size_mb * 1024 * 1024,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
            )
        else:
            handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False keeps import-time loggers reconfigurable
    structlog.configure(
        processors=_get_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_from_config(config: LogConfig) -> None:
    """Configure logging from a validated LogConfig section."""
    configure_logging(
        level=config.level,
        format=config.format,
        file_path=config.file_path,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        include_timestamps=config.include_timestamps,
        include_context=config.include_context,
    )


def get_logger(component: str, **initial_context: Any) -> TacticianLogger:
    """Get a Tactician logger for a component.

    Args:
        component: The component name (e.g., "tool_learner", "batch").
        **initial_context: Additional context to bind.
    """
    return TacticianLogger(component, **initial_context)


__all__ = [
    "LearningContext",
    "SENSITIVE_PATTERNS",
    "TacticianLogger",
    "configure_from_config",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]
