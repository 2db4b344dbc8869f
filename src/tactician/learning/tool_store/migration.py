"""Schema migration for the telemetry history document.

Version history:
    v0 / missing: invalid, replaced by an empty history.
    v1: usage records and aggregates only.
    v2: adds ``grpoGroups`` and ``grpoScores`` for group comparisons.

Migration never fails: anything that cannot be understood is logged and
replaced by an empty v2 history, since the telemetry store is advisory.
"""

from typing import Any

from pydantic import ValidationError

from tactician.core.logging import get_logger
from tactician.learning.tool_store.models import HISTORY_SCHEMA_VERSION, ToolHistory

_logger = get_logger("learning.migration")


def create_empty_history(now_ms: int = 0) -> ToolHistory:
    """Create an empty history at the current schema version."""
    return ToolHistory(version=HISTORY_SCHEMA_VERSION, last_updated=now_ms)


def migrate_history_document(raw: Any, now_ms: int = 0) -> ToolHistory:
    """Turn a raw stored document into a current-schema ToolHistory.

    Args:
        raw: Decoded JSON document, or None when nothing is stored.
        now_ms: Timestamp for a freshly created history.

    Returns:
        The migrated history, or an empty one if the document is missing,
        has no usable version, or fails validation.
    """
    if raw is None:
        return create_empty_history(now_ms)
    if not isinstance(raw, dict):
        _logger.warning("history_invalid", reason="not a mapping")
        return create_empty_history(now_ms)

    version = raw.get("version")
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        _logger.warning("history_invalid", reason="missing version", version=version)
        return create_empty_history(now_ms)

    document = dict(raw)
    if version < 2:
        document["grpoGroups"] = document.get("grpoGroups") or {}
        document["grpoScores"] = document.get("grpoScores") or {}
        document["version"] = 2
        _logger.info("history_migrated", from_version=version, to_version=2)

    try:
        return ToolHistory.model_validate(document)
    except ValidationError as e:
        _logger.warning("history_corrupt", error_count=e.error_count())
        return create_empty_history(now_ms)


__all__ = ["create_empty_history", "migrate_history_document"]
