"""Time utilities for Tactician.

Persisted telemetry uses integer Unix milliseconds; patterns and log entries
use timezone-aware datetimes. Every component takes a ``Clock`` so tests can
control the passage of time.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], int]
"""Zero-argument callable returning the current time in Unix milliseconds."""

MS_PER_DAY = 24 * 60 * 60 * 1000


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Return the current wall-clock time in Unix milliseconds."""
    return time.time_ns() // 1_000_000


def ms_to_datetime(ms: int) -> datetime:
    """Convert Unix milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, UTC)
