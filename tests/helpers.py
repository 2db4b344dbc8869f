"""Shared test helpers for Tactician tests."""

from typing import Any

from tactician.learning.experiences import Experience
from tactician.utils.time import MS_PER_DAY

# 2026-01-01T00:00:00Z
EPOCH_MS = 1_767_225_600_000


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, start_ms: int = EPOCH_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 0, *, days: float = 0) -> int:
        self.now += ms + int(days * MS_PER_DAY)
        return self.now


def make_experience(
    experience_type: str,
    category: str,
    data: dict[str, Any] | None = None,
    *,
    timestamp: int = EPOCH_MS,
    index: int = 0,
) -> Experience:
    """Test helper: build an Experience without going through a collector."""
    return Experience(
        id=f"exp-{timestamp}-{index:06d}",
        type=experience_type,
        category=category,
        data=data or {},
        timestamp=timestamp,
    )
