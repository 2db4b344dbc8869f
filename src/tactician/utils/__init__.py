"""Shared utilities for Tactician.

Contains cross-cutting helpers used by multiple modules.
"""

from tactician.utils.numeric import clamp01, clamp_score, round_score, to_number
from tactician.utils.time import Clock, ms_to_datetime, now_ms, utc_now

__all__ = [
    "Clock",
    "clamp01",
    "clamp_score",
    "ms_to_datetime",
    "now_ms",
    "round_score",
    "to_number",
    "utc_now",
]
