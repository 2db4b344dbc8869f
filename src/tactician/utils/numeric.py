"""Numeric coercion helpers shared by the scoring code.

Two clamps exist because the two halves of the learner treat inputs
differently:

- ``clamp_score`` coerces first (numeric strings and booleans count), which is
  what the telemetry store applies to caller-supplied scores.
- ``clamp01`` accepts only real numbers; anything else becomes 0. The batch
  learner applies it to every formula output so NaN never reaches an average.
"""

import math
from typing import Any


def to_number(value: Any) -> float:
    """Coerce a value to float, returning NaN when it is not numeric."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return math.nan
    return math.nan


def clamp_score(value: Any) -> float:
    """Clamp a score into [0, 1], mapping non-numeric and NaN input to 0."""
    number = to_number(value)
    if math.isnan(number):
        return 0.0
    return max(0.0, min(1.0, number))


def clamp01(value: Any) -> float:
    """Clamp a real number into [0, 1]; non-numbers and NaN become 0."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


def round_score(value: float, places: int = 3) -> float:
    """Round a derived score for storage and display."""
    return round(value, places)
