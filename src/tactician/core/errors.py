"""Exception hierarchy for Tactician.

All library exceptions inherit from TacticianError, enabling callers to catch
broad (TacticianError) or narrow (e.g., InvalidGroupSizeError).
Read-oriented operations never raise for missing or corrupt documents; they
degrade to empty results instead.
"""

from __future__ import annotations


class TacticianError(Exception):
    """Base exception for all Tactician errors."""


class InvalidGroupSizeError(TacticianError, ValueError):
    """Raised when a group comparison receives fewer than two results.

    A partial comparison has no meaningful group mean, so the caller must not
    proceed with it.
    """

    def __init__(self, context: str, size: int, minimum: int = 2) -> None:
        self.context = context
        self.size = size
        self.minimum = minimum
        super().__init__(
            f"Group comparison for '{context}' requires at least {minimum} "
            f"results, got {size}"
        )


class StoreWriteError(TacticianError):
    """Raised when persisting a document to the backing store fails.

    Examples: disk full, permission denied, read-only filesystem.
    The original OSError is chained as ``__cause__``.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to write '{key}': {reason}")


class ConfigurationError(TacticianError, ValueError):
    """Raised when a configuration file cannot be read or validated."""


__all__ = [
    "ConfigurationError",
    "InvalidGroupSizeError",
    "StoreWriteError",
    "TacticianError",
]
