"""Composite keys used across the learning stores.

Three kinds of key appear in persisted documents:

- Context keys (``verb:subject[:scope]``) identify the situation a tool was
  used in. Keys sharing the first segment are *related*.
- Score keys (``context::tool``) address cumulative comparison scores.
- Pattern keys (``type::category``) address extracted patterns.

Each is a frozen dataclass with structural equality and a canonical string
encoding, so callers never assemble the storage strings by hand.
"""

from __future__ import annotations

from dataclasses import dataclass

CONTEXT_SEPARATOR = ":"
COMPOSITE_SEPARATOR = "::"


def _split_composite(encoded: str) -> tuple[str, str]:
    """Split ``left::right`` on the first separator; no separator → ``(encoded, "")``."""
    head, sep, tail = encoded.partition(COMPOSITE_SEPARATOR)
    if not sep:
        return encoded, ""
    return head, tail


@dataclass(frozen=True)
class ContextKey:
    """Normalized situation key: operation, target and an optional scope."""

    operation: str
    target: str
    scope: str | None = None

    @classmethod
    def build(
        cls, operation: str, target: str, scope: str | None = None
    ) -> ContextKey:
        """Build a key from raw segments, lowercasing and trimming each one."""
        normalized_scope = scope.lower().strip() if scope else None
        return cls(
            operation=operation.lower().strip(),
            target=target.lower().strip(),
            scope=normalized_scope or None,
        )

    def encode(self) -> str:
        parts = [self.operation, self.target]
        if self.scope:
            parts.append(self.scope)
        return CONTEXT_SEPARATOR.join(parts)

    def __str__(self) -> str:
        return self.encode()


def build_context_key(operation: str, target: str, scope: str | None = None) -> str:
    """Build a normalized context key string.

    Example:
        >>> build_context_key("Search", " TypeScript ", "file")
        'search:typescript:file'
    """
    return ContextKey.build(operation, target, scope).encode()


def related_prefix(context: str) -> str | None:
    """Return the ``operation:`` prefix shared by related contexts.

    Single-segment contexts have no related contexts and return None.
    """
    parts = context.split(CONTEXT_SEPARATOR)
    if len(parts) < 2:
        return None
    return parts[0] + CONTEXT_SEPARATOR


def is_related(context: str, other: str) -> bool:
    """Whether ``other`` is a different context sharing ``context``'s prefix."""
    prefix = related_prefix(context)
    return prefix is not None and other != context and other.startswith(prefix)


@dataclass(frozen=True)
class ScoreKey:
    """Addresses the cumulative comparison score of one tool in one context."""

    context: str
    tool: str

    def encode(self) -> str:
        return f"{self.context}{COMPOSITE_SEPARATOR}{self.tool}"

    @classmethod
    def decode(cls, encoded: str) -> ScoreKey:
        context, tool = _split_composite(encoded)
        return cls(context=context, tool=tool)


@dataclass(frozen=True)
class PatternKey:
    """Addresses a pattern by experience type and category."""

    type: str
    category: str

    def encode(self) -> str:
        return f"{self.type}{COMPOSITE_SEPARATOR}{self.category}"

    @classmethod
    def decode(cls, encoded: str) -> PatternKey:
        type_, category = _split_composite(encoded)
        return cls(type=type_, category=category)


__all__ = [
    "COMPOSITE_SEPARATOR",
    "CONTEXT_SEPARATOR",
    "ContextKey",
    "PatternKey",
    "ScoreKey",
    "build_context_key",
    "is_related",
    "related_prefix",
]
