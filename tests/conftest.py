"""Pytest fixtures for Tactician tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from tactician.store.json_backend import JsonDocumentStore
from tactician.store.memory import InMemoryDocumentStore
from tests.helpers import FakeClock


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers around each test.

    This ensures test isolation for logging configuration.
    """
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at a fixed instant until advanced."""
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def json_store(tmp_path: Path) -> JsonDocumentStore:
    """JSON document store rooted in a temporary directory."""
    return JsonDocumentStore(tmp_path / "data")
