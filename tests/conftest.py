"""Shared fixtures for snipstore tests."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from snipstore.backends import BackendError, InMemorySlotBackend
from snipstore.observability import MetricsRegistry
from snipstore.store import SnippetStore


class FlakyBackend(InMemorySlotBackend):
    """In-memory backend whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False
        self.writes = 0

    def write(self, key: str, value: str) -> None:
        self.writes += 1
        if self.fail_writes:
            raise BackendError("disk on fire")
        super().write(key, value)


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + timedelta(seconds=1)
        return now


@pytest.fixture(autouse=True)
def reset_snipstore_logger():
    """Undo configure_logging so caplog sees snipstore records."""
    yield
    logger = logging.getLogger("snipstore")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def backend():
    return FlakyBackend()


@pytest.fixture
def metrics():
    return MetricsRegistry()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def store(backend, metrics, clock):
    return SnippetStore(backend, clock=clock, metrics=metrics)


@pytest.fixture
def draft() -> dict:
    return {
        "title": "Array Map",
        "language": "javascript",
        "tags": ["javascript", "array"],
        "description": "Map over an array",
        "code": "const x=1;\nconst y = [x].map(v => v * 2);",
    }
