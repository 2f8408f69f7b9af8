"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from speller.config import Settings
from speller.db.memory import MemoryStore
from speller.db.stores import Stores


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLAlchemy store on SQLite)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Manually advanced UTC clock for stores."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(microseconds=1)
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# Twelve words around 1400-1550 so the first rating band is always full
BANK_WORDS = [
    ("their", 3), ("friend", 3), ("because", 3), ("people", 3),
    ("little", 3), ("watch", 3), ("judge", 3), ("phone", 3),
    ("receive", 4), ("believe", 4), ("science", 4), ("station", 4),
]


@pytest.fixture
def settings():
    """Default settings, isolated from any .env file."""
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(settings, clock):
    """In-memory store seeded with a small word bank."""
    memory = MemoryStore(clock=clock, settings=settings)
    for text, tier in BANK_WORDS:
        memory.add_word(text, tier=tier, word_id=f"w-{text}")
    return memory


@pytest.fixture
def learner(store):
    return store.add_learner("Ada", tier=3, rating=1500, learner_id="learner-1")


@pytest.fixture
def stores(store):
    return Stores.single(store)
