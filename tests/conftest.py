"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from studyhabits.core.clock import ManualClock  # noqa: E402
from studyhabits.delivery.item_store import ItemStore  # noqa: E402
from studyhabits.delivery.state_store import MemoryStateStore  # noqa: E402
from studyhabits.study.study_log import StudyLog  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite state file)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


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


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def start_time():
    """Fixed reference instant used by the manual clock."""
    return datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time):
    """Deterministic clock; time moves only through advance()/jump()."""
    return ManualClock(current=start_time)


@pytest.fixture
def kv():
    """In-memory key-value store."""
    return MemoryStateStore()


@pytest.fixture
def item_store(kv, clock):
    """Loaded ItemStore (seeded with the default deck) on the manual clock."""
    store = ItemStore(kv, now=clock.now)
    store.load()
    return store


@pytest.fixture
def deck(item_store):
    """The seeded default deck."""
    return item_store.decks[0]


@pytest.fixture
def sample_cards(item_store, deck):
    """Three cards due immediately in the default deck."""
    return [
        item_store.create_card(deck.id, "What is the capital of France?", "Paris"),
        item_store.create_card(deck.id, "2 + 2", "4"),
        item_store.create_card(deck.id, "H2O is", "Water"),
    ]


@pytest.fixture
def study_log(kv):
    """Loaded, empty StudyLog."""
    log = StudyLog(kv)
    log.load()
    return log
