"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.drill.models import ONE_DAY_MS, create_session  # noqa: E402
from src.drill.scheduler import DrillScheduler  # noqa: E402
from src.drill.state_store import MemorySessionStore  # noqa: E402

START_MS = 1_700_000_000_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1) -> int:
        self.now += ms
        return self.now

    def advance_days(self, days: float) -> int:
        return self.advance(int(days * ONE_DAY_MS))


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(clock):
    """Fresh empty drill session."""
    return create_session("test", now=clock())


@pytest.fixture
def scheduler(clock):
    return DrillScheduler(clock=clock)


@pytest.fixture
def memory_store(clock):
    return MemorySessionStore(clock=clock)


@pytest.fixture
def log_messages():
    """Capture loguru WARNING+ messages."""
    messages: list[str] = []
    handler_id = logger.add(lambda msg: messages.append(str(msg)), level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def starter_pack_path():
    return PROJECT_ROOT / "src" / "drill" / "data" / "starter_pack.json"


@pytest.fixture
def sample_scenario():
    """Provide a valid scenario dict for testing."""
    return {
        "id": "test-001",
        "version": 2,
        "sport": "baseball",
        "level": "high-school",
        "position": "ss",
        "category": "runner-1b",
        "title": "Double Play Ball",
        "description": "Runner on first, one out, ground ball to short.",
        "outs": 1,
        "runners": ["1b"],
        "question": "Where is your first throw?",
        "best": {
            "id": "test-001-best",
            "label": "Second base",
            "description": "Start the double play.",
            "coaching_cue": "Get the lead runner.",
        },
        "ok": {
            "id": "test-001-ok",
            "label": "First base",
            "description": "Sure out on the batter.",
            "coaching_cue": "Safe but gives up the lead runner.",
        },
        "bad": {
            "id": "test-001-bad",
            "label": "Third base",
            "description": "No force at third.",
            "coaching_cue": "Know the force plays.",
        },
    }
