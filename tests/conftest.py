"""
Test fixtures shared across all Risk Register tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from riskregister.storage.backends import MemoryStorage
from riskregister.store.persistence import PersistedRiskStore
from riskregister.store.risk_store import RiskStore

CATEGORIES = ["Operational", "Security", "Compliance", "Financial"]


class FakeClock:
    """Deterministic clock; advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


class SequentialIds:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"risk{self.count:03d}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def store(clock, ids):
    return RiskStore(default_categories=CATEGORIES, id_factory=ids, clock=clock)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def persisted_store(store, memory_storage):
    persisted = PersistedRiskStore(store, memory_storage, key="test-register")
    persisted.hydrate()
    return persisted


@pytest.fixture
def sample_input():
    return {
        "title": "Test Risk",
        "description": "Test Description",
        "probability": 3,
        "impact": 4,
        "category": "Security",
    }


@pytest.fixture
def populated_store(store):
    """Store holding one high, one low and one medium risk."""
    store.add_risk({
        "title": "High Risk",
        "description": "A high severity risk",
        "probability": 4,
        "impact": 4,
        "category": "Security",
        "status": "open",
    })
    store.add_risk({
        "title": "Low Risk",
        "description": "A low severity risk",
        "probability": 1,
        "impact": 2,
        "category": "Operational",
        "status": "closed",
    })
    store.add_risk({
        "title": "Medium Risk",
        "description": "A medium severity risk",
        "probability": 2,
        "impact": 3,
        "category": "Compliance",
        "status": "mitigated",
    })
    return store
