from datetime import datetime, timezone

import pytest

from finance_tracker.main import persistence
from finance_tracker.persistence import InMemoryPersistence, SqlPersistence
from finance_tracker.store import InMemoryStore


@pytest.fixture(autouse=True)
def reset_app_state() -> None:
    persistence.reset()


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sql"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemoryPersistence(InMemoryStore())
    return SqlPersistence(f"sqlite:///{tmp_path / 'finance.db'}")
