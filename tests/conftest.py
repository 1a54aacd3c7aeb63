"""
Test fixtures for the study portal engine.

Provides a frozen clock, an in-memory store, engine services wired to them,
a fake Redis client, and app/client fixtures with header-based identity.
"""

from __future__ import annotations

import fnmatch
import pytest
from datetime import date, timedelta
from unittest.mock import MagicMock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCalendar:
    """Local calendar date that only moves when told to."""

    def __init__(self, start: date = date(2026, 3, 10)) -> None:
        self.current = start

    def __call__(self) -> date:
        return self.current

    def advance(self, days: int = 1) -> None:
        self.current += timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def store():
    from durable_store import InMemoryStore
    return InMemoryStore()


@pytest.fixture
def ledger(store, calendar):
    from gamification import GamificationLedger
    return GamificationLedger(store, today=calendar)


@pytest.fixture
def lifecycle(store, ledger):
    from homework import HomeworkLifecycle
    return HomeworkLifecycle(store, ledger, submit_bonus=50)


@pytest.fixture
def timer(store, ledger, clock):
    from session_timer import SessionTimer
    return SessionTimer(store, ledger, "u1", clock=clock)


@pytest.fixture
def fake_redis():
    """Dict-backed stand-in for redis.Redis (bytes values, like decode_responses=False)."""
    data: dict[str, bytes] = {}
    client = MagicMock()
    client.get.side_effect = lambda k: data.get(k)
    client.set.side_effect = lambda k, v: data.__setitem__(k, v.encode() if isinstance(v, str) else v)
    client.delete.side_effect = lambda *keys: sum(1 for k in keys if data.pop(k, None) is not None)
    client.scan_iter.side_effect = lambda match="*": [k for k in list(data) if fnmatch.fnmatch(k, match)]
    client._data = data
    return client


@pytest.fixture
def app(monkeypatch, clock, calendar):
    """App with an in-memory store and the fake clock/calendar injected."""
    from app import create_app
    from extensions import EngineManager

    monkeypatch.setattr(EngineManager, "clock", clock)
    monkeypatch.setattr(EngineManager, "today", calendar)

    app = create_app({
        "TESTING": True,
        "STORE_BACKEND": "memory",
        "SECRET_KEY": "test-secret-key",
    })
    yield app

    from durable_store import set_store
    set_store(None)
    EngineManager.reset()


@pytest.fixture
def client(app):
    """Test client without identity headers."""
    return app.test_client()


@pytest.fixture
def student_headers():
    return {"X-User-Id": "2"}


@pytest.fixture
def teacher_headers():
    return {"X-User-Id": "1", "X-User-Role": "teacher"}


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "99", "X-User-Role": "admin"}
