"""
TodoHub Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import threading
from datetime import date, timedelta
from typing import Any, Dict, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


# ---------------------------------------------------------------------------
# Isolation — reset global singletons between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    import todohub.engine.config as cfg_mod
    import todohub.engine.logging as log_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None
    log_mod.shutdown_logging()


# ---------------------------------------------------------------------------
# Persistence — in-memory SQLite shared across threads
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    from todohub.db import models  # noqa: F401
    from todohub.db.base import Base

    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------

@pytest.fixture
def relay():
    from todohub.realtime.relay import EventRelay

    return EventRelay(mode="sync")


@pytest.fixture
def store(session_factory, relay):
    from todohub.tasks.store import TaskStore

    return TaskStore(session_factory, relay)


@pytest.fixture
def aggregation(session_factory):
    from todohub.tasks.aggregation import AggregationEngine

    return AggregationEngine(session_factory)


@pytest.fixture
def gateway(relay):
    from todohub.realtime.gateway import BroadcastGateway

    return BroadcastGateway(relay)


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def tomorrow(today):
    return today + timedelta(days=1)


# ---------------------------------------------------------------------------
# Fake real-time connection
# ---------------------------------------------------------------------------

class RecordingConnection:
    """Connection double that records every message it is sent."""

    def __init__(self, connection_id: str, fail: bool = False):
        self.id = connection_id
        self.fail = fail
        self.messages: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def send(self, message: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError(f"{self.id} is gone")
        with self._lock:
            self.messages.append(message)

    def events(self, name: str = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [m for m in self.messages if name is None or m["event"] == name]

    def clear(self) -> None:
        with self._lock:
            self.messages.clear()


@pytest.fixture
def make_connection():
    def _make(connection_id: str, fail: bool = False) -> RecordingConnection:
        return RecordingConnection(connection_id, fail=fail)
    return _make
