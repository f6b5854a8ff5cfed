"""
conftest.py — Shared Test Fixtures for the CPQ activity service

Provides an in-memory SQLite database, a FastAPI TestClient with auth and
engine overrides, and deterministic clock/timer doubles for the batching
engine.

Business Rules:
- All tests run against an isolated in-memory DB (StaticPool: every
  session shares one connection, so committed markers are visible to the
  gate on the connection doing the row write)
- Auth is overridden; tests never touch the session cookie
- Timers never fire on their own; tests advance FakeClock and call
  FakeTimers.fire_due()

Called by: all test files via pytest autodiscovery
Depends on: cpq.models (Base), cpq.database (get_db), cpq.dependencies
"""

import os
os.environ["TESTING"] = "1"  # Must be set before importing cpq modules

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cpq.models import ActivityLog, Base, Component, Team, User
from cpq.services.activity_sink import ActivitySink
from cpq.services.bulk_registry import BulkOperationRegistry
from cpq.services.flush_coordinator import FlushCoordinator
from cpq.services.suppression_gate import (
    MutationSuppressionGate,
    install_component_listeners,
    remove_component_listeners,
)

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Time doubles ─────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, minutes=minutes)
        return self.now


class FakeTimers:
    """TimerBackend that records armed timers; one per key, like the scheduler."""

    def __init__(self):
        self.armed: dict[str, tuple[datetime, object]] = {}
        self.arm_calls = 0

    def arm(self, key, run_at, callback):
        self.armed[key] = (run_at, callback)
        self.arm_calls += 1

    def cancel(self, key):
        self.armed.pop(key, None)

    def fire_due(self, now: datetime) -> int:
        fired = 0
        for key, (run_at, callback) in list(self.armed.items()):
            if run_at <= now:
                del self.armed[key]
                callback(key)
                fired += 1
        return fired


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        remove_component_listeners()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def test_team(db_session: Session) -> Team:
    team = Team(name="Solar Design", slug="solar-design", created_at=datetime.now(timezone.utc))
    db_session.add(team)
    db_session.commit()
    db_session.refresh(team)
    return team


@pytest.fixture()
def other_team(db_session: Session) -> Team:
    team = Team(name="Other Integrator", slug="other", created_at=datetime.now(timezone.utc))
    db_session.add(team)
    db_session.commit()
    db_session.refresh(team)
    return team


@pytest.fixture()
def test_user(db_session: Session, test_team: Team) -> User:
    """A team member; English locale so summaries are easy to assert."""
    user = User(
        email="dana@solar.example",
        name="Dana Levi",
        team_id=test_team.id,
        locale="en",
        created_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture()
def sink() -> ActivitySink:
    return ActivitySink(session_factory=TestSessionLocal, retries=1)


@pytest.fixture()
def registry(clock: FakeClock) -> BulkOperationRegistry:
    return BulkOperationRegistry(
        session_factory=TestSessionLocal,
        staleness=timedelta(minutes=5),
        clock=clock,
    )


@pytest.fixture()
def coordinator(sink, timers, clock) -> FlushCoordinator:
    return FlushCoordinator(sink, timers, window_seconds=3, clock=clock)


@pytest.fixture()
def gate(registry):
    """Component mapper events wired to the test registry."""
    g = install_component_listeners(MutationSuppressionGate(registry))
    yield g
    remove_component_listeners()


@pytest.fixture()
def make_component(db_session: Session):
    def _make(team: Team, name: str = "PV Module 550W", **kwargs) -> Component:
        comp = Component(team_id=team.id, name=name, **kwargs)
        db_session.add(comp)
        db_session.commit()
        db_session.refresh(comp)
        return comp

    return _make


@pytest.fixture()
def activity_rows(db_session: Session):
    """Fresh read of activity_logs, optionally filtered by action_type."""
    def _rows(action_type: str | None = None) -> list[ActivityLog]:
        db_session.expire_all()
        q = db_session.query(ActivityLog)
        if action_type:
            q = q.filter(ActivityLog.action_type == action_type)
        return q.order_by(ActivityLog.id).all()

    return _rows


@pytest.fixture()
def client(db_session: Session, test_user: User, sink, registry, coordinator) -> TestClient:
    """FastAPI TestClient with auth overridden to return test_user.

    Overrides get_db to use the test session and swaps the engine
    singletons for the test sink / registry / coordinator.
    """
    from cpq.database import get_db
    from cpq.dependencies import get_coordinator, get_registry, get_sink, require_user
    from cpq.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_user] = lambda: test_user
    app.dependency_overrides[get_sink] = lambda: sink
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    remove_component_listeners()
