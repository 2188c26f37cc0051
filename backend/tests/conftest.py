"""Pytest configuration and shared fixtures."""

import random
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from proctor.db.base import Base
from proctor.db.session import make_session_factory
from proctor.services.session_controller import SessionController
from proctor.store.sql import SqlAlchemyStore
from tests.helpers.fake_store import FakeStore
from tests.helpers.seed import make_questions, make_version
from tests.helpers.ticker import ManualTicker

SUBJECT = "oacp"


class FakeClock:
    """Wall clock and monotonic clock the test controls."""

    def __init__(self, start: datetime):
        self.current = start
        self.mono = 1000.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.mono

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.mono += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 18, 12, 0, tzinfo=UTC))


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def version():
    return make_version(subject=SUBJECT)


@pytest.fixture
def store(clock, version) -> FakeStore:
    """Fake store with one active 50-question version."""
    fake = FakeStore(now=clock.now)
    fake.add_version(version, make_questions(version.id, count=50))
    return fake


@pytest.fixture
def ticker() -> ManualTicker:
    return ManualTicker()


@pytest.fixture
def make_controller(store, user_id, ticker, clock):
    """Factory for controllers wired to the fake store and clocks."""

    def _make(**kwargs) -> SessionController:
        options = {
            "ticker": ticker,
            "now": clock.now,
            "monotonic": clock.monotonic,
            "rng": random.Random(1234),
            "duration_seconds": 3600,
            "pass_mark": 80,
            "attempts_limit": 2,
            "question_limit": 50,
            "low_time_seconds": 300,
        }
        options.update(kwargs)
        return SessionController(store, user_id, SUBJECT, **options)

    return _make


@pytest.fixture
async def active_controller(make_controller) -> SessionController:
    """Controller past consent, clock running."""
    controller = make_controller()
    await controller.prepare()
    await controller.accept_consent({"platform": "ios"})
    return controller


# ============================================================================
# SQL store (in-memory SQLite)
# ============================================================================


@pytest.fixture
async def sql_engine() -> AsyncGenerator[AsyncEngine, None]:
    import proctor.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return make_session_factory(sql_engine)


@pytest.fixture
def sql_store(session_factory, clock) -> SqlAlchemyStore:
    return SqlAlchemyStore(session_factory, now=clock.now)
