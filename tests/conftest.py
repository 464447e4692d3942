"""
Pytest fixtures for turnover engine tests.
"""

import os
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Ensure test config is set before importing turnover modules.
os.environ.setdefault("TURNOVER_ALLOW_INSECURE_DEV", "true")
os.environ.setdefault("TURNOVER_ENV", "development")
os.environ.setdefault("TURNOVER_SWEEPS_ENABLED", "false")
os.environ.setdefault(
    "TURNOVER_DATABASE_URL",
    os.getenv("TURNOVER_TEST_DATABASE_URL", "sqlite+aiosqlite:///./turnover_test.db"),
)

from turnover.db.base import Base, build_engine
import turnover.db.tables  # noqa: F401
from turnover.db.repositories import StaffRepository
from turnover.engine.core import TurnoverEngine
from turnover.engine.errors import NotificationDeliveryError
from turnover.models import BookingConfirmed, NotificationPayload
from turnover.observability.metrics import metrics

pytest_plugins = ("pytest_asyncio",)

CHECK_IN = datetime(2025, 8, 15, 14, 0, tzinfo=timezone.utc)
CHECK_OUT = datetime(2025, 8, 22, 11, 0, tzinfo=timezone.utc)


class FakeNotifier:
    """Records payloads; optionally fails every send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[NotificationPayload] = []

    async def send(self, payload: NotificationPayload, session=None) -> None:
        if self.fail:
            raise NotificationDeliveryError(str(payload.notification_id), "gateway down")
        self.sent.append(payload)

    def titles(self) -> list[str]:
        return [p.title for p in self.sent]

    def ids(self) -> list:
        return [p.notification_id for p in self.sent]


def booking_event(booking_id: str = "booking-1", **overrides) -> BookingConfirmed:
    data = {
        "booking_id": booking_id,
        "property_id": "villa-7",
        "property_name": "Villa Azure",
        "property_address": "1 Cliff Road",
        "guest_name": "Ada Guest",
        "check_in": CHECK_IN,
        "check_out": CHECK_OUT,
    }
    data.update(overrides)
    return BookingConfirmed(**data)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test, wired into turnover.db.base."""
    database_url = os.getenv("TURNOVER_TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'turnover.db'}"
    )
    test_engine = build_engine(database_url)

    from turnover.db import base as db_base

    original_engine = db_base.engine
    original_factory = db_base.async_session_factory
    db_base.engine = test_engine
    db_base.async_session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    db_base.engine = original_engine
    db_base.async_session_factory = original_factory
    await test_engine.dispose()


@pytest.fixture
async def session(engine):
    """Provide a database session per test."""
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def turnover(session, notifier):
    """Engine bound to the test session."""
    return TurnoverEngine(session, notifier=notifier)


@pytest.fixture
async def staff(session):
    """One cleaner and one inspector on the roster."""
    repo = StaffRepository(session)
    cleaner = await repo.upsert("staff-clean", "Carla Cleaner", ["cleaning"])
    inspector = await repo.upsert("staff-inspect", "Ivan Inspector", ["inspection"])
    await session.commit()
    return {"cleaner": cleaner, "inspector": inspector}


@pytest.fixture
async def client(engine, notifier):
    """Async test client; requests use real sessions against the test database."""
    from turnover.api.deps import get_notifier
    from turnover.main import app

    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
