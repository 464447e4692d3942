"""
Repository queries: task filters, booking listing, due checkouts and alerts.
"""

from datetime import timedelta

import pytest

from tests.conftest import CHECK_IN, CHECK_OUT, booking_event
from turnover.db.base import get_session
from turnover.db.repositories import AlertRepository, TaskRepository
from turnover.models import AlertSeverity, AlertType, TaskStatus, TaskType


@pytest.fixture
async def two_bookings(session, turnover):
    await turnover.create_timeline(booking_event("booking-1"))
    await turnover.create_timeline(
        booking_event(
            "booking-2",
            property_id="villa-9",
            check_in=CHECK_IN + timedelta(days=10),
            check_out=CHECK_OUT + timedelta(days=10),
        )
    )
    await session.commit()


@pytest.mark.asyncio
async def test_task_list_filters(session, two_bookings):
    repo = TaskRepository(session)

    villa_nine = await repo.list(property_id="villa-9")
    assert {t.booking_id for t in villa_nine} == {"booking-2"}
    assert len(villa_nine) == 5

    checkouts = await repo.list(task_type=TaskType.CHECKOUT, status=TaskStatus.PENDING)
    assert [t.booking_id for t in checkouts] == ["booking-1", "booking-2"]

    window = await repo.list(scheduled_from=CHECK_OUT, scheduled_to=CHECK_OUT + timedelta(hours=3))
    assert [t.task_type for t in window] == [
        TaskType.CHECKOUT,
        TaskType.CLEANING,
        TaskType.INSPECTION,
    ]

    assert len(await repo.list(limit=3)) == 3


@pytest.mark.asyncio
async def test_list_for_booking_is_ordered_by_schedule(session, two_bookings):
    tasks = await TaskRepository(session).list_for_booking("booking-1")

    assert [t.task_type for t in tasks] == [
        TaskType.PRE_ARRIVAL_PREP,
        TaskType.CHECKIN_INFORMATIONAL,
        TaskType.CHECKOUT,
        TaskType.CLEANING,
        TaskType.INSPECTION,
    ]


@pytest.mark.asyncio
async def test_due_checkouts_oldest_first_with_limit(session, two_bookings):
    repo = TaskRepository(session)

    assert await repo.list_due_checkouts(CHECK_OUT - timedelta(minutes=1), 10) == []

    later = CHECK_OUT + timedelta(days=11)
    due = await repo.list_due_checkouts(later, 10)
    assert [t.booking_id for t in due] == ["booking-1", "booking-2"]
    assert [t.booking_id for t in await repo.list_due_checkouts(later, 1)] == ["booking-1"]


@pytest.mark.asyncio
async def test_alert_list_filters_resolved_and_type(session):
    repo = AlertRepository(session)
    stuck = await repo.create(
        AlertType.STUCK_JOB_ALERT, AlertSeverity.HIGH, "Job stuck", source="timeouts"
    )
    await repo.create(
        AlertType.TIMELINE_COMPLETE, AlertSeverity.LOW, "Villa ready", source="engine"
    )
    assert await repo.resolve(stuck.alert_id, resolved_by="ops") is True
    await session.commit()

    async with get_session() as s:
        open_alerts = await AlertRepository(s).list(resolved=False)
        stuck_alerts = await AlertRepository(s).list(alert_type=AlertType.STUCK_JOB_ALERT)

    assert [a.alert_type for a in open_alerts] == [AlertType.TIMELINE_COMPLETE]
    assert len(stuck_alerts) == 1
    assert stuck_alerts[0].resolved is True
    assert stuck_alerts[0].resolved_by == "ops"
