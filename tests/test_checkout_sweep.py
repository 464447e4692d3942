"""
Checkout sweep: fires due checkouts once, isolates per-task failures.
"""

import asyncio
from datetime import timedelta

import pytest

from tests.conftest import CHECK_OUT, booking_event
from turnover.db.base import get_session
from turnover.db.repositories import BookingRepository
from turnover.engine.core import TurnoverEngine
from turnover.engine.timeline import canonical_task_id
from turnover.models import BookingStatus, TaskStatus, TaskType
from turnover.observability.metrics import metrics
from turnover.tasks.checkout import run_checkout_sweep


async def _task_status(booking_id: str, task_type: TaskType) -> TaskStatus:
    async with get_session() as s:
        task = await TurnoverEngine(s).get_task(canonical_task_id(booking_id, task_type))
    return task.status


@pytest.fixture
async def bookings(session, turnover, staff):
    await turnover.create_timeline(booking_event("booking-1"))
    await turnover.create_timeline(
        booking_event("booking-2", property_id="villa-9", property_name="Villa Mare")
    )
    await session.commit()


@pytest.mark.asyncio
async def test_sweep_before_checkout_time_does_nothing(bookings, notifier):
    result = await run_checkout_sweep(now=CHECK_OUT - timedelta(minutes=1), notifier=notifier)

    assert result.due == 0
    assert result.completed == 0
    assert await _task_status("booking-1", TaskType.CHECKOUT) == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_sweep_completes_due_checkouts_and_activates_cleaning(bookings, notifier):
    result = await run_checkout_sweep(now=CHECK_OUT + timedelta(minutes=1), notifier=notifier)

    assert result.due == 2
    assert result.completed == 2
    assert result.failed == 0
    for booking_id in ("booking-1", "booking-2"):
        assert await _task_status(booking_id, TaskType.CHECKOUT) == TaskStatus.COMPLETED
        assert await _task_status(booking_id, TaskType.CLEANING) == TaskStatus.ASSIGNED

    async with get_session() as s:
        booking = await BookingRepository(s).get("booking-1")
    assert booking.status == BookingStatus.CHECKED_OUT
    assert notifier.titles() == ["Cleaning Task Assigned", "Cleaning Task Assigned"]
    assert metrics.counter_value("checkouts.completed") == 2


@pytest.mark.asyncio
async def test_second_sweep_is_idempotent(bookings, notifier):
    now = CHECK_OUT + timedelta(minutes=1)
    await run_checkout_sweep(now=now, notifier=notifier)
    sent_after_first = list(notifier.ids())

    again = await run_checkout_sweep(now=now + timedelta(minutes=1), notifier=notifier)

    assert again.due == 0
    assert again.completed == 0
    assert notifier.ids() == sent_after_first
    assert len(set(sent_after_first)) == 2


@pytest.mark.asyncio
async def test_batch_size_limits_one_run(bookings, notifier):
    result = await run_checkout_sweep(
        now=CHECK_OUT + timedelta(minutes=1), notifier=notifier, batch_size=1
    )

    assert result.due == 1
    assert result.completed == 1


@pytest.mark.asyncio
async def test_failing_task_does_not_stop_the_batch(bookings, notifier, monkeypatch):
    failing_id = canonical_task_id("booking-2", TaskType.CHECKOUT)
    original = TurnoverEngine.complete_checkout

    async def complete_checkout(self, task_id, now=None):
        if task_id == failing_id:
            raise RuntimeError("store hiccup")
        return await original(self, task_id, now)

    monkeypatch.setattr(TurnoverEngine, "complete_checkout", complete_checkout)

    result = await run_checkout_sweep(now=CHECK_OUT + timedelta(minutes=1), notifier=notifier)

    assert result.due == 2
    assert result.completed == 1
    assert result.failed == 1
    assert await _task_status("booking-1", TaskType.CHECKOUT) == TaskStatus.COMPLETED
    assert await _task_status("booking-2", TaskType.CHECKOUT) == TaskStatus.PENDING
    assert metrics.counter_value("sweep.checkout.task_errors") == 1


@pytest.mark.asyncio
async def test_overlapping_sweeps_complete_each_checkout_once(bookings, notifier):
    now = CHECK_OUT + timedelta(minutes=1)

    first, second = await asyncio.gather(
        run_checkout_sweep(now=now, notifier=notifier),
        run_checkout_sweep(now=now, notifier=notifier),
    )

    for result in (first, second):
        assert result.failed == 0
        assert result.completed + result.skipped == result.due
    assert first.completed + second.completed == 2
    assert metrics.counter_value("checkouts.completed") == 2
    assert metrics.counter_value("sweep.checkout.task_errors") == 0

    assert notifier.titles() == ["Cleaning Task Assigned", "Cleaning Task Assigned"]
    assert len(set(notifier.ids())) == 2
    async with get_session() as s:
        for booking_id in ("booking-1", "booking-2"):
            booking = await BookingRepository(s).get(booking_id)
            assert booking.status == BookingStatus.CHECKED_OUT
