"""
Task lifecycle: dependency gate, evidence gate, cascades and conditional writes.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.conftest import CHECK_OUT, FakeNotifier, booking_event
from turnover.db.repositories import BookingRepository, TaskRepository
from turnover.engine.core import AUTOMATIC_CHECKOUT, TurnoverEngine
from turnover.engine.errors import (
    DependencyNotMet,
    EvidenceRequired,
    InvalidStateTransition,
    StaffNotFound,
    TaskNotFound,
    ValidationError,
)
from turnover.engine.timeline import canonical_task_id
from turnover.models import BookingStatus, CompletionEvidence, TaskStatus, TaskType
from turnover.observability.metrics import metrics

CHECKOUT_ID = canonical_task_id("booking-1", TaskType.CHECKOUT)
CLEANING_ID = canonical_task_id("booking-1", TaskType.CLEANING)
INSPECTION_ID = canonical_task_id("booking-1", TaskType.INSPECTION)
PREP_ID = canonical_task_id("booking-1", TaskType.PRE_ARRIVAL_PREP)

EVIDENCE = CompletionEvidence(
    photo_refs=["photos/kitchen.jpg", "photos/bedroom.jpg"],
    checklist_completed=True,
    notes="All rooms done",
)


@pytest.fixture
async def timeline(session, turnover):
    created, _ = await turnover.create_timeline(booking_event())
    await session.commit()
    return created


async def _finish_cleaning(turnover: TurnoverEngine) -> None:
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await turnover.transition(CLEANING_ID, TaskStatus.IN_PROGRESS, staff_id="staff-clean")
    await turnover.transition(
        CLEANING_ID, TaskStatus.COMPLETED, staff_id="staff-clean", evidence=EVIDENCE
    )


@pytest.mark.asyncio
async def test_checkout_completion_activates_cleaning(session, turnover, notifier, staff, timeline):
    fired = await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await session.commit()

    assert fired is True
    checkout = await turnover.get_task(CHECKOUT_ID)
    assert checkout.status == TaskStatus.COMPLETED
    assert checkout.completed_at == CHECK_OUT
    assert checkout.evidence.notes == "Automatic checkout triggered at scheduled time"

    cleaning = await turnover.get_task(CLEANING_ID)
    assert cleaning.status == TaskStatus.ASSIGNED
    assert cleaning.assigned_staff_id == "staff-clean"
    assert cleaning.triggered_at is not None

    booking = await BookingRepository(session).get("booking-1")
    assert booking.status == BookingStatus.CHECKED_OUT
    assert booking.checked_out_by == AUTOMATIC_CHECKOUT

    assert notifier.titles() == ["Cleaning Task Assigned"]
    assert notifier.sent[0].recipient_id == "staff-clean"
    assert notifier.sent[0].related_task_id == CLEANING_ID


@pytest.mark.asyncio
async def test_cascade_without_staff_leaves_task_unassigned(session, turnover, notifier, timeline):
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await session.commit()

    cleaning = await turnover.get_task(CLEANING_ID)
    assert cleaning.status == TaskStatus.ASSIGNED
    assert cleaning.assigned_staff_id is None
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_assign_blocked_by_unfinished_dependency(turnover, staff, timeline):
    with pytest.raises(DependencyNotMet) as exc_info:
        await turnover.transition(CLEANING_ID, TaskStatus.ASSIGNED)

    assert exc_info.value.blocking == [str(CHECKOUT_ID)]
    assert exc_info.value.code == "DEPENDENCY_NOT_MET"
    assert (await turnover.get_task(CLEANING_ID)).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_pending_task_cannot_skip_to_in_progress(turnover, timeline):
    with pytest.raises(InvalidStateTransition) as exc_info:
        await turnover.transition(CLEANING_ID, TaskStatus.IN_PROGRESS)

    assert exc_info.value.current_status == "pending"
    assert exc_info.value.requested_status == "in_progress"


@pytest.mark.asyncio
async def test_cleaning_completion_requires_evidence(session, turnover, staff, timeline):
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await turnover.transition(CLEANING_ID, TaskStatus.IN_PROGRESS, staff_id="staff-clean")

    with pytest.raises(EvidenceRequired) as exc_info:
        await turnover.transition(CLEANING_ID, TaskStatus.COMPLETED, staff_id="staff-clean")
    assert exc_info.value.missing == ["photo_refs", "checklist_completed"]

    with pytest.raises(EvidenceRequired) as exc_info:
        await turnover.transition(
            CLEANING_ID,
            TaskStatus.COMPLETED,
            evidence=CompletionEvidence(photo_refs=["photos/a.jpg"]),
        )
    assert exc_info.value.missing == ["checklist_completed"]

    assert (await turnover.get_task(CLEANING_ID)).status == TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_cleaning_completion_activates_inspection(session, turnover, notifier, staff, timeline):
    await _finish_cleaning(turnover)
    await session.commit()

    cleaning = await turnover.get_task(CLEANING_ID)
    assert cleaning.status == TaskStatus.COMPLETED
    assert cleaning.evidence.photo_refs == EVIDENCE.photo_refs
    assert cleaning.evidence.checklist_completed is True
    assert cleaning.started_at is not None
    assert cleaning.completed_at is not None

    inspection = await turnover.get_task(INSPECTION_ID)
    assert inspection.status == TaskStatus.ASSIGNED
    assert inspection.assigned_staff_id == "staff-inspect"
    assert notifier.titles() == ["Cleaning Task Assigned", "Inspection Task Ready"]


@pytest.mark.asyncio
async def test_cancelled_task_does_not_cascade(session, turnover, timeline):
    await turnover.transition(CHECKOUT_ID, TaskStatus.CANCELLED)
    await session.commit()

    checkout = await turnover.get_task(CHECKOUT_ID)
    assert checkout.status == TaskStatus.CANCELLED
    assert checkout.cancelled_at is not None
    assert (await turnover.get_task(CLEANING_ID)).status == TaskStatus.PENDING

    # Terminal
    with pytest.raises(InvalidStateTransition):
        await turnover.transition(CHECKOUT_ID, TaskStatus.COMPLETED)


@pytest.mark.asyncio
async def test_failed_task_does_not_cascade(session, turnover, staff, timeline):
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await turnover.transition(CLEANING_ID, TaskStatus.FAILED)
    await session.commit()

    cleaning = await turnover.get_task(CLEANING_ID)
    assert cleaning.status == TaskStatus.FAILED
    assert cleaning.failed_at is not None
    assert (await turnover.get_task(INSPECTION_ID)).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_unassign_returns_task_to_pending(session, turnover, staff, timeline):
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    task = await turnover.transition(CLEANING_ID, TaskStatus.PENDING)

    assert task.status == TaskStatus.PENDING
    assert task.assigned_staff_id is None
    assert task.assigned_at is None


@pytest.mark.asyncio
async def test_inspection_approval_needs_submission(session, turnover, staff, timeline):
    await _finish_cleaning(turnover)
    await turnover.transition(INSPECTION_ID, TaskStatus.IN_PROGRESS)
    await turnover.transition(INSPECTION_ID, TaskStatus.COMPLETED)

    with pytest.raises(ValidationError) as exc_info:
        await turnover.transition(INSPECTION_ID, TaskStatus.APPROVED)
    assert exc_info.value.code == "INSPECTION_RESULT_REQUIRED"


@pytest.mark.asyncio
async def test_assign_by_skill_match(session, turnover, notifier, staff, timeline):
    task = await turnover.assign(PREP_ID)
    await session.commit()

    assert task.status == TaskStatus.ASSIGNED
    assert task.assigned_staff_id == "staff-clean"
    assert task.assigned_staff_name == "Carla Cleaner"
    assert notifier.titles() == ["Task Assigned"]
    assert metrics.counter_value("assignments.made") == 1


@pytest.mark.asyncio
async def test_assign_without_matching_staff_leaves_task_pending(turnover, notifier, timeline):
    task = await turnover.assign(PREP_ID)

    assert task.status == TaskStatus.PENDING
    assert task.assigned_staff_id is None
    assert notifier.sent == []
    assert metrics.counter_value("assignments.no_match") == 1


@pytest.mark.asyncio
async def test_assign_unknown_staff(turnover, staff, timeline):
    with pytest.raises(StaffNotFound):
        await turnover.assign(PREP_ID, staff_id="nobody")


@pytest.mark.asyncio
async def test_explicit_assignment_overrides_cascade_pick(session, turnover, staff, timeline):
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    task = await turnover.assign(CLEANING_ID, staff_id="staff-inspect")

    assert task.status == TaskStatus.ASSIGNED
    assert task.assigned_staff_id == "staff-inspect"


@pytest.mark.asyncio
async def test_unknown_task(turnover, timeline):
    with pytest.raises(TaskNotFound):
        await turnover.transition(canonical_task_id("missing", TaskType.CLEANING), TaskStatus.CANCELLED)


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_transition(session, staff, timeline):
    failing = FakeNotifier(fail=True)
    engine = TurnoverEngine(session, notifier=failing)

    assert await engine.complete_checkout(CHECKOUT_ID, CHECK_OUT) is True
    await session.commit()

    assert (await engine.get_task(CLEANING_ID)).status == TaskStatus.ASSIGNED
    assert metrics.counter_value("notifications.failed") == 1
    assert metrics.counter_value("notifications.sent") == 0


@pytest.mark.asyncio
async def test_conditional_transition_applies_once(session, timeline):
    repo = TaskRepository(session)

    first = await repo.transition(PREP_ID, TaskStatus.PENDING, TaskStatus.ASSIGNED)
    second = await repo.transition(PREP_ID, TaskStatus.PENDING, TaskStatus.ASSIGNED)

    assert first is True
    assert second is False


@pytest.mark.asyncio
async def test_second_writer_of_same_transition_is_rejected(engine, session, staff, timeline):
    await TurnoverEngine(session, notifier=FakeNotifier()).complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await session.commit()

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as first:
        await TurnoverEngine(first, notifier=FakeNotifier()).transition(
            CLEANING_ID, TaskStatus.IN_PROGRESS
        )
        await first.commit()

    async with factory() as second:
        with pytest.raises(InvalidStateTransition) as exc_info:
            await TurnoverEngine(second, notifier=FakeNotifier()).transition(
                CLEANING_ID, TaskStatus.IN_PROGRESS
            )
    assert exc_info.value.current_status == "in_progress"


@pytest.mark.asyncio
async def test_complete_checkout_twice_is_a_no_op(session, turnover, notifier, staff, timeline):
    assert await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT) is True
    assert await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT) is False
    await session.commit()

    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_complete_checkout_rejects_other_task_types(turnover, timeline):
    with pytest.raises(ValidationError):
        await turnover.complete_checkout(CLEANING_ID, CHECK_OUT)
