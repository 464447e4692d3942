"""
Inspection outcomes: ready on pass; maintenance, blocking and alerts on fail.
"""

import pytest

from tests.conftest import CHECK_OUT, booking_event
from turnover.db.repositories import (
    AlertRepository,
    BookingRepository,
    PropertyRepository,
    TaskRepository,
)
from turnover.engine.errors import (
    AlertNotFound,
    InvalidStateTransition,
    PropertyNotFound,
    ValidationError,
)
from turnover.engine.timeline import INSPECTION_AUTOMATION, canonical_task_id
from turnover.models import (
    AlertSeverity,
    AlertType,
    BookingStatus,
    CompletionEvidence,
    InspectionIssue,
    InspectionResult,
    IssueSeverity,
    TaskPriority,
    TaskStatus,
    TaskType,
    TimelinePhase,
)

CHECKOUT_ID = canonical_task_id("booking-1", TaskType.CHECKOUT)
CLEANING_ID = canonical_task_id("booking-1", TaskType.CLEANING)
INSPECTION_ID = canonical_task_id("booking-1", TaskType.INSPECTION)


@pytest.fixture
async def ready_for_inspection(session, turnover, staff):
    await turnover.create_timeline(booking_event())
    await turnover.complete_checkout(CHECKOUT_ID, CHECK_OUT)
    await turnover.transition(CLEANING_ID, TaskStatus.IN_PROGRESS)
    await turnover.transition(
        CLEANING_ID,
        TaskStatus.COMPLETED,
        evidence=CompletionEvidence(photo_refs=["photos/lounge.jpg"], checklist_completed=True),
    )
    await session.commit()


@pytest.mark.asyncio
async def test_passed_inspection_makes_booking_ready(session, turnover, notifier, ready_for_inspection):
    outcome = await turnover.submit_inspection(
        INSPECTION_ID,
        InspectionResult(passed=True, approval_notes="Spotless", photos_reviewed=True),
    )
    await session.commit()

    assert outcome.task.status == TaskStatus.APPROVED
    assert outcome.task.approved_at is not None
    assert outcome.task.evidence.notes == "Spotless"
    assert outcome.maintenance_tasks == []
    assert outcome.property_blocked is False

    timeline, tasks = await turnover.get_timeline("booking-1")
    assert timeline.current_phase == TimelinePhase.READY
    assert timeline.completion_percentage == 100
    assert timeline.actual_ready_at is not None
    assert len(tasks) == 5

    booking = await BookingRepository(session).get("booking-1")
    assert booking.status == BookingStatus.READY
    assert booking.inspection_passed is True

    alerts = await AlertRepository(session).list()
    assert len(alerts) == 1
    assert alerts[0].alert_type == AlertType.TIMELINE_COMPLETE
    assert alerts[0].severity == AlertSeverity.LOW
    assert alerts[0].context["booking_id"] == "booking-1"
    assert outcome.alert.alert_id == alerts[0].alert_id

    assert notifier.titles()[-1] == "Property Operational Cycle Complete"
    assert notifier.sent[-1].recipient_id == "management"


@pytest.mark.asyncio
async def test_failed_inspection_spawns_maintenance_and_blocks(session, turnover, notifier, ready_for_inspection):
    result = InspectionResult(
        passed=False,
        issues_found=[
            InspectionIssue(
                description="Broken window in master bedroom",
                severity=IssueSeverity.HIGH,
                requires_blocking=True,
            ),
            InspectionIssue(description="Loose towel rail", severity=IssueSeverity.LOW),
        ],
    )

    outcome = await turnover.submit_inspection(INSPECTION_ID, result)
    await session.commit()

    assert outcome.task.status == TaskStatus.FAILED
    assert outcome.task.issues.issues_found is True
    assert outcome.task.issues.resolution_required is True
    assert "Broken window" in outcome.task.issues.issue_description
    assert outcome.property_blocked is True

    maintenance = await TaskRepository(session).list(
        booking_id="booking-1", task_type=TaskType.MAINTENANCE
    )
    assert len(maintenance) == 2
    by_title = {t.title: t for t in maintenance}
    window = by_title["Maintenance: Broken window in master bedroom"]
    rail = by_title["Maintenance: Loose towel rail"]
    assert window.priority == TaskPriority.URGENT
    assert window.estimated_duration_minutes == 240
    assert rail.priority == TaskPriority.MEDIUM
    assert rail.estimated_duration_minutes == 120
    for task in maintenance:
        assert task.status == TaskStatus.PENDING
        assert task.source_task_id == INSPECTION_ID
        assert task.created_by == INSPECTION_AUTOMATION
        assert task.issues.resolution_required is True

    timeline, _ = await turnover.get_timeline("booking-1")
    assert len(timeline.task_ids) == 7
    assert timeline.current_phase != TimelinePhase.READY

    prop = await PropertyRepository(session).get("villa-7")
    assert prop.blocked is True
    assert prop.blocked_reason == "Broken window in master bedroom"

    assert outcome.alert.alert_type == AlertType.ISSUE_FOUND
    assert outcome.alert.severity == AlertSeverity.CRITICAL
    assert outcome.alert.requires_immediate_action is True
    assert len(outcome.alert.context["maintenance_task_ids"]) == 2

    assert notifier.sent[-1].title == "Property Issue Requires Attention"
    assert notifier.sent[-1].priority == TaskPriority.URGENT


@pytest.mark.asyncio
async def test_failed_inspection_without_high_issues(session, turnover, ready_for_inspection):
    outcome = await turnover.submit_inspection(
        INSPECTION_ID,
        InspectionResult(
            passed=False,
            issues_found=[InspectionIssue(description="Stained rug", severity=IssueSeverity.MEDIUM)],
        ),
    )

    assert outcome.alert.severity == AlertSeverity.HIGH
    assert outcome.alert.requires_immediate_action is False
    assert outcome.property_blocked is False
    assert outcome.maintenance_tasks[0].priority == TaskPriority.HIGH
    assert (await PropertyRepository(session).get("villa-7")).blocked is False


@pytest.mark.asyncio
async def test_failed_inspection_needs_issues(turnover, ready_for_inspection):
    with pytest.raises(ValidationError):
        await turnover.submit_inspection(INSPECTION_ID, InspectionResult(passed=False))

    assert (await turnover.get_task(INSPECTION_ID)).status == TaskStatus.ASSIGNED


@pytest.mark.asyncio
async def test_inspection_before_cleaning_is_rejected(session, turnover):
    await turnover.create_timeline(booking_event())
    await session.commit()

    with pytest.raises(InvalidStateTransition):
        await turnover.submit_inspection(INSPECTION_ID, InspectionResult(passed=True))


@pytest.mark.asyncio
async def test_inspection_submission_on_other_task_type(turnover, ready_for_inspection):
    with pytest.raises(ValidationError):
        await turnover.submit_inspection(CLEANING_ID, InspectionResult(passed=True))


@pytest.mark.asyncio
async def test_approved_inspection_cannot_be_resubmitted(session, turnover, ready_for_inspection):
    await turnover.submit_inspection(INSPECTION_ID, InspectionResult(passed=True))
    await session.commit()

    with pytest.raises(InvalidStateTransition):
        await turnover.submit_inspection(INSPECTION_ID, InspectionResult(passed=True))
    assert len(await AlertRepository(session).list()) == 1


@pytest.mark.asyncio
async def test_unblock_property_and_resolve_alert(session, turnover, ready_for_inspection):
    outcome = await turnover.submit_inspection(
        INSPECTION_ID,
        InspectionResult(
            passed=False,
            issues_found=[InspectionIssue(description="Gas smell", requires_blocking=True)],
        ),
    )
    await session.commit()

    prop = await turnover.unblock_property("villa-7")
    assert prop.blocked is False
    assert prop.blocked_reason is None

    alert = await turnover.resolve_alert(outcome.alert.alert_id, resolved_by="ops-lead")
    assert alert.resolved is True
    assert alert.resolved_by == "ops-lead"
    assert await turnover.list_alerts(resolved=False) == []

    with pytest.raises(AlertNotFound):
        await turnover.resolve_alert(outcome.alert.alert_id)
    with pytest.raises(PropertyNotFound):
        await turnover.unblock_property("no-such-villa")
