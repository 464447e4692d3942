"""Turnover plan generation and timeline aggregate derivation.

Everything here is pure: no session, no clock reads. The engine persists
what these functions return.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple
from uuid import NAMESPACE_URL, UUID, uuid5

from turnover.engine.errors import ValidationError
from turnover.models import (
    BookingConfirmed,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
    Timeline,
    TimelinePhase,
)
from turnover.utils.time import ensure_utc

TURNOVER_NAMESPACE = uuid5(NAMESPACE_URL, "turnover:operational-task")

OPERATIONS_AUTOMATION = "OPERATIONS_AUTOMATION"
INSPECTION_AUTOMATION = "INSPECTION_AUTOMATION"


class TaskTemplate(NamedTuple):
    """Canonical task shape, positioned relative to the booking dates."""

    anchor: str  # "check_in" or "check_out"
    offset: timedelta
    duration_minutes: int
    priority: TaskPriority
    title: str
    description: str


TEMPLATES: dict[TaskType, TaskTemplate] = {
    TaskType.PRE_ARRIVAL_PREP: TaskTemplate(
        "check_in",
        timedelta(hours=-24),
        180,
        TaskPriority.HIGH,
        "Pre-arrival Property Setup",
        "Deep cleaning, amenity stocking and final preparation before guest arrival",
    ),
    TaskType.CHECKIN_INFORMATIONAL: TaskTemplate(
        "check_in",
        timedelta(0),
        0,
        TaskPriority.MEDIUM,
        "Guest Check-in",
        "Guest self check-in via key box - informational event",
    ),
    TaskType.CHECKOUT: TaskTemplate(
        "check_out",
        timedelta(0),
        30,
        TaskPriority.URGENT,
        "Guest Checkout Process",
        "Mark booking as checked-out and trigger cleaning workflow",
    ),
    TaskType.CLEANING: TaskTemplate(
        "check_out",
        timedelta(minutes=30),
        150,
        TaskPriority.HIGH,
        "Post-checkout Cleaning",
        "Complete property cleaning including all rooms, bathrooms, linens and common areas",
    ),
    TaskType.INSPECTION: TaskTemplate(
        "check_out",
        timedelta(hours=3),
        60,
        TaskPriority.HIGH,
        "Property Inspection",
        "Inspect property condition, review cleaning quality, check for damage or maintenance issues",
    ),
}

# task type -> (depends_on types, triggers types); dependency and trigger mirror
EDGES: dict[TaskType, tuple[tuple[TaskType, ...], tuple[TaskType, ...]]] = {
    TaskType.PRE_ARRIVAL_PREP: ((), (TaskType.CHECKIN_INFORMATIONAL,)),
    TaskType.CHECKIN_INFORMATIONAL: ((TaskType.PRE_ARRIVAL_PREP,), ()),
    TaskType.CHECKOUT: ((), (TaskType.CLEANING,)),
    TaskType.CLEANING: ((TaskType.CHECKOUT,), (TaskType.INSPECTION,)),
    TaskType.INSPECTION: ((TaskType.CLEANING,), ()),
}


@dataclass
class TurnoverPlan:
    """Tasks and timeline for one booking, ready to be written as one batch."""

    tasks: list[Task]
    timeline: Timeline

    def task_of_type(self, task_type: TaskType) -> Task:
        return next(t for t in self.tasks if t.task_type == task_type)


def canonical_task_id(booking_id: str, task_type: TaskType) -> UUID:
    """Stable id for a booking's canonical task of the given type."""
    return uuid5(TURNOVER_NAMESPACE, f"{booking_id}:{task_type.value}")


def timeline_id_for(booking_id: str) -> UUID:
    return uuid5(TURNOVER_NAMESPACE, f"{booking_id}:timeline")


def validate_booking(event: BookingConfirmed) -> None:
    """Reject malformed booking-confirmed input."""
    if not event.booking_id or not event.booking_id.strip():
        raise ValidationError("booking_id is required")
    if not event.property_id or not event.property_id.strip():
        raise ValidationError("property_id is required")
    if ensure_utc(event.check_out) <= ensure_utc(event.check_in):
        raise ValidationError(
            f"check_out ({event.check_out.isoformat()}) must be after "
            f"check_in ({event.check_in.isoformat()})"
        )


def generate_turnover_plan(event: BookingConfirmed, now: datetime) -> TurnoverPlan:
    """
    Build the canonical task graph and timeline for a confirmed booking.

    Ids are derived from the booking id, so edges are wired before anything
    is written and a replayed event maps onto the same rows.
    """
    validate_booking(event)

    check_in = ensure_utc(event.check_in)
    check_out = ensure_utc(event.check_out)
    anchors = {"check_in": check_in, "check_out": check_out}
    guest_name = event.guest_name or "Guest"
    ids = {task_type: canonical_task_id(event.booking_id, task_type) for task_type in TEMPLATES}

    tasks = []
    for task_type, template in TEMPLATES.items():
        depends_on, triggers = EDGES[task_type]
        tasks.append(
            Task(
                task_id=ids[task_type],
                booking_id=event.booking_id,
                property_id=event.property_id,
                property_name=event.property_name,
                guest_name=guest_name,
                task_type=task_type,
                title=template.title,
                description=template.description,
                priority=template.priority,
                status=TaskStatus.PENDING,
                scheduled_at=anchors[template.anchor] + template.offset,
                estimated_duration_minutes=template.duration_minutes,
                depends_on=[ids[t] for t in depends_on],
                triggers=[ids[t] for t in triggers],
                created_at=now,
                updated_at=now,
                created_by=OPERATIONS_AUTOMATION,
            )
        )
    tasks.sort(key=lambda t: t.scheduled_at)

    inspection = next(t for t in tasks if t.task_type == TaskType.INSPECTION)
    timeline = Timeline(
        timeline_id=timeline_id_for(event.booking_id),
        booking_id=event.booking_id,
        property_id=event.property_id,
        check_in=check_in,
        check_out=check_out,
        task_ids=[t.task_id for t in tasks],
        current_phase=TimelinePhase.PRE_ARRIVAL,
        completion_percentage=0,
        estimated_ready_at=inspection.scheduled_at
        + timedelta(minutes=inspection.estimated_duration_minutes),
        created_at=now,
        updated_at=now,
    )
    return TurnoverPlan(tasks=tasks, timeline=timeline)


def completion_percentage(tasks: Iterable[Task]) -> int:
    """Share of non-cancelled tasks in a success state, rounded down to 0-100."""
    counted = [t for t in tasks if t.status != TaskStatus.CANCELLED]
    if not counted:
        return 0
    done = sum(1 for t in counted if t.status.is_success())
    return 100 * done // len(counted)


def derive_phase(timeline: Timeline, tasks: Iterable[Task], now: datetime) -> TimelinePhase:
    """Current phase from task rows; first matching rule wins."""
    if timeline.is_ready():
        return TimelinePhase.READY

    by_type: dict[TaskType, Task] = {}
    for task in tasks:
        # Canonical tasks only; maintenance never drives the phase
        if task.task_type in TEMPLATES:
            by_type.setdefault(task.task_type, task)

    inspection = by_type.get(TaskType.INSPECTION)
    cleaning = by_type.get(TaskType.CLEANING)
    checkout = by_type.get(TaskType.CHECKOUT)

    if inspection and inspection.status == TaskStatus.APPROVED:
        return TimelinePhase.READY
    if cleaning and cleaning.status.is_success():
        return TimelinePhase.INSPECTION
    if checkout and checkout.status.is_success():
        return TimelinePhase.CLEANING
    if checkout and (
        checkout.status in {TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS}
        or now >= checkout.scheduled_at
    ):
        return TimelinePhase.CHECKOUT
    if now >= ensure_utc(timeline.check_in):
        return TimelinePhase.OCCUPIED
    return TimelinePhase.PRE_ARRIVAL
