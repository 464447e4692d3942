"""Database repositories for turnover entities."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from turnover.db.tables import (
    AlertTable,
    BookingTable,
    JobTable,
    NotificationTable,
    OfferTable,
    PropertyTable,
    StaffTable,
    TaskTable,
    TimelineTable,
)
from turnover.models import (
    Alert,
    AlertSeverity,
    AlertType,
    Booking,
    BookingConfirmed,
    BookingStatus,
    CompletionEvidence,
    IssueFlags,
    Job,
    JobStatus,
    NotificationPayload,
    Offer,
    OfferStatus,
    Property,
    StaffMember,
    StaffStatus,
    Task,
    TaskStatus,
    TaskType,
    Timeline,
    TimelinePhase,
)
from turnover.utils.time import utc_now


class TaskRepository:
    """Repository for operational task operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_many(self, tasks: Iterable[Task]) -> None:
        """Insert a batch of tasks; the caller owns the transaction."""
        for task in tasks:
            self.session.add(self._model_to_row(task))
        await self.session.flush()

    async def get(self, task_id: UUID) -> Task | None:
        """Get a task by ID."""
        result = await self.session.execute(
            select(TaskTable).where(TaskTable.task_id == task_id)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def get_many(self, task_ids: Iterable[UUID]) -> dict[UUID, Task]:
        ids = list(task_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(TaskTable).where(TaskTable.task_id.in_(ids))
        )
        return {row.task_id: self._row_to_model(row) for row in result.scalars().all()}

    async def list(
        self,
        booking_id: str | None = None,
        property_id: str | None = None,
        status: TaskStatus | None = None,
        task_type: TaskType | None = None,
        scheduled_from: datetime | None = None,
        scheduled_to: datetime | None = None,
        limit: int = 50,
    ) -> list[Task]:
        """List tasks with optional filtering, ordered by scheduled time."""
        query = select(TaskTable)

        if booking_id:
            query = query.where(TaskTable.booking_id == booking_id)
        if property_id:
            query = query.where(TaskTable.property_id == property_id)
        if status:
            query = query.where(TaskTable.status == status)
        if task_type:
            query = query.where(TaskTable.task_type == task_type)
        if scheduled_from:
            query = query.where(TaskTable.scheduled_at >= scheduled_from)
        if scheduled_to:
            query = query.where(TaskTable.scheduled_at <= scheduled_to)

        query = query.order_by(TaskTable.scheduled_at.asc(), TaskTable.created_at.asc()).limit(limit)

        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def list_for_booking(self, booking_id: str) -> list[Task]:
        result = await self.session.execute(
            select(TaskTable)
            .where(TaskTable.booking_id == booking_id)
            .order_by(TaskTable.scheduled_at.asc(), TaskTable.created_at.asc())
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def list_due_checkouts(self, now: datetime, limit: int) -> list[Task]:
        """Pending checkout tasks whose scheduled time has passed, oldest first."""
        result = await self.session.execute(
            select(TaskTable)
            .where(
                TaskTable.task_type == TaskType.CHECKOUT,
                TaskTable.status == TaskStatus.PENDING,
                TaskTable.scheduled_at <= now,
            )
            .order_by(TaskTable.scheduled_at.asc())
            .limit(limit)
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def transition(
        self,
        task_id: UUID,
        expected: TaskStatus | Iterable[TaskStatus],
        new_status: TaskStatus,
        values: dict[str, Any] | None = None,
    ) -> bool:
        """
        Conditionally move a task to new_status.

        The write only applies while the row is still in an expected status,
        so concurrent writers cannot both win. Returns whether it applied.
        """
        expected_set = {expected} if isinstance(expected, TaskStatus) else set(expected)
        now = utc_now()
        update_values: dict[str, Any] = {"status": new_status, "updated_at": now}
        if values:
            update_values.update(values)

        result = await self.session.execute(
            update(TaskTable)
            .where(TaskTable.task_id == task_id, TaskTable.status.in_(sorted(expected_set)))
            .values(**update_values)
        )
        return result.rowcount == 1

    async def assign_staff(
        self,
        task_id: UUID,
        expected: TaskStatus,
        staff_id: str,
        staff_name: str,
        only_if_unassigned: bool = False,
    ) -> bool:
        """Set the assignee without changing status, if status is unchanged."""
        now = utc_now()
        query = update(TaskTable).where(
            TaskTable.task_id == task_id, TaskTable.status == expected
        )
        if only_if_unassigned:
            query = query.where(TaskTable.assigned_staff_id.is_(None))
        result = await self.session.execute(
            query.values(
                assigned_staff_id=staff_id,
                assigned_staff_name=staff_name,
                assigned_at=now,
                updated_at=now,
            )
        )
        return result.rowcount == 1

    def _model_to_row(self, task: Task) -> TaskTable:
        return TaskTable(
            task_id=task.task_id,
            booking_id=task.booking_id,
            property_id=task.property_id,
            property_name=task.property_name,
            guest_name=task.guest_name,
            task_type=task.task_type,
            title=task.title,
            description=task.description,
            priority=task.priority,
            status=task.status,
            scheduled_at=task.scheduled_at,
            estimated_duration_minutes=task.estimated_duration_minutes,
            assigned_staff_id=task.assigned_staff_id,
            assigned_staff_name=task.assigned_staff_name,
            assigned_at=task.assigned_at,
            depends_on=[str(t) for t in task.depends_on],
            triggers=[str(t) for t in task.triggers],
            photo_refs=list(task.evidence.photo_refs),
            checklist_completed=task.evidence.checklist_completed,
            completion_notes=task.evidence.notes,
            issues_found=task.issues.issues_found,
            issue_description=task.issues.issue_description,
            resolution_required=task.issues.resolution_required,
            source_task_id=task.source_task_id,
            created_at=task.created_at,
            updated_at=task.updated_at,
            created_by=task.created_by,
        )

    def _row_to_model(self, row: TaskTable) -> Task:
        """Convert database row to model."""
        return Task(
            task_id=row.task_id,
            booking_id=row.booking_id,
            property_id=row.property_id,
            property_name=row.property_name,
            guest_name=row.guest_name,
            task_type=row.task_type,
            title=row.title,
            description=row.description,
            priority=row.priority,
            status=row.status,
            scheduled_at=row.scheduled_at,
            estimated_duration_minutes=row.estimated_duration_minutes,
            assigned_staff_id=row.assigned_staff_id,
            assigned_staff_name=row.assigned_staff_name,
            assigned_at=row.assigned_at,
            depends_on=[UUID(t) for t in row.depends_on or []],
            triggers=[UUID(t) for t in row.triggers or []],
            evidence=CompletionEvidence(
                photo_refs=list(row.photo_refs or []),
                checklist_completed=row.checklist_completed,
                notes=row.completion_notes,
            ),
            issues=IssueFlags(
                issues_found=row.issues_found,
                issue_description=row.issue_description,
                resolution_required=row.resolution_required,
            ),
            source_task_id=row.source_task_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
            triggered_at=row.triggered_at,
            started_at=row.started_at,
            completed_at=row.completed_at,
            approved_at=row.approved_at,
            failed_at=row.failed_at,
            cancelled_at=row.cancelled_at,
            created_by=row.created_by,
        )


class BookingRepository:
    """Repository for the local booking mirror."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert_confirmed(self, event: BookingConfirmed) -> Booking:
        """Record a confirmed booking, refreshing dates if it already exists."""
        now = utc_now()
        row = await self.session.get(BookingTable, event.booking_id)
        if row is None:
            row = BookingTable(
                booking_id=event.booking_id,
                status=BookingStatus.CONFIRMED,
            )
            self.session.add(row)
        row.property_id = event.property_id
        row.property_name = event.property_name
        row.guest_name = event.guest_name
        row.check_in = event.check_in
        row.check_out = event.check_out
        row.updated_at = now
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, booking_id: str) -> Booking | None:
        result = await self.session.execute(
            select(BookingTable).where(BookingTable.booking_id == booking_id)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def mark_checked_out(self, booking_id: str, checked_out_by: str) -> bool:
        """Set checked_out unless the booking already moved past confirmed."""
        now = utc_now()
        result = await self.session.execute(
            update(BookingTable)
            .where(
                BookingTable.booking_id == booking_id,
                BookingTable.status == BookingStatus.CONFIRMED,
            )
            .values(
                status=BookingStatus.CHECKED_OUT,
                checked_out_at=now,
                checked_out_by=checked_out_by,
                updated_at=now,
            )
        )
        return result.rowcount == 1

    async def mark_ready(self, booking_id: str) -> bool:
        now = utc_now()
        result = await self.session.execute(
            update(BookingTable)
            .where(BookingTable.booking_id == booking_id)
            .values(
                status=BookingStatus.READY,
                ready_at=now,
                inspection_passed=True,
                updated_at=now,
            )
        )
        return result.rowcount == 1

    def _row_to_model(self, row: BookingTable) -> Booking:
        return Booking(
            booking_id=row.booking_id,
            property_id=row.property_id,
            property_name=row.property_name,
            guest_name=row.guest_name,
            check_in=row.check_in,
            check_out=row.check_out,
            status=row.status,
            checked_out_at=row.checked_out_at,
            checked_out_by=row.checked_out_by,
            ready_at=row.ready_at,
            inspection_passed=row.inspection_passed,
            updated_at=row.updated_at,
        )


class PropertyRepository:
    """Repository for the property mirror."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        property_id: str,
        name: str | None = None,
        address: str | None = None,
    ) -> Property:
        row = await self.session.get(PropertyTable, property_id)
        if row is None:
            row = PropertyTable(property_id=property_id, blocked=False)
            self.session.add(row)
        if name:
            row.name = name
        if address:
            row.address = address
        row.updated_at = utc_now()
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, property_id: str) -> Property | None:
        result = await self.session.execute(
            select(PropertyTable).where(PropertyTable.property_id == property_id)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def set_blocked(self, property_id: str, blocked: bool, reason: str | None = None) -> bool:
        now = utc_now()
        result = await self.session.execute(
            update(PropertyTable)
            .where(PropertyTable.property_id == property_id)
            .values(
                blocked=blocked,
                blocked_reason=reason if blocked else None,
                blocked_at=now if blocked else None,
                updated_at=now,
            )
        )
        return result.rowcount == 1

    def _row_to_model(self, row: PropertyTable) -> Property:
        return Property(
            property_id=row.property_id,
            name=row.name,
            address=row.address,
            blocked=row.blocked,
            blocked_reason=row.blocked_reason,
            blocked_at=row.blocked_at,
            updated_at=row.updated_at,
        )


class TimelineRepository:
    """Repository for booking timelines."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, timeline: Timeline) -> None:
        self.session.add(
            TimelineTable(
                timeline_id=timeline.timeline_id,
                booking_id=timeline.booking_id,
                property_id=timeline.property_id,
                check_in=timeline.check_in,
                check_out=timeline.check_out,
                task_ids=[str(t) for t in timeline.task_ids],
                current_phase=timeline.current_phase,
                completion_percentage=timeline.completion_percentage,
                estimated_ready_at=timeline.estimated_ready_at,
                created_at=timeline.created_at,
                updated_at=timeline.updated_at,
            )
        )
        await self.session.flush()

    async def get_by_booking(self, booking_id: str) -> Timeline | None:
        result = await self.session.execute(
            select(TimelineTable).where(TimelineTable.booking_id == booking_id)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list_active_booking_ids(self) -> list[str]:
        """Bookings whose timeline has not reached ready."""
        result = await self.session.execute(
            select(TimelineTable.booking_id).where(
                TimelineTable.current_phase != TimelinePhase.READY
            )
        )
        return list(result.scalars().all())

    async def append_task(self, booking_id: str, task_id: UUID) -> None:
        row = (
            await self.session.execute(
                select(TimelineTable).where(TimelineTable.booking_id == booking_id)
            )
        ).scalar_one_or_none()
        if row is None:
            return
        row.task_ids = [*row.task_ids, str(task_id)]
        row.updated_at = utc_now()
        await self.session.flush()

    async def update_aggregate(
        self,
        booking_id: str,
        phase: TimelinePhase,
        completion_percentage: int,
    ) -> bool:
        """Store re-derived aggregates; a ready timeline is never rewritten."""
        result = await self.session.execute(
            update(TimelineTable)
            .where(
                TimelineTable.booking_id == booking_id,
                TimelineTable.current_phase != TimelinePhase.READY,
            )
            .values(
                current_phase=phase,
                completion_percentage=completion_percentage,
                updated_at=utc_now(),
            )
        )
        return result.rowcount == 1

    async def mark_ready(self, booking_id: str) -> bool:
        now = utc_now()
        result = await self.session.execute(
            update(TimelineTable)
            .where(
                TimelineTable.booking_id == booking_id,
                TimelineTable.current_phase != TimelinePhase.READY,
            )
            .values(
                current_phase=TimelinePhase.READY,
                completion_percentage=100,
                actual_ready_at=now,
                completed_at=now,
                updated_at=now,
            )
        )
        return result.rowcount == 1

    def _row_to_model(self, row: TimelineTable) -> Timeline:
        return Timeline(
            timeline_id=row.timeline_id,
            booking_id=row.booking_id,
            property_id=row.property_id,
            check_in=row.check_in,
            check_out=row.check_out,
            task_ids=[UUID(t) for t in row.task_ids or []],
            current_phase=row.current_phase,
            completion_percentage=row.completion_percentage,
            estimated_ready_at=row.estimated_ready_at,
            actual_ready_at=row.actual_ready_at,
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class OfferRepository:
    """Repository for job offers and their owning jobs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_stale_sent(self, cutoff: datetime) -> list[Offer]:
        result = await self.session.execute(
            select(OfferTable).where(
                OfferTable.status == OfferStatus.SENT,
                OfferTable.sent_at < cutoff,
            )
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def expire(self, offer_id: str, reason: str) -> bool:
        """Expire an offer only if it is still sent; acceptance always wins."""
        result = await self.session.execute(
            update(OfferTable)
            .where(OfferTable.offer_id == offer_id, OfferTable.status == OfferStatus.SENT)
            .values(status=OfferStatus.EXPIRED, expired_at=utc_now(), timeout_reason=reason)
        )
        return result.rowcount == 1

    async def get(self, offer_id: str) -> Offer | None:
        row = await self.session.get(OfferTable, offer_id)
        return self._row_to_model(row) if row else None

    async def add(self, offer: Offer) -> None:
        self.session.add(OfferTable(**offer.model_dump()))
        await self.session.flush()

    def _row_to_model(self, row: OfferTable) -> Offer:
        return Offer(
            offer_id=row.offer_id,
            job_id=row.job_id,
            staff_id=row.staff_id,
            status=row.status,
            sent_at=row.sent_at,
            accepted_at=row.accepted_at,
            expired_at=row.expired_at,
            timeout_reason=row.timeout_reason,
            attempt_number=row.attempt_number,
        )


class JobRepository:
    """Repository for staff jobs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, job_id: str) -> Job | None:
        row = await self.session.get(JobTable, job_id)
        return self._row_to_model(row) if row else None

    async def add(self, job: Job) -> None:
        self.session.add(JobTable(**job.model_dump()))
        await self.session.flush()

    async def flag_offer_expired(self, job_id: str, offer: Offer) -> bool:
        now = utc_now()
        result = await self.session.execute(
            update(JobTable)
            .where(JobTable.job_id == job_id)
            .values(
                status=JobStatus.OFFER_EXPIRED,
                escalation_required=True,
                last_expired_offer={
                    "offer_id": offer.offer_id,
                    "expired_at": now.isoformat(),
                    "attempt_number": offer.attempt_number,
                },
            )
        )
        return result.rowcount == 1

    async def list_stale(self, status: JobStatus, cutoff: datetime) -> list[Job]:
        """Jobs sitting in status since before cutoff."""
        since_column = JobTable.accepted_at if status == JobStatus.ACCEPTED else JobTable.started_at
        result = await self.session.execute(
            select(JobTable).where(JobTable.status == status, since_column < cutoff)
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def mark_stuck(
        self,
        job_id: str,
        expected: JobStatus,
        stuck_status: JobStatus,
        reason: str,
    ) -> bool:
        result = await self.session.execute(
            update(JobTable)
            .where(JobTable.job_id == job_id, JobTable.status == expected)
            .values(
                status=stuck_status,
                stuck_at=utc_now(),
                timeout_reason=reason,
                escalation_required=True,
            )
        )
        return result.rowcount == 1

    def _row_to_model(self, row: JobTable) -> Job:
        return Job(
            job_id=row.job_id,
            property_name=row.property_name,
            status=row.status,
            assigned_staff_id=row.assigned_staff_id,
            accepted_at=row.accepted_at,
            started_at=row.started_at,
            stuck_at=row.stuck_at,
            timeout_reason=row.timeout_reason,
            escalation_required=row.escalation_required,
            last_expired_offer=row.last_expired_offer,
        )


class AlertRepository:
    """Repository for operator alerts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        source: str,
        context: dict[str, Any] | None = None,
        requires_immediate_action: bool = False,
    ) -> Alert:
        row = AlertTable(
            alert_id=uuid4(),
            alert_type=alert_type,
            severity=severity,
            message=message,
            context=context or {},
            source=source,
            requires_immediate_action=requires_immediate_action,
            resolved=False,
            created_at=utc_now(),
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, alert_id: UUID) -> Alert | None:
        row = await self.session.get(AlertTable, alert_id)
        return self._row_to_model(row) if row else None

    async def list(
        self,
        resolved: bool | None = None,
        alert_type: AlertType | None = None,
        limit: int = 50,
    ) -> list[Alert]:
        query = select(AlertTable)
        if resolved is not None:
            query = query.where(AlertTable.resolved == resolved)
        if alert_type:
            query = query.where(AlertTable.alert_type == alert_type)
        query = query.order_by(AlertTable.created_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def resolve(self, alert_id: UUID, resolved_by: str | None = None) -> bool:
        result = await self.session.execute(
            update(AlertTable)
            .where(AlertTable.alert_id == alert_id, AlertTable.resolved.is_(False))
            .values(resolved=True, resolved_at=utc_now(), resolved_by=resolved_by)
        )
        return result.rowcount == 1

    def _row_to_model(self, row: AlertTable) -> Alert:
        return Alert(
            alert_id=row.alert_id,
            alert_type=row.alert_type,
            severity=row.severity,
            message=row.message,
            context=row.context or {},
            source=row.source,
            requires_immediate_action=row.requires_immediate_action,
            resolved=row.resolved,
            resolved_at=row.resolved_at,
            resolved_by=row.resolved_by,
            created_at=row.created_at,
        )


class NotificationRepository:
    """Repository for the in-app notification inbox."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_if_absent(self, payload: NotificationPayload) -> bool:
        """Insert a notification once per notification id."""
        existing = await self.session.get(NotificationTable, payload.notification_id)
        if existing is not None:
            return False
        self.session.add(
            NotificationTable(
                notification_id=payload.notification_id,
                recipient_id=payload.recipient_id,
                title=payload.title,
                message=payload.message,
                channels=[c.value for c in payload.channels],
                priority=payload.priority.value,
                related_task_id=payload.related_task_id,
                related_booking_id=payload.related_booking_id,
                read=False,
                created_at=utc_now(),
            )
        )
        await self.session.flush()
        return True

    async def list_for_recipient(self, recipient_id: str, limit: int = 50) -> list[dict[str, Any]]:
        result = await self.session.execute(
            select(NotificationTable)
            .where(NotificationTable.recipient_id == recipient_id)
            .order_by(NotificationTable.created_at.desc())
            .limit(limit)
        )
        return [
            {
                "notification_id": r.notification_id,
                "title": r.title,
                "message": r.message,
                "channels": r.channels,
                "priority": r.priority,
                "related_task_id": r.related_task_id,
                "related_booking_id": r.related_booking_id,
                "read": r.read,
                "created_at": r.created_at,
            }
            for r in result.scalars().all()
        ]


class StaffRepository:
    """Repository for the staff roster."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, staff_id: str) -> StaffMember | None:
        row = await self.session.get(StaffTable, staff_id)
        return self._row_to_model(row) if row else None

    async def list_available(self) -> list[StaffMember]:
        result = await self.session.execute(
            select(StaffTable)
            .where(StaffTable.status == StaffStatus.ACTIVE, StaffTable.available.is_(True))
            .order_by(StaffTable.name.asc())
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def upsert(
        self,
        staff_id: str,
        name: str,
        skills: list[str],
        email: str | None = None,
        status: StaffStatus = StaffStatus.ACTIVE,
        available: bool = True,
    ) -> StaffMember:
        row = await self.session.get(StaffTable, staff_id)
        if row is None:
            row = StaffTable(staff_id=staff_id)
            self.session.add(row)
        row.name = name
        row.email = email
        row.skills = list(skills)
        row.status = status
        row.available = available
        await self.session.flush()
        return self._row_to_model(row)

    def _row_to_model(self, row: StaffTable) -> StaffMember:
        return StaffMember(
            staff_id=row.staff_id,
            name=row.name,
            email=row.email,
            skills=list(row.skills or []),
        )
