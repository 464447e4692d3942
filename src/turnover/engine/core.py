"""Turnover core engine - task lifecycle and cascades."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional
from uuid import UUID, uuid4, uuid5

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from turnover.config import settings
from turnover.db.repositories import (
    AlertRepository,
    BookingRepository,
    PropertyRepository,
    TaskRepository,
    TimelineRepository,
)
from turnover.engine.errors import (
    AlertNotFound,
    DependencyNotMet,
    EvidenceRequired,
    InvalidStateTransition,
    PropertyNotFound,
    StaffNotFound,
    TaskNotFound,
    TimelineNotFound,
    TransientStoreError,
    ValidationError,
)
from turnover.engine.timeline import (
    INSPECTION_AUTOMATION,
    TURNOVER_NAMESPACE,
    completion_percentage,
    derive_phase,
    generate_turnover_plan,
)
from turnover.integrations.notifications import NotificationGateway, get_notification_gateway
from turnover.integrations.staff_directory import (
    SqlStaffDirectory,
    StaffDirectory,
    required_skills,
)
from turnover.models import (
    Alert,
    AlertSeverity,
    AlertType,
    BookingConfirmed,
    CompletionEvidence,
    InspectionResult,
    IssueFlags,
    IssueSeverity,
    NotificationPayload,
    Property,
    StaffMember,
    Task,
    TaskChange,
    TaskPriority,
    TaskStatus,
    TaskType,
    Timeline,
    TimelinePhase,
)
from turnover.monitor.feed import record_change
from turnover.observability.metrics import metrics
from turnover.utils.time import utc_now

logger = logging.getLogger(__name__)

AUTOMATIC_CHECKOUT = "AUTOMATIC_CHECKOUT"

# Transitions that move work forward and therefore need dependencies met
FORWARD_STATES = {
    TaskStatus.ASSIGNED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.APPROVED,
}

STATUS_TIMESTAMPS = {
    TaskStatus.IN_PROGRESS: "started_at",
    TaskStatus.COMPLETED: "completed_at",
    TaskStatus.APPROVED: "approved_at",
    TaskStatus.FAILED: "failed_at",
    TaskStatus.CANCELLED: "cancelled_at",
}

ACTIVATION_TITLES = {
    TaskType.CLEANING: "Cleaning Task Assigned",
    TaskType.INSPECTION: "Inspection Task Ready",
    TaskType.MAINTENANCE: "Maintenance Task Assigned",
}


class InspectionOutcome(BaseModel):
    """Result of applying one inspection submission."""

    task: Task
    alert: Alert
    maintenance_tasks: list[Task] = []
    property_blocked: bool = False


class TurnoverEngine:
    """Core engine implementing turnover operations."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[NotificationGateway] = None,
        staff: Optional[StaffDirectory] = None,
    ):
        self.session = session
        self.tasks = TaskRepository(session)
        self.bookings = BookingRepository(session)
        self.properties = PropertyRepository(session)
        self.timelines = TimelineRepository(session)
        self.alerts = AlertRepository(session)
        self.notifier = notifier or get_notification_gateway()
        self.staff = staff or SqlStaffDirectory(session)

    @asynccontextmanager
    async def _store_guard(self) -> AsyncIterator[None]:
        """Surface connectivity failures as retryable store errors."""
        try:
            yield
        except (OperationalError, InterfaceError) as e:
            metrics.inc_counter("store.transient_errors")
            raise TransientStoreError(f"Task store unavailable: {e}") from e

    # =========================================================================
    # Timeline generation
    # =========================================================================

    async def create_timeline(
        self,
        event: BookingConfirmed,
        now: Optional[datetime] = None,
    ) -> tuple[Timeline, bool]:
        """
        Generate the task graph and timeline for a confirmed booking.

        Returns (timeline, created). A booking that already has a timeline
        gets the existing one back and nothing is written.
        """
        now = now or utc_now()
        plan = generate_turnover_plan(event, now)

        async with self._store_guard():
            existing = await self.timelines.get_by_booking(event.booking_id)
            if existing:
                logger.info("Timeline already exists for booking %s", event.booking_id)
                return existing, False

            try:
                async with self.session.begin_nested():  # SAVEPOINT
                    await self.properties.upsert(
                        event.property_id, event.property_name, event.property_address
                    )
                    await self.bookings.upsert_confirmed(event)
                    await self.tasks.create_many(plan.tasks)
                    await self.timelines.create(plan.timeline)
            except IntegrityError:
                # Concurrent generation for the same booking won the insert
                existing = await self.timelines.get_by_booking(event.booking_id)
                if existing is None:
                    raise
                return existing, False

        metrics.inc_counter("timelines.created")
        metrics.inc_counter("tasks.created", len(plan.tasks))
        logger.info(
            "Generated %d tasks for booking %s (property %s)",
            len(plan.tasks),
            event.booking_id,
            event.property_id,
        )
        return plan.timeline, True

    async def get_timeline(self, booking_id: str) -> tuple[Timeline, list[Task]]:
        timeline = await self.timelines.get_by_booking(booking_id)
        if not timeline:
            raise TimelineNotFound(booking_id)
        return timeline, await self.tasks.list_for_booking(booking_id)

    async def refresh_timeline(
        self,
        booking_id: str,
        now: Optional[datetime] = None,
    ) -> Timeline:
        """Re-derive phase and completion from current task rows."""
        now = now or utc_now()
        timeline = await self.timelines.get_by_booking(booking_id)
        if not timeline:
            raise TimelineNotFound(booking_id)
        if timeline.is_ready():
            return timeline

        tasks = await self.tasks.list_for_booking(booking_id)
        phase = derive_phase(timeline, tasks, now)
        async with self._store_guard():
            if phase == TimelinePhase.READY:
                await self.timelines.mark_ready(booking_id)
            else:
                await self.timelines.update_aggregate(
                    booking_id, phase, completion_percentage(tasks)
                )
        return await self.timelines.get_by_booking(booking_id)

    # =========================================================================
    # Task queries
    # =========================================================================

    async def get_task(self, task_id: UUID) -> Task:
        task = await self.tasks.get(task_id)
        if not task:
            raise TaskNotFound(str(task_id))
        return task

    async def list_tasks(
        self,
        booking_id: str | None = None,
        property_id: str | None = None,
        status: TaskStatus | None = None,
        task_type: TaskType | None = None,
        scheduled_from: datetime | None = None,
        scheduled_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[Task]:
        limit = min(limit or settings.default_list_limit, settings.max_list_limit)
        return await self.tasks.list(
            booking_id=booking_id,
            property_id=property_id,
            status=status,
            task_type=task_type,
            scheduled_from=scheduled_from,
            scheduled_to=scheduled_to,
            limit=limit,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def transition(
        self,
        task_id: UUID,
        new_status: TaskStatus,
        staff_id: Optional[str] = None,
        evidence: Optional[CompletionEvidence] = None,
    ) -> Task:
        """
        Apply one staff action to a task.

        Raises ValidationError subclasses before any write when the
        transition is illegal, and InvalidStateTransition when another
        writer changed the task first.
        """
        task = await self.get_task(task_id)

        if new_status == TaskStatus.ASSIGNED and task.status == TaskStatus.PENDING:
            return await self.assign(task_id, staff_id)

        if not task.can_transition_to(new_status):
            raise InvalidStateTransition(task.status.value, new_status.value)
        if task.task_type == TaskType.INSPECTION and new_status == TaskStatus.APPROVED:
            raise ValidationError(
                "Inspection approval requires an inspection submission",
                "INSPECTION_RESULT_REQUIRED",
            )

        await self._check_dependencies(task, new_status)

        values: dict[str, Any] = {}
        if evidence is not None:
            values.update(
                photo_refs=list(evidence.photo_refs),
                checklist_completed=evidence.checklist_completed,
                completion_notes=evidence.notes,
            )
        if task.task_type == TaskType.CLEANING and new_status == TaskStatus.COMPLETED:
            self._check_cleaning_evidence(task, evidence or task.evidence)
        if new_status == TaskStatus.PENDING:
            values.update(assigned_staff_id=None, assigned_staff_name=None, assigned_at=None)

        applied, activated = await self._apply(task, new_status, values, actor=staff_id)
        if not applied:
            current = await self.get_task(task_id)
            raise InvalidStateTransition(current.status.value, new_status.value)

        await self._notify_activated(activated)
        return await self.get_task(task_id)

    async def complete_checkout(
        self,
        task_id: UUID,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Fire a checkout task at its scheduled time.

        Returns False without writing when the task is no longer pending or
        assigned, so repeated or overlapping calls are harmless.
        """
        now = now or utc_now()
        task = await self.get_task(task_id)
        if task.task_type != TaskType.CHECKOUT:
            raise ValidationError(f"Task {task_id} is not a checkout task")
        if task.status not in {TaskStatus.PENDING, TaskStatus.ASSIGNED}:
            logger.debug("Checkout %s already %s, skipping", task_id, task.status.value)
            return False

        applied, activated = await self._apply(
            task,
            TaskStatus.COMPLETED,
            {
                "completed_at": now,
                "completion_notes": "Automatic checkout triggered at scheduled time",
            },
            actor=AUTOMATIC_CHECKOUT,
        )
        if not applied:
            return False

        metrics.inc_counter("checkouts.completed")
        await self._notify_activated(activated)
        return True

    async def assign(self, task_id: UUID, staff_id: Optional[str] = None) -> Task:
        """
        Assign a task to staff, explicitly or by skill match.

        A pending task with no matching staff is left pending; that is not
        an error. An assigned task without an assignee gets one filled in.
        """
        task = await self.get_task(task_id)
        if task.status not in {TaskStatus.PENDING, TaskStatus.ASSIGNED}:
            raise InvalidStateTransition(task.status.value, TaskStatus.ASSIGNED.value)
        await self._check_dependencies(task, TaskStatus.ASSIGNED)
        if task.status == TaskStatus.ASSIGNED and task.assigned_staff_id and not staff_id:
            return task

        member = await self._resolve_staff(task, staff_id)
        if member is None:
            logger.info(
                "No available staff for %s task %s, leaving %s",
                task.task_type.value,
                task_id,
                task.status.value,
            )
            metrics.inc_counter("assignments.no_match")
            return task

        now = utc_now()
        async with self._store_guard():
            async with self.session.begin_nested():  # SAVEPOINT
                if task.status == TaskStatus.PENDING:
                    applied = await self.tasks.transition(
                        task.task_id,
                        TaskStatus.PENDING,
                        TaskStatus.ASSIGNED,
                        {
                            "assigned_staff_id": member.staff_id,
                            "assigned_staff_name": member.name,
                            "assigned_at": now,
                        },
                    )
                else:
                    applied = await self.tasks.assign_staff(
                        task.task_id, TaskStatus.ASSIGNED, member.staff_id, member.name
                    )
        if not applied:
            current = await self.get_task(task_id)
            raise InvalidStateTransition(current.status.value, TaskStatus.ASSIGNED.value)

        if task.status == TaskStatus.PENDING:
            self._record(task, TaskStatus.ASSIGNED)
        metrics.inc_counter("assignments.made")

        assigned = await self.get_task(task_id)
        await self._notify_assignee(assigned, title="Task Assigned")
        return assigned

    async def auto_assign_unstaffed(self, task_id: UUID) -> Optional[StaffMember]:
        """Fill in an assignee for a task that is underway without one."""
        task = await self.get_task(task_id)
        if task.assigned_staff_id or task.status.is_terminal():
            return None
        member = await self.staff.find_available(required_skills(task.task_type))
        if member is None:
            logger.info("No available staff for unstaffed task %s", task_id)
            return None

        async with self._store_guard():
            applied = await self.tasks.assign_staff(
                task.task_id,
                task.status,
                member.staff_id,
                member.name,
                only_if_unassigned=True,
            )
        if not applied:
            return None

        logger.info("Auto-assigned %s task %s to %s", task.task_type.value, task_id, member.staff_id)
        assigned = await self.get_task(task_id)
        await self._notify_assignee(assigned, title=ACTIVATION_TITLES.get(task.task_type, "Task Assigned"))
        return member

    # =========================================================================
    # Inspection
    # =========================================================================

    async def submit_inspection(
        self,
        task_id: UUID,
        result: InspectionResult,
    ) -> InspectionOutcome:
        """
        Apply an inspection outcome.

        Passed: task approved, booking and timeline ready, one
        timeline-complete alert. Failed: task failed, one maintenance task
        per issue, property blocked if any issue asks for it, one
        issue-found alert.
        """
        task = await self.get_task(task_id)
        if task.task_type != TaskType.INSPECTION:
            raise ValidationError(f"Task {task_id} is not an inspection task")

        target = TaskStatus.APPROVED if result.passed else TaskStatus.FAILED
        if task.status not in {TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}:
            raise InvalidStateTransition(task.status.value, target.value)
        if not result.passed and not result.issues_found:
            raise ValidationError("A failed inspection must report at least one issue")
        await self._check_dependencies(task, TaskStatus.COMPLETED)

        if result.passed:
            outcome = await self._pass_inspection(task, result)
        else:
            outcome = await self._fail_inspection(task, result)
        self._record(task, target)
        return outcome

    async def _pass_inspection(self, task: Task, result: InspectionResult) -> InspectionOutcome:
        now = utc_now()
        async with self._store_guard():
            async with self.session.begin_nested():  # SAVEPOINT
                applied = await self.tasks.transition(
                    task.task_id,
                    task.status,
                    TaskStatus.APPROVED,
                    {
                        "approved_at": now,
                        "completed_at": task.completed_at or now,
                        "completion_notes": result.approval_notes,
                    },
                )
                if not applied:
                    raise InvalidStateTransition(task.status.value, TaskStatus.APPROVED.value)
                await self.bookings.mark_ready(task.booking_id)
                await self.timelines.mark_ready(task.booking_id)
                alert = await self.alerts.create(
                    AlertType.TIMELINE_COMPLETE,
                    AlertSeverity.LOW,
                    f"Booking {task.booking_id} has completed all operational tasks "
                    "and is ready for the next guest",
                    source="inspection",
                    context={
                        "booking_id": task.booking_id,
                        "property_id": task.property_id,
                        "task_id": str(task.task_id),
                        "photos_reviewed": result.photos_reviewed,
                    },
                )

        metrics.inc_counter("inspections.passed")
        logger.info("Inspection %s passed, booking %s ready", task.task_id, task.booking_id)

        await self._notify(
            NotificationPayload(
                notification_id=self._notification_id(task.task_id, "timeline-complete", "management"),
                recipient_id=settings.management_recipient_id,
                title="Property Operational Cycle Complete",
                message=f"Booking {task.booking_id} is ready for the next guest",
                priority=TaskPriority.LOW,
                related_task_id=task.task_id,
                related_booking_id=task.booking_id,
            )
        )
        return InspectionOutcome(task=await self.get_task(task.task_id), alert=alert)

    async def _fail_inspection(self, task: Task, result: InspectionResult) -> InspectionOutcome:
        now = utc_now()
        issues = result.issues_found
        summary = "; ".join(issue.description for issue in issues)
        blocking = [issue.description for issue in issues if issue.requires_blocking]
        any_high = any(issue.severity == IssueSeverity.HIGH for issue in issues)

        maintenance = [
            Task(
                task_id=uuid4(),
                booking_id=task.booking_id,
                property_id=task.property_id,
                property_name=task.property_name,
                guest_name=task.guest_name,
                task_type=TaskType.MAINTENANCE,
                title=f"Maintenance: {issue.description}",
                description=f"Resolve issue found during inspection: {issue.description}",
                priority=issue.maintenance_priority(),
                scheduled_at=now,
                estimated_duration_minutes=issue.maintenance_duration_minutes(),
                issues=IssueFlags(
                    issues_found=True,
                    issue_description=issue.description,
                    resolution_required=True,
                ),
                source_task_id=task.task_id,
                created_at=now,
                updated_at=now,
                created_by=INSPECTION_AUTOMATION,
            )
            for issue in issues
        ]

        async with self._store_guard():
            async with self.session.begin_nested():  # SAVEPOINT
                applied = await self.tasks.transition(
                    task.task_id,
                    task.status,
                    TaskStatus.FAILED,
                    {
                        "failed_at": now,
                        "issues_found": True,
                        "issue_description": summary,
                        "resolution_required": True,
                        "completion_notes": result.approval_notes,
                    },
                )
                if not applied:
                    raise InvalidStateTransition(task.status.value, TaskStatus.FAILED.value)
                await self.tasks.create_many(maintenance)
                for spawned in maintenance:
                    await self.timelines.append_task(task.booking_id, spawned.task_id)
                if blocking:
                    await self.properties.upsert(task.property_id, task.property_name)
                    await self.properties.set_blocked(
                        task.property_id, True, reason="; ".join(blocking)
                    )
                alert = await self.alerts.create(
                    AlertType.ISSUE_FOUND,
                    AlertSeverity.CRITICAL if any_high else AlertSeverity.HIGH,
                    f"Inspection found {len(issues)} issue(s) at "
                    f"{task.property_name or task.property_id}: {summary}",
                    source="inspection",
                    context={
                        "booking_id": task.booking_id,
                        "property_id": task.property_id,
                        "task_id": str(task.task_id),
                        "issues": [issue.model_dump(mode="json") for issue in issues],
                        "maintenance_task_ids": [str(t.task_id) for t in maintenance],
                        "property_blocked": bool(blocking),
                    },
                    requires_immediate_action=any_high,
                )

        metrics.inc_counter("inspections.failed")
        metrics.inc_counter("tasks.created", len(maintenance))
        logger.warning(
            "Inspection %s failed with %d issue(s); spawned maintenance for booking %s",
            task.task_id,
            len(issues),
            task.booking_id,
        )

        await self._notify(
            NotificationPayload(
                notification_id=self._notification_id(task.task_id, "issue-found", "management"),
                recipient_id=settings.management_recipient_id,
                title="Property Issue Requires Attention",
                message=f"Issue found at {task.property_name or task.property_id}: {summary}",
                priority=TaskPriority.URGENT if any_high else TaskPriority.HIGH,
                related_task_id=task.task_id,
                related_booking_id=task.booking_id,
            )
        )
        return InspectionOutcome(
            task=await self.get_task(task.task_id),
            alert=alert,
            maintenance_tasks=maintenance,
            property_blocked=bool(blocking),
        )

    # =========================================================================
    # Properties and alerts
    # =========================================================================

    async def unblock_property(self, property_id: str) -> Property:
        async with self._store_guard():
            if not await self.properties.set_blocked(property_id, False):
                raise PropertyNotFound(property_id)
        logger.info("Property %s unblocked", property_id)
        return await self.properties.get(property_id)

    async def list_alerts(
        self,
        resolved: Optional[bool] = None,
        alert_type: Optional[AlertType] = None,
        limit: Optional[int] = None,
    ) -> list[Alert]:
        limit = min(limit or settings.default_list_limit, settings.max_list_limit)
        return await self.alerts.list(resolved=resolved, alert_type=alert_type, limit=limit)

    async def resolve_alert(self, alert_id: UUID, resolved_by: Optional[str] = None) -> Alert:
        async with self._store_guard():
            if not await self.alerts.resolve(alert_id, resolved_by):
                raise AlertNotFound(str(alert_id))
        return await self.alerts.get(alert_id)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _apply(
        self,
        task: Task,
        new_status: TaskStatus,
        values: dict[str, Any],
        actor: Optional[str] = None,
    ) -> tuple[bool, list[Task]]:
        """
        Write a transition and its side effects in one savepoint.

        Returns (applied, newly activated downstream tasks). Nothing is
        written when the task left its read status in the meantime.
        """
        now = utc_now()
        values = dict(values)
        stamp = STATUS_TIMESTAMPS.get(new_status)
        if stamp:
            values.setdefault(stamp, now)

        activated: list[Task] = []
        async with self._store_guard():
            async with self.session.begin_nested():  # SAVEPOINT
                applied = await self.tasks.transition(task.task_id, task.status, new_status, values)
                if not applied:
                    return False, []

                if task.task_type == TaskType.CHECKOUT and new_status == TaskStatus.COMPLETED:
                    await self.bookings.mark_checked_out(
                        task.booking_id, actor or AUTOMATIC_CHECKOUT
                    )

                # Cancellation and failure never cascade
                if new_status.is_success() and task.triggers:
                    activated = await self._cascade(task, now)

        self._record(task, new_status)
        for downstream in activated:
            self._record(downstream, TaskStatus.ASSIGNED, previous=TaskStatus.PENDING)

        metrics.inc_counter(f"tasks.transition.{new_status.value}")
        logger.info(
            "Task %s (%s) %s -> %s",
            task.task_id,
            task.task_type.value,
            task.status.value,
            new_status.value,
        )
        return True, activated

    async def _cascade(self, source: Task, now: datetime) -> list[Task]:
        """Activate pending downstream tasks whose dependencies are now met."""
        activated = []
        downstream = await self.tasks.get_many(source.triggers)
        for task_id in source.triggers:
            target = downstream.get(task_id)
            if target is None or target.status != TaskStatus.PENDING:
                continue
            if await self._unmet_dependencies(target):
                continue

            values: dict[str, Any] = {"triggered_at": now}
            if not target.assigned_staff_id:
                member = await self.staff.find_available(required_skills(target.task_type))
                if member:
                    values.update(
                        assigned_staff_id=member.staff_id,
                        assigned_staff_name=member.name,
                        assigned_at=now,
                    )

            # Conditional on pending, so a replayed cascade activates nothing
            if await self.tasks.transition(target.task_id, TaskStatus.PENDING, TaskStatus.ASSIGNED, values):
                activated.append(
                    target.model_copy(
                        update={
                            "status": TaskStatus.ASSIGNED,
                            "triggered_at": now,
                            "assigned_staff_id": values.get("assigned_staff_id", target.assigned_staff_id),
                            "assigned_staff_name": values.get("assigned_staff_name", target.assigned_staff_name),
                        }
                    )
                )
        return activated

    async def _unmet_dependencies(self, task: Task) -> list[str]:
        if not task.depends_on:
            return []
        found = await self.tasks.get_many(task.depends_on)
        return [
            str(dep_id)
            for dep_id in task.depends_on
            if dep_id not in found or not found[dep_id].status.is_success()
        ]

    async def _check_dependencies(self, task: Task, new_status: TaskStatus) -> None:
        if new_status not in FORWARD_STATES:
            return
        if task.status not in {TaskStatus.PENDING, TaskStatus.ASSIGNED}:
            return
        blocking = await self._unmet_dependencies(task)
        if blocking:
            raise DependencyNotMet(str(task.task_id), blocking)

    def _check_cleaning_evidence(self, task: Task, evidence: CompletionEvidence) -> None:
        missing = []
        if not evidence.photo_refs:
            missing.append("photo_refs")
        if not evidence.checklist_completed:
            missing.append("checklist_completed")
        if missing:
            raise EvidenceRequired(str(task.task_id), missing)

    async def _resolve_staff(self, task: Task, staff_id: Optional[str]) -> Optional[StaffMember]:
        if staff_id:
            member = await self.staff.get(staff_id)
            if not member:
                raise StaffNotFound(staff_id)
            return member
        return await self.staff.find_available(required_skills(task.task_type))

    def _record(
        self,
        task: Task,
        status: TaskStatus,
        previous: Optional[TaskStatus] = None,
    ) -> None:
        record_change(
            self.session,
            TaskChange(
                task_id=task.task_id,
                booking_id=task.booking_id,
                task_type=task.task_type,
                previous_status=previous or task.status,
                status=status,
            ),
        )

    @staticmethod
    def _notification_id(task_id: UUID, event: str, recipient_id: str) -> UUID:
        """Same task, event and recipient always yield the same id."""
        return uuid5(TURNOVER_NAMESPACE, f"notification:{task_id}:{event}:{recipient_id}")

    async def _notify_activated(self, activated: list[Task]) -> None:
        for task in activated:
            await self._notify_assignee(
                task,
                title=ACTIVATION_TITLES.get(task.task_type, f"{task.title} Ready"),
                event="activated",
            )

    async def _notify_assignee(self, task: Task, title: str, event: str = "assigned") -> None:
        if not task.assigned_staff_id:
            logger.info("Task %s has no assignee, nobody to notify", task.task_id)
            return
        await self._notify(
            NotificationPayload(
                notification_id=self._notification_id(task.task_id, event, task.assigned_staff_id),
                recipient_id=task.assigned_staff_id,
                title=title,
                message=f"{task.title} at {task.property_name or task.property_id} "
                f"is scheduled for {task.scheduled_at.isoformat()}",
                priority=task.priority,
                related_task_id=task.task_id,
                related_booking_id=task.booking_id,
            )
        )

    async def _notify(self, payload: NotificationPayload) -> None:
        """Best-effort delivery; failures are logged and counted only."""
        try:
            await self.notifier.send(payload, session=self.session)
        except Exception as e:
            metrics.inc_counter("notifications.failed")
            logger.warning(
                "Notification %s to %s failed: %s",
                payload.notification_id,
                payload.recipient_id,
                e,
                exc_info=True,
            )
            return
        metrics.inc_counter("notifications.sent")
