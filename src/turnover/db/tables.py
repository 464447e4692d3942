"""SQLAlchemy table definitions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Enum,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from turnover.db.base import Base
from turnover.db.types import JSONType, UTCDateTime
from turnover.models.enums import (
    AlertSeverity,
    AlertType,
    BookingStatus,
    JobStatus,
    OfferStatus,
    StaffStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    TimelinePhase,
)


def _enum(enum_cls) -> Enum:
    """Persist enum values (not member names)."""
    return Enum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        values_callable=lambda members: [m.value for m in members],
    )


class PropertyTable(Base):
    """Properties mirror - owned by the property system."""

    __tablename__ = "properties"

    property_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Only field family written by the engine
    blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    blocked_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class BookingTable(Base):
    """Bookings mirror - owned by the booking system."""

    __tablename__ = "bookings"

    booking_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    property_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    property_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    check_in: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    check_out: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED
    )
    checked_out_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    checked_out_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ready_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    inspection_passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class TaskTable(Base):
    """Operational tasks - never deleted."""

    __tablename__ = "operational_tasks"

    task_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(255), nullable=False)
    property_id: Mapped[str] = mapped_column(String(255), nullable=False)
    property_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    task_type: Mapped[TaskType] = mapped_column(_enum(TaskType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[TaskPriority] = mapped_column(
        _enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM
    )
    status: Mapped[TaskStatus] = mapped_column(
        _enum(TaskStatus), nullable=False, default=TaskStatus.PENDING
    )

    scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    estimated_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    assigned_staff_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_staff_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Edges as lists of task id strings
    depends_on: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    triggers: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Evidence
    photo_refs: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    checklist_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Issues
    issues_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    issue_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source_task_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    triggered_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        Index("idx_tasks_booking", "booking_id", "scheduled_at"),
        Index("idx_tasks_property", "property_id", "scheduled_at"),
        # Checkout sweep: type + status + due time
        Index("idx_tasks_due", "task_type", "status", "scheduled_at"),
        Index("idx_tasks_status", "status", "scheduled_at"),
    )


class TimelineTable(Base):
    """Per-booking turnover aggregates."""

    __tablename__ = "booking_timelines"

    timeline_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    property_id: Mapped[str] = mapped_column(String(255), nullable=False)
    check_in: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    check_out: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    task_ids: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    current_phase: Mapped[TimelinePhase] = mapped_column(
        _enum(TimelinePhase), nullable=False, default=TimelinePhase.PRE_ARRIVAL
    )
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_ready_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    actual_ready_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (Index("idx_timelines_phase", "current_phase"),)


class JobTable(Base):
    """Staff jobs that receive assignment offers."""

    __tablename__ = "jobs"

    job_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    property_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[JobStatus] = mapped_column(
        _enum(JobStatus), nullable=False, default=JobStatus.PENDING
    )
    assigned_staff_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    stuck_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    timeout_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    escalation_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_expired_offer: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        Index("idx_jobs_accepted", "status", "accepted_at"),
        Index("idx_jobs_started", "status", "started_at"),
    )


class OfferTable(Base):
    """Job offers sent to individual staff members."""

    __tablename__ = "job_offers"

    offer_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    job_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    staff_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[OfferStatus] = mapped_column(
        _enum(OfferStatus), nullable=False, default=OfferStatus.SENT
    )
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    timeout_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (Index("idx_offers_status_sent", "status", "sent_at"),)


class AlertTable(Base):
    """Operator alerts."""

    __tablename__ = "admin_alerts"

    alert_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    alert_type: Mapped[AlertType] = mapped_column(_enum(AlertType), nullable=False)
    severity: Mapped[AlertSeverity] = mapped_column(_enum(AlertSeverity), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    requires_immediate_action: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("idx_alerts_open", "resolved", "created_at"),
        Index("idx_alerts_type", "alert_type", "created_at"),
    )


class NotificationTable(Base):
    """In-app notification inbox."""

    __tablename__ = "notifications"

    notification_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    recipient_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    channels: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    related_task_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    related_booking_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (Index("idx_notifications_recipient", "recipient_id", "created_at"),)


class StaffTable(Base):
    """Staff roster mirror used for auto-assignment."""

    __tablename__ = "staff_accounts"

    staff_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    skills: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[StaffStatus] = mapped_column(
        _enum(StaffStatus), nullable=False, default=StaffStatus.ACTIVE
    )
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
