"""API request/response schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from turnover.models import (
    Alert,
    AlertSeverity,
    AlertType,
    BookingConfirmed,
    CompletionEvidence,
    InspectionIssue,
    InspectionResult,
    IssueSeverity,
    Property,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
    Timeline,
    TimelinePhase,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Inputs
# ============================================================================


class BookingConfirmedRequest(CamelModel):
    """Booking-confirmed event."""

    booking_id: str = Field(..., min_length=1)
    property_id: str = Field(..., min_length=1)
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    guest_name: Optional[str] = None
    check_in_date: datetime
    check_out_date: datetime

    def to_event(self) -> BookingConfirmed:
        return BookingConfirmed(
            booking_id=self.booking_id,
            property_id=self.property_id,
            property_name=self.property_name,
            property_address=self.property_address,
            guest_name=self.guest_name,
            check_in=self.check_in_date,
            check_out=self.check_out_date,
        )


class CompletionEvidenceSchema(CamelModel):
    photo_refs: list[str] = Field(default_factory=list)
    checklist_completed: bool = False
    notes: Optional[str] = None

    def to_model(self) -> CompletionEvidence:
        return CompletionEvidence(
            photo_refs=self.photo_refs,
            checklist_completed=self.checklist_completed,
            notes=self.notes,
        )


class TransitionRequest(CamelModel):
    """Staff task action."""

    new_status: TaskStatus
    staff_id: Optional[str] = None
    completion_evidence: Optional[CompletionEvidenceSchema] = None


class AssignRequest(CamelModel):
    staff_id: Optional[str] = Field(None, description="Explicit staff member; skill match when omitted")


class InspectionIssueSchema(CamelModel):
    description: str = Field(..., min_length=1)
    severity: IssueSeverity = IssueSeverity.MEDIUM
    requires_blocking: bool = False


class InspectionRequest(CamelModel):
    """Inspection submission."""

    passed: bool
    issues_found: list[InspectionIssueSchema] = Field(default_factory=list)
    approval_notes: Optional[str] = None
    photos_reviewed: bool = False

    def to_result(self) -> InspectionResult:
        return InspectionResult(
            passed=self.passed,
            issues_found=[
                InspectionIssue(
                    description=issue.description,
                    severity=issue.severity,
                    requires_blocking=issue.requires_blocking,
                )
                for issue in self.issues_found
            ],
            approval_notes=self.approval_notes,
            photos_reviewed=self.photos_reviewed,
        )


class ResolveAlertRequest(CamelModel):
    resolved_by: Optional[str] = None


# ============================================================================
# Outputs
# ============================================================================


class TaskResponse(CamelModel):
    """Task response."""

    task_id: UUID
    booking_id: str
    property_id: str
    property_name: Optional[str] = None
    guest_name: Optional[str] = None
    task_type: TaskType
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    scheduled_at: datetime
    estimated_duration_minutes: int
    assigned_staff_id: Optional[str] = None
    assigned_staff_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    depends_on: list[UUID]
    triggers: list[UUID]
    photo_refs: list[str]
    checklist_completed: bool
    completion_notes: Optional[str] = None
    issues_found: bool
    issue_description: Optional[str] = None
    resolution_required: bool
    source_task_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    triggered_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_by: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        data = task.model_dump(exclude={"evidence", "issues"})
        return cls(
            **data,
            photo_refs=task.evidence.photo_refs,
            checklist_completed=task.evidence.checklist_completed,
            completion_notes=task.evidence.notes,
            issues_found=task.issues.issues_found,
            issue_description=task.issues.issue_description,
            resolution_required=task.issues.resolution_required,
        )


class ListTasksResponse(CamelModel):
    tasks: list[TaskResponse]


class TimelineResponse(CamelModel):
    """Timeline with its tasks, ordered by scheduled time."""

    timeline_id: UUID
    booking_id: str
    property_id: str
    check_in: datetime
    check_out: datetime
    current_phase: TimelinePhase
    completion_percentage: int
    estimated_ready_at: Optional[datetime] = None
    actual_ready_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tasks: list[TaskResponse] = Field(default_factory=list)

    @classmethod
    def from_timeline(cls, timeline: Timeline, tasks: list[Task]) -> "TimelineResponse":
        return cls(
            **timeline.model_dump(exclude={"task_ids", "created_at", "updated_at"}),
            tasks=[TaskResponse.from_task(t) for t in tasks],
        )


class BookingConfirmedResponse(CamelModel):
    created: bool
    timeline: TimelineResponse


class AlertResponse(CamelModel):
    alert_id: UUID
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    context: dict[str, Any]
    source: str
    requires_immediate_action: bool
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertResponse":
        return cls(**alert.model_dump())


class ListAlertsResponse(CamelModel):
    alerts: list[AlertResponse]


class InspectionResponse(CamelModel):
    task: TaskResponse
    alert: AlertResponse
    maintenance_tasks: list[TaskResponse]
    property_blocked: bool


class PropertyResponse(CamelModel):
    property_id: str
    name: Optional[str] = None
    address: Optional[str] = None
    blocked: bool
    blocked_reason: Optional[str] = None
    blocked_at: Optional[datetime] = None

    @classmethod
    def from_property(cls, prop: Property) -> "PropertyResponse":
        return cls(**prop.model_dump(exclude={"updated_at"}))


class TimeoutSweepResponse(CamelModel):
    expired_offers: int
    stuck_accepted_jobs: int
    stuck_started_jobs: int
    alerts_raised: int
    failures: list[str]


class CheckoutSweepResponse(CamelModel):
    due: int
    completed: int
    skipped: int
    failed: int


class HealthResponse(CamelModel):
    status: str
    version: str
