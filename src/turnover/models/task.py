"""Task model - unit of operational work in a turnover."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from turnover.models.enums import TaskPriority, TaskStatus, TaskType


class CompletionEvidence(BaseModel):
    """Evidence attached by staff when finishing a task."""

    photo_refs: list[str] = Field(default_factory=list)
    checklist_completed: bool = False
    notes: Optional[str] = None


class IssueFlags(BaseModel):
    issues_found: bool = False
    issue_description: Optional[str] = None
    resolution_required: bool = False


class Task(BaseModel):
    """Operational task tied to one booking and property."""

    # Identity
    task_id: UUID
    booking_id: str
    property_id: str
    property_name: Optional[str] = None
    guest_name: Optional[str] = None

    # Details
    task_type: TaskType
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING

    # Scheduling
    scheduled_at: datetime
    estimated_duration_minutes: int = 0

    # Assignment
    assigned_staff_id: Optional[str] = None
    assigned_staff_name: Optional[str] = None
    assigned_at: Optional[datetime] = None

    # Graph edges (task ids)
    depends_on: list[UUID] = Field(default_factory=list)
    triggers: list[UUID] = Field(default_factory=list)

    # Completion evidence and issues
    evidence: CompletionEvidence = Field(default_factory=CompletionEvidence)
    issues: IssueFlags = Field(default_factory=IssueFlags)
    source_task_id: Optional[UUID] = None

    # Timestamps
    created_at: datetime
    updated_at: datetime
    triggered_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    created_by: str = "OPERATIONS_AUTOMATION"

    def is_terminal(self) -> bool:
        """Check if task is in a terminal state."""
        return self.status.is_terminal()

    def can_transition_to(self, new_status: TaskStatus) -> bool:
        """Check if transition to new status is valid per state machine."""
        valid_transitions: dict[TaskStatus, set[TaskStatus]] = {
            TaskStatus.PENDING: {
                TaskStatus.ASSIGNED,
                TaskStatus.FAILED,
                TaskStatus.CANCELLED,
            },
            TaskStatus.ASSIGNED: {
                TaskStatus.IN_PROGRESS,
                TaskStatus.PENDING,  # Unassign
                TaskStatus.FAILED,
                TaskStatus.CANCELLED,
            },
            TaskStatus.IN_PROGRESS: {
                TaskStatus.COMPLETED,
                TaskStatus.FAILED,
                TaskStatus.CANCELLED,
            },
            TaskStatus.COMPLETED: {
                TaskStatus.APPROVED,
                TaskStatus.FAILED,
                TaskStatus.CANCELLED,
            },
            TaskStatus.APPROVED: set(),
            TaskStatus.FAILED: set(),
            TaskStatus.CANCELLED: set(),
        }
        allowed = valid_transitions.get(self.status, set())
        # Checkout is fired straight from pending by the checkout sweep
        if self.task_type == TaskType.CHECKOUT and self.status in {
            TaskStatus.PENDING,
            TaskStatus.ASSIGNED,
        }:
            allowed = allowed | {TaskStatus.COMPLETED}
        return new_status in allowed


class TaskChange(BaseModel):
    """A committed task status change, as seen by observers."""

    task_id: UUID
    booking_id: str
    task_type: TaskType
    previous_status: Optional[TaskStatus] = None
    status: TaskStatus
