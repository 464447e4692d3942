"""Turnover engine data models."""

from turnover.models.alert import Alert, NotificationPayload, StaffMember
from turnover.models.booking import Booking, BookingConfirmed, Property, Timeline
from turnover.models.enums import (
    AlertSeverity,
    AlertType,
    BookingStatus,
    IssueSeverity,
    JobStatus,
    NotificationChannel,
    OfferStatus,
    StaffStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    TimelinePhase,
)
from turnover.models.inspection import InspectionIssue, InspectionResult
from turnover.models.offer import Job, Offer
from turnover.models.task import CompletionEvidence, IssueFlags, Task, TaskChange

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertType",
    "Booking",
    "BookingConfirmed",
    "BookingStatus",
    "CompletionEvidence",
    "InspectionIssue",
    "InspectionResult",
    "IssueFlags",
    "IssueSeverity",
    "Job",
    "JobStatus",
    "NotificationChannel",
    "NotificationPayload",
    "Offer",
    "OfferStatus",
    "Property",
    "StaffMember",
    "StaffStatus",
    "Task",
    "TaskChange",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "Timeline",
    "TimelinePhase",
]
