"""Turnover engine enumerations."""

from enum import Enum


class TaskStatus(str, Enum):
    """Operational task lifecycle status."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    APPROVED = "approved"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal_states(cls) -> set["TaskStatus"]:
        """Return terminal states."""
        return {cls.APPROVED, cls.FAILED, cls.CANCELLED}

    @classmethod
    def success_states(cls) -> set["TaskStatus"]:
        """States that satisfy a dependency edge."""
        return {cls.COMPLETED, cls.APPROVED}

    def is_terminal(self) -> bool:
        """Check if status is terminal."""
        return self in self.terminal_states()

    def is_success(self) -> bool:
        return self in self.success_states()


class TaskType(str, Enum):
    """Kinds of operational work in a turnover."""

    PRE_ARRIVAL_PREP = "pre_arrival_prep"
    CHECKIN_INFORMATIONAL = "checkin_informational"
    CHECKOUT = "checkout"
    CLEANING = "cleaning"
    INSPECTION = "inspection"
    MAINTENANCE = "maintenance"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TimelinePhase(str, Enum):
    """Turnover phase of a booking timeline."""

    PRE_ARRIVAL = "pre_arrival"
    OCCUPIED = "occupied"
    CHECKOUT = "checkout"
    CLEANING = "cleaning"
    INSPECTION = "inspection"
    READY = "ready"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CHECKED_OUT = "checked_out"
    READY = "ready"


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OfferStatus(str, Enum):
    """Staff assignment offer status."""

    SENT = "sent"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class JobStatus(str, Enum):
    """Status of a staff job owning offers."""

    PENDING = "pending"
    OFFERED = "offered"
    OFFER_EXPIRED = "offer_expired"
    ACCEPTED = "accepted"
    STARTED = "started"
    COMPLETED = "completed"
    STUCK_ACCEPTED = "stuck_accepted"
    STUCK_STARTED = "stuck_started"


class AlertType(str, Enum):
    """Operator-facing alert kinds."""

    TIMEOUT_MONITOR_FAILURE = "timeout-monitor-failure"
    STUCK_JOB_ALERT = "stuck-job-alert"
    ISSUE_FOUND = "issue-found"
    TIMELINE_COMPLETE = "timeline-complete"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationChannel(str, Enum):
    IN_APP = "in-app"
    PUSH = "push"
    EMAIL = "email"


class StaffStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
