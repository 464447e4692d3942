"""Turnover engine errors."""


class TurnoverError(Exception):
    """Base error for turnover operations."""

    def __init__(self, message: str, code: str = "TURNOVER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(TurnoverError):
    """Input or transition rejected before any write."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)


class InvalidStateTransition(ValidationError):
    """Invalid task state transition."""

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            f"Invalid transition from {current_status} to {requested_status}",
            "INVALID_STATE_TRANSITION",
        )
        self.current_status = current_status
        self.requested_status = requested_status


class DependencyNotMet(ValidationError):
    """A dependency task has not reached completed or approved."""

    def __init__(self, task_id: str, blocking: list[str]):
        super().__init__(
            f"Task {task_id} is blocked by unfinished dependencies: {', '.join(blocking)}",
            "DEPENDENCY_NOT_MET",
        )
        self.task_id = task_id
        self.blocking = blocking


class EvidenceRequired(ValidationError):
    """Completion evidence is missing."""

    def __init__(self, task_id: str, missing: list[str]):
        super().__init__(
            f"Task {task_id} requires completion evidence: {', '.join(missing)}",
            "EVIDENCE_REQUIRED",
        )
        self.task_id = task_id
        self.missing = missing


class NotFoundError(TurnoverError):
    """Referenced entity does not exist."""

    def __init__(self, message: str, code: str = "NOT_FOUND"):
        super().__init__(message, code)


class TaskNotFound(NotFoundError):
    """Task does not exist."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}", "TASK_NOT_FOUND")
        self.task_id = task_id


class BookingNotFound(NotFoundError):
    def __init__(self, booking_id: str):
        super().__init__(f"Booking not found: {booking_id}", "BOOKING_NOT_FOUND")
        self.booking_id = booking_id


class TimelineNotFound(NotFoundError):
    def __init__(self, booking_id: str):
        super().__init__(f"Timeline not found for booking: {booking_id}", "TIMELINE_NOT_FOUND")
        self.booking_id = booking_id


class StaffNotFound(NotFoundError):
    def __init__(self, staff_id: str):
        super().__init__(f"Staff member not found: {staff_id}", "STAFF_NOT_FOUND")
        self.staff_id = staff_id


class PropertyNotFound(NotFoundError):
    def __init__(self, property_id: str):
        super().__init__(f"Property not found: {property_id}", "PROPERTY_NOT_FOUND")
        self.property_id = property_id


class AlertNotFound(NotFoundError):
    def __init__(self, alert_id: str):
        super().__init__(f"Alert not found or already resolved: {alert_id}", "ALERT_NOT_FOUND")
        self.alert_id = alert_id


class TransientStoreError(TurnoverError):
    """Store unavailable; the operation can be retried."""

    def __init__(self, message: str = "Task store unavailable"):
        super().__init__(message, "TRANSIENT_STORE_ERROR")


class NotificationDeliveryError(TurnoverError):
    """Notification gateway call failed."""

    def __init__(self, notification_id: str, reason: str):
        super().__init__(
            f"Notification {notification_id} not delivered: {reason}",
            "NOTIFICATION_DELIVERY_FAILED",
        )
        self.notification_id = notification_id
        self.reason = reason


class MonitorFailure(TurnoverError):
    """A sweep run failed."""

    def __init__(self, sweep: str, failures: list[str]):
        super().__init__(
            f"{sweep} sweep failed: {'; '.join(failures)}",
            "MONITOR_FAILURE",
        )
        self.sweep = sweep
        self.failures = failures
