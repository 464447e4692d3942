"""Turnover engine errors. TurnoverEngine lives in turnover.engine.core."""

from turnover.engine.errors import (
    AlertNotFound,
    BookingNotFound,
    DependencyNotMet,
    EvidenceRequired,
    InvalidStateTransition,
    MonitorFailure,
    NotFoundError,
    NotificationDeliveryError,
    PropertyNotFound,
    StaffNotFound,
    TaskNotFound,
    TimelineNotFound,
    TransientStoreError,
    TurnoverError,
    ValidationError,
)

__all__ = [
    "AlertNotFound",
    "BookingNotFound",
    "DependencyNotMet",
    "EvidenceRequired",
    "InvalidStateTransition",
    "MonitorFailure",
    "NotFoundError",
    "NotificationDeliveryError",
    "PropertyNotFound",
    "StaffNotFound",
    "TaskNotFound",
    "TimelineNotFound",
    "TransientStoreError",
    "TurnoverError",
    "ValidationError",
]
