"""External service integrations and resilience patterns."""

from turnover.integrations.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitState,
)
from turnover.integrations.notifications import (
    HttpNotificationGateway,
    InboxNotificationGateway,
    NotificationGateway,
    get_notification_gateway,
)
from turnover.integrations.staff_directory import (
    SKILLS_BY_TASK_TYPE,
    SqlStaffDirectory,
    StaffDirectory,
    required_skills,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitState",
    "HttpNotificationGateway",
    "InboxNotificationGateway",
    "NotificationGateway",
    "get_notification_gateway",
    "SKILLS_BY_TASK_TYPE",
    "SqlStaffDirectory",
    "StaffDirectory",
    "required_skills",
]
