"""Operator alerts and staff notifications."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from turnover.models.enums import (
    AlertSeverity,
    AlertType,
    NotificationChannel,
    TaskPriority,
)


class Alert(BaseModel):
    """Operator-facing escalation record requiring human resolution."""

    alert_id: UUID
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    source: str
    requires_immediate_action: bool = False
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    created_at: datetime


class NotificationPayload(BaseModel):
    """Payload handed to the notification gateway."""

    notification_id: UUID
    recipient_id: str
    title: str
    message: str
    channels: list[NotificationChannel] = Field(
        default_factory=lambda: [NotificationChannel.IN_APP, NotificationChannel.PUSH]
    )
    priority: TaskPriority = TaskPriority.MEDIUM
    related_task_id: Optional[UUID] = None
    related_booking_id: Optional[str] = None


class StaffMember(BaseModel):
    staff_id: str
    name: str
    email: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
