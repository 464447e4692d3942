"""Booking, property and timeline models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from turnover.models.enums import BookingStatus, TimelinePhase


class BookingConfirmed(BaseModel):
    """Booking-confirmed event fed into the timeline generator."""

    booking_id: str
    property_id: str
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    guest_name: Optional[str] = None
    check_in: datetime
    check_out: datetime


class Booking(BaseModel):
    booking_id: str
    property_id: str
    property_name: Optional[str] = None
    guest_name: Optional[str] = None
    check_in: datetime
    check_out: datetime
    status: BookingStatus = BookingStatus.CONFIRMED
    checked_out_at: Optional[datetime] = None
    checked_out_by: Optional[str] = None
    ready_at: Optional[datetime] = None
    inspection_passed: Optional[bool] = None
    updated_at: datetime


class Property(BaseModel):
    property_id: str
    name: Optional[str] = None
    address: Optional[str] = None
    blocked: bool = False
    blocked_reason: Optional[str] = None
    blocked_at: Optional[datetime] = None
    updated_at: datetime


class Timeline(BaseModel):
    """Aggregate turnover progress for one booking."""

    timeline_id: UUID
    booking_id: str
    property_id: str
    check_in: datetime
    check_out: datetime
    task_ids: list[UUID] = Field(default_factory=list)
    current_phase: TimelinePhase = TimelinePhase.PRE_ARRIVAL
    completion_percentage: int = 0
    estimated_ready_at: Optional[datetime] = None
    actual_ready_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    def is_ready(self) -> bool:
        return self.current_phase == TimelinePhase.READY
