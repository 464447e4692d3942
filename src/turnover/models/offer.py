"""Staff assignment offers and the jobs that own them."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from turnover.models.enums import JobStatus, OfferStatus


class Offer(BaseModel):
    """Time-boxed job proposal to one staff member."""

    offer_id: str
    job_id: str
    staff_id: Optional[str] = None
    status: OfferStatus = OfferStatus.SENT
    sent_at: datetime
    accepted_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    timeout_reason: Optional[str] = None
    attempt_number: int = 1


class Job(BaseModel):
    job_id: str
    property_name: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    assigned_staff_id: Optional[str] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    stuck_at: Optional[datetime] = None
    timeout_reason: Optional[str] = None
    escalation_required: bool = False
    last_expired_offer: Optional[dict[str, Any]] = None
