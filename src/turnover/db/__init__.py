"""Turnover database layer."""

from turnover.db.base import Base, get_session, init_db
from turnover.db.tables import (
    AlertTable,
    BookingTable,
    JobTable,
    NotificationTable,
    OfferTable,
    PropertyTable,
    StaffTable,
    TaskTable,
    TimelineTable,
)

__all__ = [
    "Base",
    "get_session",
    "init_db",
    "AlertTable",
    "BookingTable",
    "JobTable",
    "NotificationTable",
    "OfferTable",
    "PropertyTable",
    "StaffTable",
    "TaskTable",
    "TimelineTable",
]
