"""Timeline monitor - keeps timeline aggregates in step with task changes."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from turnover.db.base import get_session
from turnover.db.repositories import TimelineRepository
from turnover.engine.core import TurnoverEngine
from turnover.integrations.notifications import NotificationGateway
from turnover.integrations.staff_directory import StaffDirectory
from turnover.models import TaskChange, TaskStatus, TaskType, Timeline
from turnover.monitor.feed import Subscription, TaskChangeFeed, task_changes
from turnover.observability.metrics import metrics
from turnover.utils.time import utc_now

logger = logging.getLogger("turnover.monitor")


@dataclass
class Watch:
    """A booking's subscription and the task consuming it."""

    booking_id: str
    subscription: Subscription
    task: asyncio.Task


class TimelineMonitor:
    """
    Watches bookings' task changes and re-derives their timelines.

    Each watched booking owns one subscription and one consumer task; the
    registry is the only place they are held, and close() tears all of them
    down. A booking stops being watched once its timeline is ready.
    """

    def __init__(
        self,
        feed: TaskChangeFeed = task_changes,
        notifier: Optional[NotificationGateway] = None,
        staff_factory: Optional[Callable[[AsyncSession], StaffDirectory]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.feed = feed
        self.notifier = notifier
        self.staff_factory = staff_factory
        self.clock = clock
        self._watches: dict[str, Watch] = {}

    @property
    def watched(self) -> set[str]:
        return set(self._watches)

    def is_watching(self, booking_id: str) -> bool:
        return booking_id in self._watches

    async def start(self) -> int:
        """Watch every booking whose timeline is not ready yet."""
        async with get_session() as session:
            booking_ids = await TimelineRepository(session).list_active_booking_ids()
        for booking_id in booking_ids:
            self.watch(booking_id)
        logger.info("Timeline monitor started, watching %d bookings", len(booking_ids))
        return len(booking_ids)

    def watch(self, booking_id: str) -> None:
        if booking_id in self._watches:
            return
        subscription = self.feed.subscribe(booking_id)
        task = asyncio.create_task(self._consume(booking_id, subscription), name=f"monitor:{booking_id}")
        self._watches[booking_id] = Watch(booking_id, subscription, task)
        metrics.set_gauge("monitor.watched_bookings", len(self._watches))

    async def unwatch(self, booking_id: str) -> None:
        watch = self._watches.pop(booking_id, None)
        if watch is None:
            return
        watch.subscription.close()
        if watch.task is not asyncio.current_task():
            watch.task.cancel()
            try:
                await watch.task
            except asyncio.CancelledError:
                pass
        metrics.set_gauge("monitor.watched_bookings", len(self._watches))

    async def close(self) -> None:
        for booking_id in list(self._watches):
            await self.unwatch(booking_id)
        logger.info("Timeline monitor stopped")

    async def drain(self, booking_id: str) -> None:
        """Wait until every change delivered for the booking has been handled."""
        watch = self._watches.get(booking_id)
        if watch:
            await watch.subscription.drained()

    async def _consume(self, booking_id: str, subscription: Subscription) -> None:
        ready = False
        while not ready:
            change = await subscription.get()
            try:
                timeline = await self.handle(change)
                ready = timeline is not None and timeline.is_ready()
            except Exception as e:
                metrics.inc_counter("monitor.handler_errors")
                logger.error(
                    "Timeline monitor failed on %s change for task %s: %s",
                    change.status.value,
                    change.task_id,
                    e,
                    exc_info=True,
                )
            finally:
                subscription.task_done()

        logger.info("Booking %s is ready, no longer watching", booking_id)
        self._watches.pop(booking_id, None)
        subscription.close()
        metrics.set_gauge("monitor.watched_bookings", len(self._watches))

    async def handle(self, change: TaskChange) -> Optional[Timeline]:
        """Apply one committed change; returns the re-derived timeline."""
        async with get_session() as session:
            engine = TurnoverEngine(
                session,
                notifier=self.notifier,
                staff=self.staff_factory(session) if self.staff_factory else None,
            )
            if change.task_type == TaskType.CLEANING and change.status == TaskStatus.IN_PROGRESS:
                await engine.auto_assign_unstaffed(change.task_id)
            timeline = await engine.refresh_timeline(change.booking_id, self.clock())
        metrics.inc_counter("monitor.changes_handled")
        return timeline
