"""In-process feed of committed task status changes."""

import asyncio
import logging
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from turnover.models import TaskChange
from turnover.observability.metrics import metrics

logger = logging.getLogger(__name__)

PENDING_CHANGES_KEY = "turnover.pending_task_changes"


class Subscription:
    """One consumer's queue of changes, optionally filtered to a booking."""

    def __init__(self, feed: "TaskChangeFeed", booking_id: Optional[str] = None):
        self.feed = feed
        self.booking_id = booking_id
        self.queue: asyncio.Queue[TaskChange] = asyncio.Queue()
        self.closed = False

    def matches(self, change: TaskChange) -> bool:
        return self.booking_id is None or change.booking_id == self.booking_id

    async def get(self) -> TaskChange:
        return await self.queue.get()

    def task_done(self) -> None:
        self.queue.task_done()

    async def drained(self) -> None:
        """Wait until every delivered change has been handled."""
        await self.queue.join()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.feed.unsubscribe(self)


class TaskChangeFeed:
    def __init__(self) -> None:
        self._subscriptions: set[Subscription] = set()

    def subscribe(self, booking_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(self, booking_id)
        self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, change: TaskChange) -> None:
        metrics.inc_counter("feed.published")
        for subscription in list(self._subscriptions):
            if subscription.matches(change):
                subscription.queue.put_nowait(change)


task_changes = TaskChangeFeed()


def record_change(session: AsyncSession, change: TaskChange) -> None:
    """Queue a change for publication once the session's transaction commits."""
    session.info.setdefault(PENDING_CHANGES_KEY, []).append(change)


@event.listens_for(Session, "after_commit")
def _publish_committed(session: Session) -> None:
    # Releasing a SAVEPOINT also fires after_commit
    if session.in_nested_transaction():
        return
    changes = session.info.pop(PENDING_CHANGES_KEY, None)
    for change in changes or ():
        task_changes.publish(change)


@event.listens_for(Session, "after_soft_rollback")
def _discard_rolled_back(session: Session, previous_transaction) -> None:
    # A savepoint rollback keeps changes from earlier savepoints
    if previous_transaction.parent is not None:
        return
    dropped = session.info.pop(PENDING_CHANGES_KEY, None)
    if dropped:
        logger.debug("Discarded %d uncommitted task changes", len(dropped))
