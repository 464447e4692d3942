"""Checkout sweep - fires checkout tasks at their scheduled time."""

import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from turnover.config import settings
from turnover.db.base import get_session
from turnover.db.repositories import TaskRepository
from turnover.engine.core import TurnoverEngine
from turnover.integrations.notifications import NotificationGateway
from turnover.integrations.staff_directory import StaffDirectory
from turnover.observability.metrics import metrics
from turnover.utils.time import utc_now

logger = logging.getLogger("turnover.sweep")


class CheckoutSweepResult(BaseModel):
    due: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0


async def run_checkout_sweep(
    now: Optional[datetime] = None,
    notifier: Optional[NotificationGateway] = None,
    staff_factory: Optional[Callable[[AsyncSession], StaffDirectory]] = None,
    batch_size: Optional[int] = None,
) -> CheckoutSweepResult:
    """
    Complete every pending checkout task whose time has come.

    Each task runs in its own session, so one failure neither rolls back
    nor stops the rest of the batch. Tasks completed concurrently by
    another run are skipped.
    """
    now = now or utc_now()
    limit = batch_size or settings.checkout_sweep_batch_size

    async with get_session() as session:
        due = await TaskRepository(session).list_due_checkouts(now, limit)

    result = CheckoutSweepResult(due=len(due))
    for task in due:
        try:
            async with get_session(immediate=True) as session:
                engine = TurnoverEngine(
                    session,
                    notifier=notifier,
                    staff=staff_factory(session) if staff_factory else None,
                )
                fired = await engine.complete_checkout(task.task_id, now)
        except Exception as e:
            result.failed += 1
            metrics.inc_counter("sweep.checkout.task_errors")
            logger.error(
                "Checkout sweep failed for task %s (booking %s): %s",
                task.task_id,
                task.booking_id,
                e,
                exc_info=True,
            )
            continue

        if fired:
            result.completed += 1
        else:
            result.skipped += 1

    if result.due:
        logger.info(
            "Checkout sweep: %d due, %d completed, %d skipped, %d failed",
            result.due,
            result.completed,
            result.skipped,
            result.failed,
        )
    return result
