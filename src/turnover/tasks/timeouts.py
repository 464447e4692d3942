"""Offer and job timeout sweep - expires stale offers, escalates stuck jobs."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from turnover.config import settings
from turnover.db.base import get_session
from turnover.db.repositories import AlertRepository, JobRepository, OfferRepository
from turnover.engine.errors import MonitorFailure
from turnover.models import AlertSeverity, AlertType, Job, JobStatus, Offer
from turnover.observability.metrics import metrics
from turnover.utils.time import utc_now

logger = logging.getLogger("turnover.sweep")

ALERT_SOURCE = "job_timeout_monitor"

OFFER_TIMEOUT = "offer_timeout"
ACCEPTED_NOT_STARTED = "accepted_not_started"
STARTED_NOT_COMPLETED = "started_not_completed"


class TimeoutSweepResult(BaseModel):
    expired_offers: int = 0
    stuck_accepted_jobs: int = 0
    stuck_started_jobs: int = 0
    alerts_raised: int = 0
    failures: list[str] = Field(default_factory=list)


class TimeoutSweeper:
    """Runs the three timeout scans against one session."""

    def __init__(self, session: AsyncSession, now: datetime):
        self.session = session
        self.now = now
        self.offers = OfferRepository(session)
        self.jobs = JobRepository(session)
        self.alerts = AlertRepository(session)

    async def run(self, result: TimeoutSweepResult) -> TimeoutSweepResult:
        """Run every scan; a failing scan is recorded and the others still run."""
        try:
            expired = await self.expire_offers()
            result.expired_offers = len(expired)
        except Exception as e:
            self._scan_failed(result, "expired_offers", e)

        try:
            stuck = await self.escalate_jobs(
                JobStatus.ACCEPTED,
                JobStatus.STUCK_ACCEPTED,
                ACCEPTED_NOT_STARTED,
                timedelta(hours=settings.job_accepted_timeout_hours),
            )
            result.stuck_accepted_jobs = len(stuck)
            for job in stuck:
                result.alerts_raised += await self._raise_stuck_alert(
                    job, ACCEPTED_NOT_STARTED, AlertSeverity.HIGH, immediate=False
                )
        except Exception as e:
            self._scan_failed(result, "stuck_accepted_jobs", e)

        try:
            stuck = await self.escalate_jobs(
                JobStatus.STARTED,
                JobStatus.STUCK_STARTED,
                STARTED_NOT_COMPLETED,
                timedelta(hours=settings.job_started_timeout_hours),
            )
            result.stuck_started_jobs = len(stuck)
            for job in stuck:
                result.alerts_raised += await self._raise_stuck_alert(
                    job, STARTED_NOT_COMPLETED, AlertSeverity.CRITICAL, immediate=True
                )
        except Exception as e:
            self._scan_failed(result, "stuck_started_jobs", e)

        return result

    async def expire_offers(self) -> list[Offer]:
        """Expire sent offers past the timeout and flag their jobs."""
        cutoff = self.now - timedelta(minutes=settings.offer_timeout_minutes)
        expired = []
        async with self.session.begin_nested():  # SAVEPOINT
            for offer in await self.offers.list_stale_sent(cutoff):
                # Re-checks status == sent; an accepted offer is left alone
                if not await self.offers.expire(offer.offer_id, OFFER_TIMEOUT):
                    continue
                await self.jobs.flag_offer_expired(offer.job_id, offer)
                expired.append(offer)
        if expired:
            logger.warning("Expired %d job offers", len(expired))
            metrics.inc_counter("sweep.timeouts.expired_offers", len(expired))
        return expired

    async def escalate_jobs(
        self,
        status: JobStatus,
        stuck_status: JobStatus,
        reason: str,
        threshold: timedelta,
    ) -> list[Job]:
        """Mark jobs that sat in status longer than threshold as stuck."""
        cutoff = self.now - threshold
        stuck = []
        async with self.session.begin_nested():  # SAVEPOINT
            for job in await self.jobs.list_stale(status, cutoff):
                if await self.jobs.mark_stuck(job.job_id, status, stuck_status, reason):
                    stuck.append(job)
        if stuck:
            logger.warning("Marked %d %s jobs as %s", len(stuck), status.value, stuck_status.value)
            metrics.inc_counter(f"sweep.timeouts.{stuck_status.value}", len(stuck))
        return stuck

    async def _raise_stuck_alert(
        self,
        job: Job,
        reason: str,
        severity: AlertSeverity,
        immediate: bool,
    ) -> int:
        """Best effort: a failed alert write is logged and skipped."""
        stuck_since = job.accepted_at if reason == ACCEPTED_NOT_STARTED else job.started_at
        try:
            async with self.session.begin_nested():  # SAVEPOINT
                await self.alerts.create(
                    AlertType.STUCK_JOB_ALERT,
                    severity,
                    f"Job {job.job_id} at {job.property_name or 'Unknown Property'} "
                    f"is stuck ({reason})",
                    source=ALERT_SOURCE,
                    context={
                        "job_id": job.job_id,
                        "property_name": job.property_name or "Unknown Property",
                        "reason": reason,
                        "stuck_since": stuck_since.isoformat() if stuck_since else None,
                        "assigned_staff_id": job.assigned_staff_id,
                    },
                    requires_immediate_action=immediate,
                )
        except Exception as e:
            metrics.inc_counter("sweep.timeouts.alert_errors")
            logger.error("Failed to raise stuck-job alert for %s: %s", job.job_id, e, exc_info=True)
            return 0
        return 1

    def _scan_failed(self, result: TimeoutSweepResult, scan: str, error: Exception) -> None:
        result.failures.append(f"{scan}: {error}")
        metrics.inc_counter("sweep.timeouts.scan_errors")
        logger.error("Timeout scan %s failed: %s", scan, error, exc_info=True)


async def record_monitor_failure(error: Exception, now: Optional[datetime] = None) -> None:
    """Write one critical alert in a fresh session."""
    async with get_session() as session:
        await AlertRepository(session).create(
            AlertType.TIMEOUT_MONITOR_FAILURE,
            AlertSeverity.CRITICAL,
            f"Job timeout monitoring failed: {error}",
            source=ALERT_SOURCE,
            context={
                "error": str(error),
                "failures": getattr(error, "failures", [str(error)]),
                "at": (now or utc_now()).isoformat(),
            },
            requires_immediate_action=True,
        )
    metrics.inc_counter("sweep.timeouts.monitor_failures")


async def run_timeout_sweep(now: Optional[datetime] = None) -> TimeoutSweepResult:
    """
    One pass over offers and jobs.

    Scan failures, or a failure of the pass as a whole, end in a critical
    timeout-monitor-failure alert rather than an exception, so the next
    scheduled run still happens.
    """
    now = now or utc_now()
    result = TimeoutSweepResult()
    try:
        async with get_session(immediate=True) as session:
            await TimeoutSweeper(session, now).run(result)
        if result.failures:
            raise MonitorFailure("timeout", result.failures)
    except Exception as e:
        if not isinstance(e, MonitorFailure):
            result.failures.append(str(e))
        logger.error("Timeout sweep failed: %s", e, exc_info=True)
        await record_monitor_failure(e, now)
        return result

    total = result.expired_offers + result.stuck_accepted_jobs + result.stuck_started_jobs
    if total:
        logger.info(
            "Timeout sweep complete: %d expired offers, %d stuck accepted, %d stuck started",
            result.expired_offers,
            result.stuck_accepted_jobs,
            result.stuck_started_jobs,
        )
    return result
