"""
Offer and job timeout sweep: expiry, stuck-job escalation, monitor failure alert.
"""

from datetime import datetime, timedelta, timezone

import pytest

from turnover.db.base import get_session
from turnover.db.repositories import AlertRepository, JobRepository, OfferRepository
from turnover.models import AlertSeverity, AlertType, Job, JobStatus, Offer, OfferStatus
from turnover.observability.metrics import metrics
from turnover.tasks.timeouts import (
    ACCEPTED_NOT_STARTED,
    ALERT_SOURCE,
    OFFER_TIMEOUT,
    STARTED_NOT_COMPLETED,
    TimeoutSweeper,
    run_timeout_sweep,
)

NOW = datetime(2025, 8, 22, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def jobs(session):
    job_repo = JobRepository(session)
    offer_repo = OfferRepository(session)

    await job_repo.add(
        Job(job_id="job-offered", property_name="Villa Azure", status=JobStatus.OFFERED)
    )
    await offer_repo.add(
        Offer(
            offer_id="offer-stale",
            job_id="job-offered",
            staff_id="staff-1",
            sent_at=NOW - timedelta(minutes=16),
            attempt_number=2,
        )
    )
    await offer_repo.add(
        Offer(
            offer_id="offer-fresh",
            job_id="job-offered",
            staff_id="staff-2",
            sent_at=NOW - timedelta(minutes=14),
        )
    )
    await offer_repo.add(
        Offer(
            offer_id="offer-accepted",
            job_id="job-offered",
            staff_id="staff-3",
            status=OfferStatus.ACCEPTED,
            sent_at=NOW - timedelta(minutes=30),
            accepted_at=NOW - timedelta(minutes=25),
        )
    )

    await job_repo.add(
        Job(
            job_id="job-accepted-late",
            property_name="Villa Mare",
            status=JobStatus.ACCEPTED,
            assigned_staff_id="staff-1",
            accepted_at=NOW - timedelta(hours=2, minutes=1),
        )
    )
    await job_repo.add(
        Job(
            job_id="job-accepted-on-time",
            status=JobStatus.ACCEPTED,
            accepted_at=NOW - timedelta(hours=1, minutes=59),
        )
    )
    await job_repo.add(
        Job(
            job_id="job-started-late",
            property_name="Villa Sol",
            status=JobStatus.STARTED,
            assigned_staff_id="staff-2",
            accepted_at=NOW - timedelta(hours=10),
            started_at=NOW - timedelta(hours=8, minutes=1),
        )
    )
    await session.commit()


async def _alerts() -> list:
    async with get_session() as s:
        return await AlertRepository(s).list()


@pytest.mark.asyncio
async def test_stale_offer_expires_and_flags_job(jobs):
    result = await run_timeout_sweep(now=NOW)

    assert result.expired_offers == 1
    assert result.failures == []
    async with get_session() as s:
        offers = OfferRepository(s)
        stale = await offers.get("offer-stale")
        fresh = await offers.get("offer-fresh")
        accepted = await offers.get("offer-accepted")
        job = await JobRepository(s).get("job-offered")

    assert stale.status == OfferStatus.EXPIRED
    assert stale.timeout_reason == OFFER_TIMEOUT
    assert stale.expired_at is not None
    assert fresh.status == OfferStatus.SENT
    assert accepted.status == OfferStatus.ACCEPTED

    assert job.status == JobStatus.OFFER_EXPIRED
    assert job.escalation_required is True
    assert job.last_expired_offer["offer_id"] == "offer-stale"
    assert job.last_expired_offer["attempt_number"] == 2


@pytest.mark.asyncio
async def test_stuck_jobs_are_escalated_with_alerts(jobs):
    result = await run_timeout_sweep(now=NOW)

    assert result.stuck_accepted_jobs == 1
    assert result.stuck_started_jobs == 1
    assert result.alerts_raised == 2

    async with get_session() as s:
        repo = JobRepository(s)
        late = await repo.get("job-accepted-late")
        on_time = await repo.get("job-accepted-on-time")
        started = await repo.get("job-started-late")

    assert late.status == JobStatus.STUCK_ACCEPTED
    assert late.timeout_reason == ACCEPTED_NOT_STARTED
    assert late.escalation_required is True
    assert on_time.status == JobStatus.ACCEPTED
    assert started.status == JobStatus.STUCK_STARTED
    assert started.timeout_reason == STARTED_NOT_COMPLETED

    alerts = {a.context["job_id"]: a for a in await _alerts()}
    assert set(alerts) == {"job-accepted-late", "job-started-late"}

    accepted_alert = alerts["job-accepted-late"]
    assert accepted_alert.alert_type == AlertType.STUCK_JOB_ALERT
    assert accepted_alert.severity == AlertSeverity.HIGH
    assert accepted_alert.requires_immediate_action is False
    assert accepted_alert.source == ALERT_SOURCE
    assert accepted_alert.context["property_name"] == "Villa Mare"

    started_alert = alerts["job-started-late"]
    assert started_alert.severity == AlertSeverity.CRITICAL
    assert started_alert.requires_immediate_action is True
    assert started_alert.context["reason"] == STARTED_NOT_COMPLETED


@pytest.mark.asyncio
async def test_second_sweep_raises_nothing_new(jobs):
    await run_timeout_sweep(now=NOW)
    again = await run_timeout_sweep(now=NOW)

    assert again.expired_offers == 0
    assert again.stuck_accepted_jobs == 0
    assert again.stuck_started_jobs == 0
    assert again.alerts_raised == 0
    assert len(await _alerts()) == 2


@pytest.mark.asyncio
async def test_offer_accepted_before_expiry_is_left_alone(jobs):
    async with get_session() as s:
        assert await OfferRepository(s).expire("offer-accepted", OFFER_TIMEOUT) is False


@pytest.mark.asyncio
async def test_failing_scan_raises_monitor_failure_alert(jobs, monkeypatch):
    async def broken(self):
        raise RuntimeError("offers table unavailable")

    monkeypatch.setattr(TimeoutSweeper, "expire_offers", broken)

    result = await run_timeout_sweep(now=NOW)

    assert len(result.failures) == 1
    assert "offers table unavailable" in result.failures[0]
    # The remaining scans still ran
    assert result.stuck_accepted_jobs == 1
    assert result.stuck_started_jobs == 1

    failures = [a for a in await _alerts() if a.alert_type == AlertType.TIMEOUT_MONITOR_FAILURE]
    assert len(failures) == 1
    assert failures[0].severity == AlertSeverity.CRITICAL
    assert failures[0].requires_immediate_action is True
    assert failures[0].source == ALERT_SOURCE
    assert metrics.counter_value("sweep.timeouts.monitor_failures") == 1
