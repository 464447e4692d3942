"""
Periodic sweep loop: failures are contained, stop is clean.
"""

import asyncio

import pytest

from turnover.observability.metrics import metrics
from turnover.tasks.sweep import PeriodicSweep


@pytest.mark.asyncio
async def test_run_once_contains_failures():
    async def job():
        raise RuntimeError("database away")

    sweep = PeriodicSweep("checkout", job, interval_seconds=60)

    assert await sweep.run_once() is None
    assert sweep.runs == 1
    assert sweep.failures == 1
    assert metrics.counter_value("sweep.checkout.errors") == 1


@pytest.mark.asyncio
async def test_loop_runs_until_stopped():
    ran = asyncio.Event()

    async def job():
        ran.set()
        return "done"

    sweep = PeriodicSweep("timeouts", job, interval_seconds=60)
    sweep.start()
    assert sweep.running

    await asyncio.wait_for(ran.wait(), timeout=5)
    await sweep.stop()

    assert not sweep.running
    assert sweep.runs == 1
    assert "sweep.timeouts.duration_ms" in metrics.snapshot()["histograms"]


def test_interval_jitter_stays_in_bounds():
    sweep = PeriodicSweep("checkout", lambda: None, interval_seconds=100, jitter=0.2)
    for _ in range(50):
        assert 80 <= sweep.next_interval() <= 120
