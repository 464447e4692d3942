"""Turnover background sweeps."""

from turnover.tasks.checkout import CheckoutSweepResult, run_checkout_sweep
from turnover.tasks.sweep import PeriodicSweep
from turnover.tasks.timeouts import TimeoutSweepResult, run_timeout_sweep

__all__ = [
    "CheckoutSweepResult",
    "PeriodicSweep",
    "TimeoutSweepResult",
    "run_checkout_sweep",
    "run_timeout_sweep",
]
