"""Circuit breaker for outbound gateway calls."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from turnover.observability.metrics import metrics
from turnover.utils.time import utc_now

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"  # calls pass through
    OPEN = "open"  # calls fail fast
    HALF_OPEN = "half_open"  # probing for recovery


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    timeout_seconds: int = 60
    half_open_max_calls: int = 3
    success_threshold: int = 2


@dataclass
class CircuitBreakerStats:
    state: CircuitState
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    half_open_calls: int = 0
    opened_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    total_calls: int = 0
    total_failures: int = 0
    total_rejected: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "total_rejected": self.total_rejected,
            "opened_at": self.opened_at.isoformat() if self.opened_at else None,
            "last_failure_at": self.last_failure_at.isoformat() if self.last_failure_at else None,
        }


class CircuitBreakerOpen(Exception):
    """Raised instead of calling a service whose circuit is open."""

    def __init__(self, service_name: str, retry_after: int):
        self.service_name = service_name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker open for {service_name}, retry after {retry_after}s")


class CircuitBreaker:
    """
    Fail fast against a service that keeps failing.

    CLOSED -> OPEN after failure_threshold consecutive failures.
    OPEN -> HALF_OPEN once timeout_seconds have passed.
    HALF_OPEN -> CLOSED after success_threshold successes, back to OPEN on
    any failure. At most half_open_max_calls trial calls run while half-open.
    """

    def __init__(self, name: str, config: CircuitBreakerConfig):
        self.name = name
        self.config = config
        self._stats = CircuitBreakerStats(state=CircuitState.CLOSED)
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._stats.state

    @property
    def stats(self) -> CircuitBreakerStats:
        return CircuitBreakerStats(**vars(self._stats))

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Await func(*args, **kwargs) if the circuit allows it."""
        await self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self._record_failure(e)
            raise
        await self._record_success()
        return result

    async def _before_call(self) -> None:
        async with self._lock:
            self._stats.total_calls += 1

            if self._stats.state == CircuitState.OPEN:
                if self._seconds_until_half_open() > 0:
                    self._reject()
                self._set_state(CircuitState.HALF_OPEN)

            if self._stats.state == CircuitState.HALF_OPEN:
                if self._stats.half_open_calls >= self.config.half_open_max_calls:
                    self._reject()
                self._stats.half_open_calls += 1

    def _reject(self) -> None:
        self._stats.total_rejected += 1
        metrics.inc_counter(f"circuit.{self.name}.rejected")
        raise CircuitBreakerOpen(self.name, self._seconds_until_half_open())

    async def _record_success(self) -> None:
        async with self._lock:
            self._stats.consecutive_failures = 0
            self._stats.consecutive_successes += 1
            if (
                self._stats.state == CircuitState.HALF_OPEN
                and self._stats.consecutive_successes >= self.config.success_threshold
            ):
                self._set_state(CircuitState.CLOSED)

    async def _record_failure(self, error: Exception) -> None:
        async with self._lock:
            self._stats.consecutive_failures += 1
            self._stats.consecutive_successes = 0
            self._stats.total_failures += 1
            self._stats.last_failure_at = utc_now()
            logger.warning(
                "Circuit %s failure (%d/%d): %s",
                self.name,
                self._stats.consecutive_failures,
                self.config.failure_threshold,
                error,
            )
            if self._stats.state == CircuitState.HALF_OPEN or (
                self._stats.state == CircuitState.CLOSED
                and self._stats.consecutive_failures >= self.config.failure_threshold
            ):
                self._set_state(CircuitState.OPEN)

    def _set_state(self, state: CircuitState) -> None:
        self._stats.state = state
        self._stats.half_open_calls = 0
        self._stats.consecutive_successes = 0
        if state == CircuitState.OPEN:
            self._stats.opened_at = utc_now()
            logger.error("Circuit %s opened", self.name)
        elif state == CircuitState.CLOSED:
            self._stats.opened_at = None
            self._stats.consecutive_failures = 0
            logger.info("Circuit %s closed", self.name)
        else:
            logger.info("Circuit %s half-open", self.name)
        metrics.set_gauge(f"circuit.{self.name}.open", 1 if state == CircuitState.OPEN else 0)

    def _seconds_until_half_open(self) -> int:
        if not self._stats.opened_at:
            return 0
        elapsed = (utc_now() - self._stats.opened_at).total_seconds()
        return int(max(0, self.config.timeout_seconds - elapsed))

    async def reset(self) -> None:
        async with self._lock:
            self._set_state(CircuitState.CLOSED)
