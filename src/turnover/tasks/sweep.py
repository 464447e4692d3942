"""Periodic background sweep loop."""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

from turnover.observability.metrics import metrics
from turnover.observability.trace import set_trace_id

logger = logging.getLogger("turnover.sweep")


class PeriodicSweep:
    """
    Runs an async job on a jittered interval until stopped.

    The interval is randomised by +/-20% so several instances do not sweep
    in lockstep. A failing run is logged and the next run still happens.
    """

    def __init__(
        self,
        name: str,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        jitter: float = 0.2,
    ):
        self.name = name
        self.job = job
        self.interval_seconds = interval_seconds
        self.jitter = jitter
        self._task: Optional[asyncio.Task] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_interval(self) -> float:
        return self.interval_seconds * random.uniform(1 - self.jitter, 1 + self.jitter)

    async def run_once(self) -> Any:
        """Run the job once, recording failures instead of raising."""
        trace_id = set_trace_id()
        self.runs += 1
        try:
            with metrics.timed(f"sweep.{self.name}.duration_ms"):
                return await self.job()
        except Exception as e:
            self.failures += 1
            metrics.inc_counter(f"sweep.{self.name}.errors")
            logger.error("%s sweep error (trace %s): %s", self.name, trace_id, e, exc_info=True)
            return None

    async def _loop(self) -> None:
        logger.info(
            "%s sweep loop started (base interval: %ss with +/-%d%% jitter)",
            self.name,
            self.interval_seconds,
            int(self.jitter * 100),
        )
        while not self._shutdown_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.next_interval())
            except asyncio.TimeoutError:
                pass
        logger.info("%s sweep loop stopped", self.name)

    def start(self) -> None:
        if self.running:
            return
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=f"sweep:{self.name}")

    async def stop(self, timeout: float = 10.0) -> None:
        if self._shutdown_event:
            self._shutdown_event.set()

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("%s sweep did not stop gracefully, cancelling", self.name)
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

        self._task = None
        self._shutdown_event = None
