"""In-process metrics for sweeps, cascades and notifications.

Counters and gauges are plain floats keyed by dotted name. Durations keep a
bounded window of recent samples so /v1/metrics can report percentiles for
sweep runs and queries without growing with uptime.
"""

from collections import deque
from contextlib import contextmanager
from threading import Lock
from time import perf_counter
from typing import Any, Iterator

SAMPLE_WINDOW = 512


class Histogram:
    """Lifetime count and max plus percentiles over the recent window."""

    def __init__(self, window: int = SAMPLE_WINDOW) -> None:
        self.count = 0
        self.maximum = 0.0
        self.samples: deque[float] = deque(maxlen=window)

    def observe(self, value: float) -> None:
        self.count += 1
        self.maximum = max(self.maximum, value)
        self.samples.append(value)

    def percentile(self, fraction: float) -> float:
        if not self.samples:
            return 0.0
        ordered = sorted(self.samples)
        index = min(len(ordered) - 1, int(fraction * len(ordered)))
        return ordered[index]

    def snapshot(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "p50": self.percentile(0.5),
            "p95": self.percentile(0.95),
            "max": self.maximum,
        }


class MetricsRegistry:
    """Thread-safe registry of counters, gauges and duration windows."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.counters: dict[str, float] = {}
        self.gauges: dict[str, float] = {}
        self.histograms: dict[str, Histogram] = {}

    def inc_counter(self, name: str, amount: float = 1.0) -> None:
        with self._lock:
            self.counters[name] = self.counters.get(name, 0.0) + amount

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self.gauges[name] = value

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            if name not in self.histograms:
                self.histograms[name] = Histogram()
            self.histograms[name].observe(value)

    def counter_value(self, name: str) -> float:
        with self._lock:
            return self.counters.get(name, 0.0)

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        """Observe the wall-clock duration of a block in milliseconds."""
        start = perf_counter()
        try:
            yield
        finally:
            self.observe(name, (perf_counter() - start) * 1000.0)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self.counters),
                "gauges": dict(self.gauges),
                "histograms": {name: h.snapshot() for name, h in self.histograms.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self.counters.clear()
            self.gauges.clear()
            self.histograms.clear()


metrics = MetricsRegistry()
