"""
Watcher stats: cumulative counters and tick latency, read by the health API.
"""

import statistics
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Union

from core.error_handler import describe_error
from core.models import TickResult


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Counter:
    """Monotonic counter metric."""
    value: int = 0

    def inc(self, amount: int = 1):
        if amount < 0:
            raise ValueError("Counter can only increase")
        self.value += amount


class Histogram:
    """Sliding window of tick durations in seconds."""

    def __init__(self, max_samples: int = 1000):
        self.observations: Deque[float] = deque(maxlen=max_samples)

    def observe(self, value: float):
        self.observations.append(value)

    def percentile(self, q: float) -> float:
        """Nearest-rank percentile, 0 for an empty window."""
        if not self.observations:
            return 0
        ranked = sorted(self.observations)
        return ranked[min(int(len(ranked) * q), len(ranked) - 1)]

    def p50(self) -> float:
        return statistics.median(self.observations) if self.observations else 0

    def p95(self) -> float:
        return self.percentile(0.95)

    def mean(self) -> float:
        return statistics.mean(self.observations) if self.observations else 0


class StatsAggregator:
    """
    Process-wide watcher stats.

    Counters only increase; last_error and last_accept_key hold the most
    recent value. Written by the watcher loop, read by the health API.
    """

    def __init__(self):
        self.accepted = Counter()
        self.tried = Counter()
        self.errors = Counter()
        self.ticks = Counter()
        self.tick_duration = Histogram()
        self.last_tick: int = 0
        self.last_error: Optional[str] = None
        self.last_accept_key: Optional[str] = None
        self.started_at: int = now_ms()

    def record_tick(self, result: TickResult):
        """Fold one tick's counters into the totals."""
        self.accepted.inc(result.accepted)
        self.tried.inc(result.tried)
        self.errors.inc(result.errors)
        if result.last_accept_key:
            self.last_accept_key = result.last_accept_key

    def record_error(self, error: Union[BaseException, str]):
        self.last_error = error if isinstance(error, str) else describe_error(error)

    def touch(self, timestamp_ms: Optional[int] = None, duration_seconds: Optional[float] = None):
        """Mark the end of a tick."""
        self.last_tick = timestamp_ms if timestamp_ms is not None else now_ms()
        self.ticks.inc()
        if duration_seconds is not None:
            self.tick_duration.observe(duration_seconds)

    def get_summary(self) -> dict:
        """Full stats snapshot."""
        return {
            "startedAt": self.started_at,
            "lastTick": self.last_tick,
            "ticks": self.ticks.value,
            "acceptedTotal": self.accepted.value,
            "triedTotal": self.tried.value,
            "errorsTotal": self.errors.value,
            "lastError": self.last_error,
            "lastAcceptKey": self.last_accept_key,
            "tickLatency": {
                "mean": self.tick_duration.mean(),
                "p50": self.tick_duration.p50(),
                "p95": self.tick_duration.p95(),
            },
        }


class Timer:
    """Times a block and records the duration in a histogram."""

    def __init__(self, histogram: Optional[Histogram] = None):
        self.histogram = histogram
        self.duration: Optional[float] = None
        self._started = 0.0

    def __enter__(self):
        self._started = time.monotonic()
        return self

    def __exit__(self, *exc_info):
        self.duration = time.monotonic() - self._started
        if self.histogram is not None:
            self.histogram.observe(self.duration)
