"""
Forecast fetch metrics.

Counters and call timings for provider calls, in-flight dedup hits,
failures and confidence tiers. One collector is shared by the components
built for an application (or a test) and reported by the health endpoint.

Usage:
    metrics = FetchMetrics()

    with metrics.timer("provider_call"):
        client.fetch_hourly(lat, lon)

    metrics.increment("confidence_high")
    summary = metrics.get_summary()
"""

import logging
import time
from collections import Counter, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Durations kept per timing for the percentile
RECENT_WINDOW = 200


@dataclass
class CallTimings:
    """Durations of one kind of call, in milliseconds."""
    name: str
    count: int = 0
    total_ms: float = 0.0
    worst_ms: float = 0.0
    recent_ms: deque = field(default_factory=lambda: deque(maxlen=RECENT_WINDOW))

    @property
    def mean_ms(self) -> float:
        if not self.count:
            return 0.0
        return self.total_ms / self.count

    def add(self, elapsed_ms: float):
        self.count += 1
        self.total_ms += elapsed_ms
        self.worst_ms = max(self.worst_ms, elapsed_ms)
        self.recent_ms.append(elapsed_ms)

    def p95_ms(self) -> float:
        """95th percentile over the recent window."""
        if not self.recent_ms:
            return 0.0
        return float(np.percentile(np.fromiter(self.recent_ms, dtype=float), 95))

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "mean_ms": round(self.mean_ms, 3),
            "p95_ms": round(self.p95_ms(), 3),
            "worst_ms": round(self.worst_ms, 3),
        }


class FetchMetrics:
    """Thread-safe collector for forecast pipeline counters and call timings."""

    # Provider calls slower than this are logged (ms)
    SLOW_CALL_MS = 5000.0

    def __init__(self):
        self._lock = Lock()
        self._counters: Counter = Counter()
        self._timings: Dict[str, CallTimings] = {}
        self.started_at = datetime.now(timezone.utc)

    @contextmanager
    def timer(self, name: str):
        """Record how long the block takes, whether or not it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000)

    def observe(self, name: str, elapsed_ms: float):
        with self._lock:
            timings = self._timings.setdefault(name, CallTimings(name=name))
            timings.add(elapsed_ms)
        if elapsed_ms > self.SLOW_CALL_MS:
            logger.warning(f"Slow {name}: {elapsed_ms:.0f}ms (limit {self.SLOW_CALL_MS:.0f}ms)")

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def get_timing(self, name: str) -> Optional[CallTimings]:
        with self._lock:
            return self._timings.get(name)

    def get_summary(self) -> dict:
        """Counters, timings and uptime as plain JSON-ready values."""
        with self._lock:
            uptime = datetime.now(timezone.utc) - self.started_at
            return {
                "uptime_seconds": round(uptime.total_seconds(), 1),
                "counters": dict(self._counters),
                "timings": {name: t.to_dict() for name, t in self._timings.items()},
            }

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._timings.clear()
            self.started_at = datetime.now(timezone.utc)
