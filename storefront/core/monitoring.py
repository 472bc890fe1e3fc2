"""
Monitoring utilities

In-process metrics for the shipping subsystem:
- Quote counters (total, fallback)
- Per-carrier failure counters labelled by error code
- Per-carrier latency histograms

Uses Prometheus-style metric keys so they can be exported later.
"""
import logging
from collections import deque
from datetime import datetime, timezone, timedelta
from threading import Lock
from typing import Dict, Optional

logger = logging.getLogger(__name__)

QUOTES_TOTAL = "shipping_quotes_total"
FALLBACK_TOTAL = "shipping_fallback_total"
CARRIER_FAILURES_TOTAL = "shipping_carrier_failures_total"
CARRIER_LATENCY_SECONDS = "shipping_carrier_latency_seconds"


class MetricsCollector:
    """
    In-memory metrics collector with rolling windows.

    Collects:
    - Counters (monotonically increasing values)
    - Histograms (distribution of values)
    """

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, deque] = {}  # Rolling window of values
        self._lock = Lock()
        self._start_time = datetime.now(timezone.utc)

    def increment(self, name: str, value: int = 1, labels: Dict[str, str] = None) -> None:
        """Increment a counter metric."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def observe(self, name: str, value: float, labels: Dict[str, str] = None) -> None:
        """Record a histogram observation (e.g., latency)."""
        key = self._make_key(name, labels)
        now = datetime.now(timezone.utc)
        with self._lock:
            if key not in self._histograms:
                self._histograms[key] = deque(maxlen=10000)  # Keep last 10k observations
            self._histograms[key].append((now, value))

    def _make_key(self, name: str, labels: Optional[Dict[str, str]]) -> str:
        """Create metric key from name and labels."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def get_counter(self, name: str, labels: Dict[str, str] = None) -> int:
        """Get counter value."""
        key = self._make_key(name, labels)
        return self._counters.get(key, 0)

    def get_counters(self, prefix: str) -> Dict[str, int]:
        """All counters whose key starts with prefix."""
        with self._lock:
            return {k: v for k, v in self._counters.items() if k.startswith(prefix)}

    def get_histogram_stats(self, name: str, labels: Dict[str, str] = None,
                            window_seconds: int = 300) -> Dict:
        """Get histogram statistics for time window."""
        key = self._make_key(name, labels)
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=window_seconds)

        with self._lock:
            if key not in self._histograms:
                return {"count": 0, "avg": 0, "min": 0, "max": 0, "p95": 0}

            values = [v for ts, v in self._histograms[key] if ts > cutoff]

        if not values:
            return {"count": 0, "avg": 0, "min": 0, "max": 0, "p95": 0}

        values.sort()
        p95_idx = int(len(values) * 0.95)

        return {
            "count": len(values),
            "avg": sum(values) / len(values),
            "min": values[0],
            "max": values[-1],
            "p95": values[p95_idx] if p95_idx < len(values) else values[-1],
        }

    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self._start_time).total_seconds()

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


# Global metrics instance
metrics = MetricsCollector()


def record_carrier_failure(carrier: str, code: str) -> None:
    metrics.increment(CARRIER_FAILURES_TOTAL, labels={"carrier": carrier, "code": code})


def record_carrier_latency(carrier: str, seconds: float) -> None:
    metrics.observe(CARRIER_LATENCY_SECONDS, seconds, labels={"carrier": carrier})


def record_quote(fallback: bool) -> None:
    metrics.increment(QUOTES_TOTAL)
    if fallback:
        metrics.increment(FALLBACK_TOTAL)
