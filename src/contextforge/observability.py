"""Lightweight in-process metrics: latency aggregates and event counters."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class LatencyStats:
    """Aggregated latency of one operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def observe(self, duration_ms: float, ok: bool) -> None:
        self.count += 1
        if not ok:
            self.error_count += 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        if self.count == 1:
            self.min_ms = self.max_ms = duration_ms
        else:
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        avg = self.total_ms / self.count if self.count else 0.0
        return {
            "count": self.count,
            "error_count": self.error_count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(avg, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


class _MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._latency: dict[str, LatencyStats] = {}
        self._counters: Counter[str] = Counter()

    def observe(self, operation: str, duration_ms: float, ok: bool) -> None:
        duration_ms = max(float(duration_ms), 0.0)
        with self._lock:
            self._latency.setdefault(operation, LatencyStats()).observe(
                duration_ms, ok
            )
        logger.info(
            "latency operation=%s duration_ms=%.3f ok=%s",
            operation,
            duration_ms,
            ok,
        )

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            return {
                "latency": {
                    op: stats.as_dict() for op, stats in sorted(self._latency.items())
                },
                "counters": dict(sorted(self._counters.items())),
            }

    def reset(self) -> None:
        with self._lock:
            self._latency.clear()
            self._counters.clear()


_REGISTRY = _MetricsRegistry()


def record_latency(*, operation: str, duration_ms: float, ok: bool = True) -> None:
    """Record one latency sample."""
    _REGISTRY.observe(operation, duration_ms, ok)


@contextmanager
def track_latency(operation: str) -> Iterator[None]:
    """Time the wrapped block; an exception marks the sample as failed."""
    start = perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        record_latency(
            operation=operation,
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


def increment(name: str, amount: int = 1) -> None:
    """Bump a named counter."""
    _REGISTRY.increment(name, amount)


def metrics_snapshot() -> dict[str, dict]:
    """Return current latency aggregates and counters."""
    return _REGISTRY.snapshot()


def reset_metrics() -> None:
    """Clear all metrics (test helper)."""
    _REGISTRY.reset()
