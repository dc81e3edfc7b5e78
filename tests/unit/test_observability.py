"""Unit tests for in-process latency and counter metrics."""

from __future__ import annotations

import pytest

from contextforge.observability import increment
from contextforge.observability import metrics_snapshot
from contextforge.observability import record_latency
from contextforge.observability import reset_metrics
from contextforge.observability import track_latency


class TestObservabilityLatency:
    def setup_method(self):
        reset_metrics()

    def teardown_method(self):
        reset_metrics()

    def test_records_latency_aggregates(self):
        record_latency(operation="context.assemble", duration_ms=10.0, ok=True)
        record_latency(operation="context.assemble", duration_ms=30.0, ok=False)

        metrics = metrics_snapshot()["latency"]["context.assemble"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0
        assert metrics["last_ms"] == 30.0

    def test_negative_duration_clamped_to_zero(self):
        record_latency(operation="memory.query", duration_ms=-5.0)
        assert metrics_snapshot()["latency"]["memory.query"]["min_ms"] == 0.0

    def test_track_latency_marks_failures(self):
        with pytest.raises(RuntimeError):
            with track_latency("memory.consolidate"):
                raise RuntimeError("boom")
        with track_latency("memory.consolidate"):
            pass

        metrics = metrics_snapshot()["latency"]["memory.consolidate"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1

    def test_counters(self):
        increment("agents.task_retries")
        increment("agents.task_retries", 2)
        assert metrics_snapshot()["counters"] == {"agents.task_retries": 3}

    def test_reset_clears_all_metrics(self):
        record_latency(operation="agents.coordinate", duration_ms=12.0)
        increment("agents.coordinations")
        reset_metrics()
        assert metrics_snapshot() == {"latency": {}, "counters": {}}
