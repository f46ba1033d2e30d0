"""
Unit tests for the metrics registry
"""

import pytest
from exporter.metrics import MetricsRegistry, SCHEMA_ELAPSED_MS, RECORD_COUNT


def test_counters_are_summed():
    metrics = MetricsRegistry()
    metrics.inc(RECORD_COUNT, 5)
    metrics.inc(RECORD_COUNT, 7)
    metrics.inc("shard_count")

    assert metrics.get(RECORD_COUNT) == 12
    assert metrics.get("shard_count") == 1
    assert metrics.get("missing") == 0


def test_counters_cannot_decrease():
    metrics = MetricsRegistry()
    with pytest.raises(ValueError):
        metrics.inc(RECORD_COUNT, -1)


def test_gauge_is_write_once():
    metrics = MetricsRegistry()
    metrics.set_gauge(SCHEMA_ELAPSED_MS, 15)

    with pytest.raises(ValueError):
        metrics.set_gauge(SCHEMA_ELAPSED_MS, 20)

    assert metrics.get(SCHEMA_ELAPSED_MS) == 15


def test_snapshot_is_sorted_copy():
    metrics = MetricsRegistry()
    metrics.inc("b_counter", 2)
    metrics.set_gauge("a_gauge", 1)

    snapshot = metrics.snapshot()
    snapshot["b_counter"] = 100

    assert list(metrics.snapshot()) == ["a_gauge", "b_counter"]
    assert metrics.get("b_counter") == 2
    assert "a_gauge" in metrics
    assert "c" not in metrics
