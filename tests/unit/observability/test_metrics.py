"""
layout-orchestrator — unit tests for observability metrics

File: tests/unit/observability/test_metrics.py
Last updated: 2026-10-18

Purpose
- Verify thread-safe metric updates, selective resets and deterministic snapshots.

What this test file should cover
- Thread-safe counter increments.
- Labelled series, gauges and distributions.
- Resetting named metrics only.
- Repair counter views.
"""

from __future__ import annotations

import json
import threading

import pytest

from layout_orchestrator.observability.metrics import (
    FAILED_REPAIRS,
    GATE_DURATION_MS,
    REPAIR_ATTEMPTS,
    REPAIR_COUNTERS,
    ROLLBACKS,
    SUCCESSFUL_REPAIRS,
    TURNS,
    MetricsRegistry,
    RepairMetrics,
)


def test_thread_safe_counter_increments() -> None:
    registry = MetricsRegistry()

    def worker() -> None:
        for _ in range(2000):
            registry.inc(TURNS)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert registry.get_counter(TURNS) == 12_000.0


def test_labels_partition_series() -> None:
    registry = MetricsRegistry()
    registry.observe(GATE_DURATION_MS, 4, labels={"gate": "schema"})
    registry.observe(GATE_DURATION_MS, 8, labels={"gate": "schema"})
    registry.observe(GATE_DURATION_MS, 1, labels={"gate": "smoke"})

    schema = registry.get_distribution(GATE_DURATION_MS, labels={"gate": "schema"})
    assert schema is not None
    assert (schema["count"], schema["min"], schema["max"], schema["avg"]) == (2, 4.0, 8.0, 6.0)
    assert registry.get_distribution(GATE_DURATION_MS) is None


def test_gauges_and_invalid_updates() -> None:
    registry = MetricsRegistry()
    registry.set_gauge("queue_depth", 3)
    assert registry.get_gauge("queue_depth") == 3.0
    assert registry.get_gauge("missing") is None

    with pytest.raises(ValueError):
        registry.inc(TURNS, -1)
    with pytest.raises(ValueError):
        registry.observe(GATE_DURATION_MS, float("nan"))


def test_snapshot_is_deterministic_and_json_serializable() -> None:
    registry = MetricsRegistry()
    registry.inc(ROLLBACKS, 2, labels={"z": "9", "a": "1"})
    registry.set_gauge("queue_depth", 3)
    registry.observe(GATE_DURATION_MS, 10)

    first = registry.snapshot()
    second = registry.snapshot()

    assert first["counters"] == second["counters"]
    assert list(first) == ["metadata", "counters", "gauges", "distributions"]
    parsed = json.loads(registry.to_json())
    assert parsed["counters"] == first["counters"]
    assert parsed["gauges"] == first["gauges"]


def test_reset_named_metrics_keeps_others() -> None:
    registry = MetricsRegistry()
    for name in (*REPAIR_COUNTERS, TURNS):
        registry.inc(name)

    registry.reset(REPAIR_COUNTERS)

    assert RepairMetrics.from_registry(registry) == RepairMetrics()
    assert registry.get_counter(TURNS) == 1.0

    registry.reset()
    assert registry.get_counter(TURNS) == 0.0


def test_repair_metrics_view() -> None:
    registry = MetricsRegistry()
    registry.inc(REPAIR_ATTEMPTS, 3)
    registry.inc(SUCCESSFUL_REPAIRS, 2)
    registry.inc(FAILED_REPAIRS)
    registry.inc(ROLLBACKS)

    metrics = RepairMetrics.from_registry(registry)

    assert metrics == RepairMetrics(
        repair_attempts=3, successful_repairs=2, failed_repairs=1, rollback_count=1
    )
    assert metrics.to_dict() == {
        "repairAttempts": 3,
        "successfulRepairs": 2,
        "failedRepairs": 1,
        "rollbackCount": 1,
    }
