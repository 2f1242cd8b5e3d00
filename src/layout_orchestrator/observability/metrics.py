"""
layout-orchestrator — in-process metrics

File: src/layout_orchestrator/observability/metrics.py
Last updated: 2026-10-18

Purpose
- Counters, gauges and sample distributions keyed by name plus optional string
  labels, shared by the orchestrator (repair counters, turn count) and the
  validation pipeline (per-gate durations).

Functional requirements
- Updates are thread-safe.
- ``reset(names)`` drops only the named series; ``reset()`` drops everything.
- Snapshots are JSON-serializable with deterministic key order.
"""

from __future__ import annotations

import json
import math
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
SeriesKey = tuple[str, tuple[tuple[str, str], ...]]

REPAIR_ATTEMPTS: Final[str] = "repair_attempts_total"
SUCCESSFUL_REPAIRS: Final[str] = "repair_successes_total"
FAILED_REPAIRS: Final[str] = "repair_failures_total"
ROLLBACKS: Final[str] = "repair_rollbacks_total"
TURNS: Final[str] = "turns_total"
GATE_DURATION_MS: Final[str] = "validation_gate_duration_ms"
REPAIR_COUNTERS: Final[tuple[str, ...]] = (
    REPAIR_ATTEMPTS,
    SUCCESSFUL_REPAIRS,
    FAILED_REPAIRS,
    ROLLBACKS,
)


@dataclass(slots=True)
class _Samples:
    count: int = 0
    total: float = 0.0
    low: float = math.inf
    high: float = -math.inf
    last: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.low = min(self.low, value)
        self.high = max(self.high, value)
        self.last = value

    def summary(self) -> dict[str, JSONValue]:
        return {
            "count": self.count,
            "sum": self.total,
            "min": self.low,
            "max": self.high,
            "avg": self.total / self.count,
            "last": self.last,
        }


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._since = datetime.now(tz=UTC)
        self._counters: dict[SeriesKey, float] = {}
        self._gauges: dict[SeriesKey, float] = {}
        self._samples: dict[SeriesKey, _Samples] = {}

    def inc(self, name: str, amount: float = 1.0, *, labels: Mapping[str, str] | None = None) -> None:
        step = _finite(amount)
        if step < 0:
            raise ValueError("counter increment amount must be >= 0")
        key = _series(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0.0) + step

    def set_gauge(self, name: str, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = _series(name, labels)
        with self._lock:
            self._gauges[key] = _finite(value)

    def observe(self, name: str, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = _series(name, labels)
        sample = _finite(value)
        with self._lock:
            self._samples.setdefault(key, _Samples()).add(sample)

    def get_counter(self, name: str, *, labels: Mapping[str, str] | None = None) -> float:
        with self._lock:
            return self._counters.get(_series(name, labels), 0.0)

    def get_gauge(self, name: str, *, labels: Mapping[str, str] | None = None) -> float | None:
        with self._lock:
            return self._gauges.get(_series(name, labels))

    def get_distribution(
        self, name: str, *, labels: Mapping[str, str] | None = None
    ) -> dict[str, JSONValue] | None:
        with self._lock:
            samples = self._samples.get(_series(name, labels))
            return None if samples is None else samples.summary()

    def reset(self, names: Iterable[str] | None = None) -> None:
        with self._lock:
            if names is None:
                self._counters.clear()
                self._gauges.clear()
                self._samples.clear()
                self._since = datetime.now(tz=UTC)
                return
            doomed = set(names)
            for store in (self._counters, self._gauges, self._samples):
                for key in [key for key in store if key[0] in doomed]:
                    del store[key]

    def snapshot(self) -> dict[str, JSONValue]:
        with self._lock:
            counters = {_render(key): value for key, value in sorted(self._counters.items())}
            gauges = {_render(key): value for key, value in sorted(self._gauges.items())}
            samples = {_render(key): item.summary() for key, item in sorted(self._samples.items())}
            since = self._since
        now = datetime.now(tz=UTC)
        return {
            "metadata": {
                "created_at": _zulu(since),
                "snapshot_at": _zulu(now),
                "uptime_seconds": max(0.0, (now - since).total_seconds()),
            },
            "counters": counters,
            "gauges": gauges,
            "distributions": samples,
        }

    def to_json(self, *, indent: int | None = None) -> str:
        separators = None if indent is not None else (",", ":")
        return json.dumps(self.snapshot(), sort_keys=True, indent=indent, separators=separators)


@dataclass(frozen=True, slots=True)
class RepairMetrics:
    """Cumulative repair counters for one orchestrator."""

    repair_attempts: int = 0
    successful_repairs: int = 0
    failed_repairs: int = 0
    rollback_count: int = 0

    @classmethod
    def from_registry(cls, registry: MetricsRegistry) -> RepairMetrics:
        attempts, successes, failures, rollbacks = (
            int(registry.get_counter(name)) for name in REPAIR_COUNTERS
        )
        return cls(attempts, successes, failures, rollbacks)

    def to_dict(self) -> dict[str, int]:
        return {
            "repairAttempts": self.repair_attempts,
            "successfulRepairs": self.successful_repairs,
            "failedRepairs": self.failed_repairs,
            "rollbackCount": self.rollback_count,
        }


def _series(name: str, labels: Mapping[str, str] | None) -> SeriesKey:
    if not isinstance(name, str) or not name.strip():
        raise ValueError("metric name must be a non-empty string")
    pairs: list[tuple[str, str]] = []
    for label, value in (labels or {}).items():
        if not isinstance(label, str) or not isinstance(value, str) or not label or not value:
            raise ValueError(f"label {label!r} must map a non-empty string to a non-empty string")
        pairs.append((label, value))
    return name.strip(), tuple(sorted(pairs))


def _render(key: SeriesKey) -> str:
    name, labels = key
    if not labels:
        return name
    return name + "{" + ",".join(f"{label}={value}" for label, value in labels) + "}"


def _finite(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"metric value must be a finite number, got {value!r}")
    return float(value)


def _zulu(moment: datetime) -> str:
    return moment.isoformat(timespec="seconds").replace("+00:00", "Z")


__all__ = [
    "FAILED_REPAIRS",
    "GATE_DURATION_MS",
    "REPAIR_ATTEMPTS",
    "REPAIR_COUNTERS",
    "ROLLBACKS",
    "SUCCESSFUL_REPAIRS",
    "TURNS",
    "JSONValue",
    "MetricsRegistry",
    "RepairMetrics",
]
