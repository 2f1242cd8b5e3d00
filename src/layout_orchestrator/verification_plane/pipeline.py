"""
layout-orchestrator — validation gate pipeline

File: src/layout_orchestrator/verification_plane/pipeline.py
Last updated: 2026-10-18

Purpose
- Run the five validation gates over a graph and normalize their diagnostics.

Normative behavior
- Gate order is authoritative: schema, lint, types, unit, smoke.
- The pipeline short-circuits: the first gate reporting an error-severity
  diagnostic stops execution and later gates do not run.
- ``passed`` is true only if every configured gate ran and passed.
- Warning/info diagnostics never fail a gate.
- Each gate is bounded by a timeout; a timed-out or crashing gate becomes an
  error diagnostic for that gate instead of propagating.
- Gates may be sync or async. ``run_sync`` is the synchronous entry point used by
  the synchronous repair loop and rejects async gates explicitly.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from layout_orchestrator.constants import DEFAULT_GATE_TIMEOUT_SECONDS
from layout_orchestrator.domain.diagnostics import (
    GATE_ORDER,
    Diagnostic,
    Gate,
    count_errors,
    error,
    errors_only,
)
from layout_orchestrator.observability.metrics import GATE_DURATION_MS
from layout_orchestrator.utils.concurrency import CancellationToken, run_with_timeout
from layout_orchestrator.verification_plane.checkers import DEFAULT_CHECKER_REGISTRY
from layout_orchestrator.verification_plane.checkers.base import (
    CheckerRegistry,
    GateChecker,
    GateResult,
)

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph, JSONValue
    from layout_orchestrator.observability.metrics import MetricsRegistry


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Normalized result of one pipeline run."""

    passed: bool
    diagnostics: tuple[Diagnostic, ...]
    gate_results: tuple[GateResult, ...]
    failed_gate: Gate | None = None

    @property
    def errors(self) -> list[Diagnostic]:
        return errors_only(self.diagnostics)

    @property
    def error_count(self) -> int:
        return count_errors(self.diagnostics)

    @property
    def gates_run(self) -> tuple[Gate, ...]:
        return tuple(result.gate for result in self.gate_results)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "passed": self.passed,
            "failedGate": None if self.failed_gate is None else self.failed_gate.value,
            "gates": [
                {
                    "gate": result.gate.value,
                    "passed": result.passed,
                    "durationMs": result.duration_ms,
                }
                for result in self.gate_results
            ],
            "diagnostics": [item.to_dict() for item in self.diagnostics],
        }


class ValidationGate:
    """Sequential, short-circuiting gate runner."""

    def __init__(
        self,
        *,
        checkers: Sequence[GateChecker] | None = None,
        registry: CheckerRegistry | None = None,
        gate_timeout_seconds: float = DEFAULT_GATE_TIMEOUT_SECONDS,
        metrics: MetricsRegistry | None = None,
        logger: Any | None = None,
    ) -> None:
        if gate_timeout_seconds <= 0:
            raise ValueError("gate_timeout_seconds must be > 0")
        source = checkers if checkers is not None else (registry or DEFAULT_CHECKER_REGISTRY).create_all()
        self._checkers = _order_checkers(source)
        self._gate_timeout_seconds = float(gate_timeout_seconds)
        self._metrics = metrics
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def gates(self) -> tuple[Gate, ...]:
        return tuple(checker.gate for checker in self._checkers)

    @property
    def gate_timeout_seconds(self) -> float:
        return self._gate_timeout_seconds

    async def run(
        self,
        graph: Graph,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> ValidationResult:
        token = cancel_token or CancellationToken()
        results: list[GateResult] = []
        for checker in self._checkers:
            token.raise_if_cancelled()
            result = await self._run_checker(checker, graph, token)
            results.append(result)
            if not result.passed:
                break
        return self._finish(results)

    def run_sync(self, graph: Graph) -> ValidationResult:
        results: list[GateResult] = []
        for checker in self._checkers:
            started = time.perf_counter()
            try:
                outcome = checker.check(graph)
            except Exception as exc:  # noqa: BLE001
                outcome = _crash_result(checker.gate, exc)
            if inspect.isawaitable(outcome):
                _close_awaitable(outcome)
                raise TypeError(
                    f"gate {checker.gate.value!r} is asynchronous; use ValidationGate.run"
                )
            result = _normalize_gate_output(checker.gate, outcome).with_duration(
                _duration_ms(started)
            )
            results.append(result)
            if not result.passed:
                break
        return self._finish(results)

    def diagnostics(self, graph: Graph) -> list[Diagnostic]:
        """Synchronous validate callable for the repair loop."""
        return list(self.run_sync(graph).diagnostics)

    async def diagnostics_async(self, graph: Graph) -> list[Diagnostic]:
        return list((await self.run(graph)).diagnostics)

    async def _run_checker(
        self,
        checker: GateChecker,
        graph: Graph,
        token: CancellationToken,
    ) -> GateResult:
        started = time.perf_counter()
        try:
            outcome = await run_with_timeout(
                _invoke(checker, graph), self._gate_timeout_seconds, token
            )
        except TimeoutError:
            outcome = GateResult.from_diagnostics(
                checker.gate,
                [
                    error(
                        checker.gate,
                        f"{checker.gate.value} gate timed out after "
                        f"{self._gate_timeout_seconds:.3f}s",
                    )
                ],
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            outcome = _crash_result(checker.gate, exc)
        return _normalize_gate_output(checker.gate, outcome).with_duration(_duration_ms(started))

    def _finish(self, results: list[GateResult]) -> ValidationResult:
        diagnostics: list[Diagnostic] = []
        failed_gate: Gate | None = None
        for result in results:
            diagnostics.extend(result.diagnostics)
            if self._metrics is not None:
                self._metrics.observe(
                    GATE_DURATION_MS, result.duration_ms, labels={"gate": result.gate.value}
                )
            if not result.passed and failed_gate is None:
                failed_gate = result.gate

        passed = failed_gate is None and len(results) == len(self._checkers)
        self._logger.debug(
            "validation_completed",
            passed=passed,
            failed_gate=None if failed_gate is None else failed_gate.value,
            gates_run=[result.gate.value for result in results],
            errors=count_errors(diagnostics),
        )
        return ValidationResult(
            passed=passed,
            diagnostics=tuple(diagnostics),
            gate_results=tuple(results),
            failed_gate=failed_gate,
        )


def run_validation_gate(graph: Graph) -> ValidationResult:
    """Run the built-in gates synchronously."""
    return ValidationGate().run_sync(graph)


def format_diagnostics(diagnostics: Iterable[Diagnostic]) -> str:
    """Render diagnostics grouped by gate, one line per diagnostic."""
    items = list(diagnostics)
    if not items:
        return "No issues found"

    lines: list[str] = []
    for gate in GATE_ORDER:
        in_gate = [item for item in items if item.gate is gate]
        if not in_gate:
            continue
        lines.append(f"{gate.value.upper()}:")
        for item in in_gate:
            lines.append(f"  [{item.severity.value}] {item.message}")
    return "\n".join(lines)


async def _invoke(checker: GateChecker, graph: Graph) -> GateResult:
    outcome = checker.check(graph)
    if inspect.isawaitable(outcome):
        return await outcome
    return outcome


def _order_checkers(checkers: Iterable[GateChecker]) -> tuple[GateChecker, ...]:
    by_gate: dict[Gate, GateChecker] = {}
    for checker in checkers:
        gate = Gate(checker.gate)
        if gate in by_gate:
            raise ValueError(f"duplicate checker for gate {gate.value!r}")
        by_gate[gate] = checker
    return tuple(by_gate[gate] for gate in GATE_ORDER if gate in by_gate)


def _normalize_gate_output(gate: Gate, outcome: object) -> GateResult:
    if isinstance(outcome, GateResult):
        if outcome.gate is not gate:
            raise ValueError(
                f"checker for gate {gate.value!r} returned a result for {outcome.gate.value!r}"
            )
        return outcome
    if isinstance(outcome, Sequence) and not isinstance(outcome, str):
        return GateResult.from_diagnostics(gate, outcome)  # type: ignore[arg-type]
    raise TypeError(f"gate {gate.value!r} returned unsupported output {type(outcome).__name__}")


def _crash_result(gate: Gate, exc: BaseException) -> GateResult:
    return GateResult.from_diagnostics(
        gate, [error(gate, f"{gate.value} gate crashed: {type(exc).__name__}: {exc}")]
    )


def _close_awaitable(awaitable: Awaitable[object]) -> None:
    if inspect.iscoroutine(awaitable):
        awaitable.close()


def _duration_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


__all__ = [
    "ValidationGate",
    "ValidationResult",
    "format_diagnostics",
    "run_validation_gate",
]
