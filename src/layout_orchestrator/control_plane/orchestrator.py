"""
layout-orchestrator — turn orchestrator

File: src/layout_orchestrator/control_plane/orchestrator.py
Last updated: 2026-10-18

Purpose
- Drive one turn end to end: Plan -> Patch -> Validate -> (Repair loop) -> Result.

What should be included in this file
- ``OrchestratorConfig`` reconciling the orchestrator and repair-engine budgets.
- ``TurnOrchestrator`` with the turn counter and cumulative repair metrics.
- ``TurnResult``/``TurnSummary`` and ``ValidationFailedError``.

Functional requirements
- An empty plan fails the turn without touching the graph or phase counters.
- A failed patch fails the turn with the input graph.
- With auto-repair disabled, a failed validation raises ``ValidationFailedError``.
- With auto-repair enabled, up to ``max_repair_attempts`` transactional repairs run;
  the first repaired graph that re-validates is accepted. Otherwise the last
  repaired graph is adopted, unless ``strict_acceptance`` is set, in which case
  the turn fails with the input graph.
- Repair metrics accumulate across turns until ``reset_repair_metrics``.

Non-functional requirements
- Turns on one orchestrator are serialized; phases inside a turn run sequentially.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import structlog

from layout_orchestrator.constants import (
    DEFAULT_GATE_TIMEOUT_SECONDS,
    ORCHESTRATOR_MAX_REPAIR_ATTEMPTS,
)
from layout_orchestrator.domain.commands import EditPlan
from layout_orchestrator.domain.diagnostics import Diagnostic, count_errors
from layout_orchestrator.domain.ids import generate_turn_id
from layout_orchestrator.integration_plane.patcher import (
    GraphChanges,
    Patcher,
    calculate_changes,
)
from layout_orchestrator.observability.logging import correlation_scope
from layout_orchestrator.observability.metrics import (
    FAILED_REPAIRS,
    REPAIR_ATTEMPTS,
    REPAIR_COUNTERS,
    ROLLBACKS,
    SUCCESSFUL_REPAIRS,
    TURNS,
    MetricsRegistry,
    RepairMetrics,
)
from layout_orchestrator.repair_plane.engine import RepairConfig, RepairEngine
from layout_orchestrator.utils.concurrency import resolve_maybe_awaitable
from layout_orchestrator.verification_plane.pipeline import ValidationGate, ValidationResult

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph, JSONValue
    from layout_orchestrator.planning.planner import Planner

NO_OPERATIONS: str = "No operations generated from intent"
REPAIR_NOT_ACCEPTED: str = "Repair did not produce a valid graph"


class ValidationFailedError(Exception):
    """The only turn outcome that is raised instead of returned."""

    def __init__(self, diagnostics: Sequence[Diagnostic]) -> None:
        self.diagnostics = tuple(diagnostics)
        self.error_count = count_errors(self.diagnostics)
        super().__init__(f"Validation failed with {self.error_count} errors")


@dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    verbose: bool = False
    enable_auto_repair: bool = True
    max_repair_attempts: int = ORCHESTRATOR_MAX_REPAIR_ATTEMPTS
    strict_acceptance: bool = False
    gate_timeout_seconds: float = DEFAULT_GATE_TIMEOUT_SECONDS
    repair: RepairConfig = field(default_factory=RepairConfig)

    def __post_init__(self) -> None:
        if self.max_repair_attempts < 1:
            raise ValueError("OrchestratorConfig.max_repair_attempts: must be >= 1")
        if self.gate_timeout_seconds <= 0:
            raise ValueError("OrchestratorConfig.gate_timeout_seconds: must be > 0")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> OrchestratorConfig:
        """Build from an effective config as returned by ``load_config``."""
        orchestrator = dict(config.get("orchestrator", {}))
        repair = dict(config.get("repair", {}))
        validation = dict(config.get("validation", {}))
        defaults = cls()
        return cls(
            verbose=bool(orchestrator.get("verbose", defaults.verbose)),
            enable_auto_repair=bool(
                orchestrator.get("enable_auto_repair", defaults.enable_auto_repair)
            ),
            max_repair_attempts=int(
                orchestrator.get("max_repair_attempts", defaults.max_repair_attempts)
            ),
            strict_acceptance=bool(
                orchestrator.get("strict_acceptance", defaults.strict_acceptance)
            ),
            gate_timeout_seconds=float(
                validation.get("gate_timeout_seconds", defaults.gate_timeout_seconds)
            ),
            repair=RepairConfig(**repair),
        )


@dataclass(frozen=True, slots=True)
class TurnSummary:
    commands_processed: int
    changes: GraphChanges
    description: str
    repair_metrics: RepairMetrics | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "commandsProcessed": self.commands_processed,
            "changes": dict(self.changes.to_dict()),
            "description": self.description,
        }
        if self.repair_metrics is not None:
            out["repairMetrics"] = dict(self.repair_metrics.to_dict())
        return out


@dataclass(frozen=True, slots=True)
class TurnResult:
    success: bool
    graph: Graph
    summary: TurnSummary
    diagnostics: tuple[Diagnostic, ...] = ()
    fixes: tuple[str, ...] = ()
    turn_id: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "success": self.success,
            "turnId": self.turn_id,
            "summary": self.summary.to_dict(),
            "diagnostics": [item.to_dict() for item in self.diagnostics],
            "fixes": list(self.fixes),
            "graph": self.graph.to_dict(),
        }


@dataclass(slots=True)
class _RepairOutcome:
    graph: Graph
    diagnostics: list[Diagnostic]
    fixes: tuple[str, ...] = ()
    valid: bool = False


class TurnOrchestrator:
    """Serialized turn state machine over one graph lineage."""

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        planner: Planner | None = None,
        patcher: Patcher | None = None,
        gate: ValidationGate | None = None,
        metrics: MetricsRegistry | None = None,
        engine_factory: Callable[[RepairConfig], RepairEngine] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._config = config or OrchestratorConfig()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._metrics = metrics if metrics is not None else MetricsRegistry()
        self._planner = planner
        self._patcher = patcher or Patcher(logger=self._logger)
        self._gate = gate or ValidationGate(
            gate_timeout_seconds=self._config.gate_timeout_seconds,
            metrics=self._metrics,
            logger=self._logger,
        )
        self._engine_factory = engine_factory or self._default_engine
        self._lock = asyncio.Lock()
        self._turn_counter = 0

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    @property
    def turn_counter(self) -> int:
        return self._turn_counter

    def reset_turn_counter(self) -> None:
        self._turn_counter = 0

    def repair_metrics(self) -> RepairMetrics:
        return RepairMetrics.from_registry(self._metrics)

    def reset_repair_metrics(self) -> None:
        self._metrics.reset(REPAIR_COUNTERS)

    async def execute_intent(self, intent: str, graph: Graph) -> TurnResult:
        """Plan ``intent`` with the configured planner, then execute the turn."""
        if self._planner is None:
            raise RuntimeError("execute_intent requires a planner")
        plan = await resolve_maybe_awaitable(self._planner.plan(intent, graph))
        if plan is None:
            plan = EditPlan(operations=(), description=NO_OPERATIONS, prompt=intent)
        return await self.execute_turn(plan, graph)

    async def execute_turn(self, plan: EditPlan, graph: Graph) -> TurnResult:
        async with self._lock:
            turn_id = self._begin_turn()
            with correlation_scope(turn_id=turn_id, plan_id=plan.id):
                result = await self._run_turn(plan, graph)
            return replace(result, turn_id=turn_id)

    # ------------------------
    # Phases
    # ------------------------

    def _begin_turn(self) -> str:
        self._turn_counter += 1
        self._metrics.inc(TURNS)
        turn_id = generate_turn_id()
        self._trace("turn_started", turn=self._turn_counter, turn_id=turn_id)
        return turn_id

    async def _run_turn(self, plan: EditPlan, graph: Graph) -> TurnResult:
        if plan.is_empty:
            self._trace("turn_rejected", reason="empty_plan")
            return _failure(graph, NO_OPERATIONS)

        patch = self._patcher.apply(graph, plan)
        if not patch.success:
            self._logger.info("turn_patch_failed", errors=list(patch.errors))
            return _failure(graph, f"Patch failed: {', '.join(patch.errors)}")

        validation = await self._gate.run(patch.graph)
        self._trace(
            "turn_validated",
            passed=validation.passed,
            errors=validation.error_count,
            failed_gate=None if validation.failed_gate is None else validation.failed_gate.value,
        )
        if validation.passed:
            return self._success(graph, patch.graph, plan, patch.applied_count, validation.diagnostics)

        if not self._config.enable_auto_repair:
            self._logger.warning("turn_validation_failed", errors=validation.error_count)
            raise ValidationFailedError(validation.diagnostics)

        outcome = await self._repair(patch.graph, validation)
        if not outcome.valid and self._config.strict_acceptance:
            self._logger.warning(
                "turn_repair_rejected", errors=count_errors(outcome.diagnostics)
            )
            return _failure(
                graph,
                REPAIR_NOT_ACCEPTED,
                diagnostics=outcome.diagnostics,
                fixes=outcome.fixes,
                repair_metrics=self.repair_metrics(),
            )
        return self._success(
            graph,
            outcome.graph,
            plan,
            patch.applied_count,
            outcome.diagnostics,
            fixes=outcome.fixes,
        )

    async def _repair(self, graph: Graph, validation: ValidationResult) -> _RepairOutcome:
        engine = self._engine_factory(self._repair_config())
        budget = self._config.max_repair_attempts
        outcome = _RepairOutcome(graph=graph, diagnostics=list(validation.diagnostics))
        pending = list(validation.diagnostics)

        for attempt in range(1, budget + 1):
            self._metrics.inc(REPAIR_ATTEMPTS)
            self._trace("turn_repair_attempt", attempt=attempt, max_attempts=budget)
            result = await engine.execute_repair_with_transaction(
                outcome.graph, pending, self._gate.diagnostics_async
            )
            if result.rolled_back:
                self._metrics.inc(ROLLBACKS)
            if not result.success:
                self._metrics.inc(FAILED_REPAIRS)
                self._trace(
                    "turn_repair_failed", attempt=attempt, remaining=result.remaining_errors
                )
                continue

            # Adopted even when re-validation still fails; only strict acceptance rejects it.
            self._metrics.inc(SUCCESSFUL_REPAIRS)
            revalidation = await self._gate.run(result.graph)
            outcome.graph = result.graph
            outcome.fixes = result.fixes
            outcome.diagnostics = list(revalidation.diagnostics)
            if revalidation.passed:
                outcome.valid = True
                self._trace("turn_repair_succeeded", attempt=attempt)
                return outcome
            pending = list(revalidation.diagnostics)
            self._trace(
                "turn_repair_incomplete", attempt=attempt, errors=revalidation.error_count
            )

        self._logger.warning(
            "turn_repair_exhausted", attempts=budget, errors=count_errors(outcome.diagnostics)
        )
        return outcome

    def _success(
        self,
        before: Graph,
        after: Graph,
        plan: EditPlan,
        applied_count: int,
        diagnostics: Sequence[Diagnostic],
        *,
        fixes: Sequence[str] = (),
    ) -> TurnResult:
        return TurnResult(
            success=True,
            graph=after,
            summary=TurnSummary(
                commands_processed=applied_count,
                changes=calculate_changes(before, after),
                description=plan.description,
                repair_metrics=self.repair_metrics(),
            ),
            diagnostics=tuple(diagnostics),
            fixes=tuple(fixes),
        )

    def _repair_config(self) -> RepairConfig:
        repair = self._config.repair
        if self._config.verbose and not repair.verbose:
            return replace(repair, verbose=True)
        return repair

    def _default_engine(self, config: RepairConfig) -> RepairEngine:
        return RepairEngine(config, logger=self._logger)

    def _trace(self, event: str, **fields: object) -> None:
        if self._config.verbose:
            self._logger.info(event, **fields)
        else:
            self._logger.debug(event, **fields)


def _failure(
    graph: Graph,
    description: str,
    *,
    diagnostics: Sequence[Diagnostic] = (),
    fixes: Sequence[str] = (),
    repair_metrics: RepairMetrics | None = None,
) -> TurnResult:
    return TurnResult(
        success=False,
        graph=graph,
        summary=TurnSummary(
            commands_processed=0,
            changes=GraphChanges(),
            description=description,
            repair_metrics=repair_metrics,
        ),
        diagnostics=tuple(diagnostics),
        fixes=tuple(fixes),
    )


__all__ = [
    "NO_OPERATIONS",
    "REPAIR_NOT_ACCEPTED",
    "OrchestratorConfig",
    "TurnOrchestrator",
    "TurnResult",
    "TurnSummary",
    "ValidationFailedError",
]
