"""
layout-orchestrator — repair engine

File: src/layout_orchestrator/repair_plane/engine.py
Last updated: 2026-10-18

Purpose
- Turn error diagnostics into graph fixes: classify, prioritize, dispatch to
  strategies and loop with re-validation until the graph is clean or the
  attempt budget runs out.

Functional requirements
- ``attempt_repair`` ignores warning/info diagnostics and reports
  ``No repairs needed`` when no errors remain.
- Duplicate-id errors are repaired first, invalid references second, all others
  keep their original relative order.
- Repeated errors (same type, message and location) are repaired once; schema
  violations addressed only by node index are bound to that node's id first.
- An attempt succeeds when every original error message (its first 30
  characters) appears in some recorded fix description.
- ``repair_loop`` requires a synchronous ``validate`` and calls it at most once
  per attempt; ``repair_loop_async`` accepts sync or async validators.
- ``execute_repair_with_transaction`` never raises for repair failures: it rolls
  back to the last checkpoint when rollback is enabled and reports failure.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog

from layout_orchestrator.constants import (
    DEFAULT_MAX_ROLLBACK_DEPTH,
    DEFAULT_REPAIR_TIMEOUT_MS,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TRANSACTION_HISTORY_LIMIT,
    ENGINE_MAX_REPAIR_ATTEMPTS,
    NO_REPAIRS_NEEDED,
)
from layout_orchestrator.domain.diagnostics import (
    ClassifiedDiagnostic,
    Diagnostic,
    ErrorType,
    count_errors,
)
from layout_orchestrator.repair_plane.classifier import ErrorClassifier
from layout_orchestrator.repair_plane.strategies import RepairStrategyLibrary, pin_node_targets
from layout_orchestrator.repair_plane.transactions import RollbackResult, TransactionManager
from layout_orchestrator.utils.concurrency import resolve_maybe_awaitable, run_with_timeout

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph, JSONValue
    from layout_orchestrator.repair_plane.transactions import Transaction

SyncValidator = Callable[["Graph"], Sequence[Diagnostic]]
Validator = Callable[["Graph"], Sequence[Diagnostic] | Awaitable[Sequence[Diagnostic]]]

SUCCESS_MATCH_PREFIX: Final[int] = 30

_REPAIR_PRIORITY: Final[dict[ErrorType, int]] = {
    ErrorType.DUPLICATE_ID: 0,
    ErrorType.INVALID_REFERENCE: 1,
}


@dataclass(frozen=True, slots=True)
class RepairConfig:
    max_repair_attempts: int = ENGINE_MAX_REPAIR_ATTEMPTS
    max_rollback_depth: int = DEFAULT_MAX_ROLLBACK_DEPTH
    enable_rollback: bool = True
    verbose: bool = False
    timeout_ms: int = DEFAULT_REPAIR_TIMEOUT_MS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    transaction_history_limit: int = DEFAULT_TRANSACTION_HISTORY_LIMIT

    def __post_init__(self) -> None:
        if self.max_repair_attempts < 1:
            raise ValueError("RepairConfig.max_repair_attempts: must be >= 1")
        if self.max_rollback_depth < 1:
            raise ValueError("RepairConfig.max_rollback_depth: must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("RepairConfig.timeout_ms: must be > 0")
        if self.retry_delay_ms < 0:
            raise ValueError("RepairConfig.retry_delay_ms: must be >= 0")
        if self.transaction_history_limit < 1:
            raise ValueError("RepairConfig.transaction_history_limit: must be >= 1")


@dataclass(frozen=True, slots=True)
class RepairResult:
    success: bool
    graph: Graph
    fixes: tuple[str, ...] = ()
    remaining_issues: tuple[Diagnostic, ...] = ()
    rolled_back: bool = False
    attempts: int = field(default=1, compare=False)

    @property
    def remaining_errors(self) -> int:
        return count_errors(self.remaining_issues)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "success": self.success,
            "fixes": list(self.fixes),
            "remainingIssues": [item.to_dict() for item in self.remaining_issues],
            "rolledBack": self.rolled_back,
            "attempts": self.attempts,
        }


class RepairEngine:
    """Coordinates classification, strategy dispatch and transactional rollback."""

    def __init__(
        self,
        config: RepairConfig | None = None,
        *,
        library: RepairStrategyLibrary | None = None,
        classifier: ErrorClassifier | None = None,
        transactions: TransactionManager | None = None,
        logger: Any | None = None,
    ) -> None:
        self._config = config or RepairConfig()
        self._library = library or RepairStrategyLibrary()
        self._classifier = classifier or ErrorClassifier()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._transactions = transactions or TransactionManager(
            max_rollback_depth=self._config.max_rollback_depth,
            transaction_history_limit=self._config.transaction_history_limit,
            logger=self._logger,
        )

    @property
    def config(self) -> RepairConfig:
        return self._config

    @property
    def library(self) -> RepairStrategyLibrary:
        return self._library

    @property
    def transaction_manager(self) -> TransactionManager:
        return self._transactions

    # ------------------------
    # Single pass
    # ------------------------

    def attempt_repair(self, graph: Graph, diagnostics: Iterable[Diagnostic]) -> RepairResult:
        incoming = list(diagnostics)
        classified = self._classifier.classify_all(incoming)
        advisory = [item for item in incoming if not item.is_error]
        errors = distinct_errors(
            pin_node_targets(graph, [item for item in classified if item.is_error])
        )

        transaction = self._transactions.create_transaction(graph, "Repair attempt")
        working = graph.clone()

        if not errors:
            self._trace("repair_not_needed", advisory=len(advisory))
            self._transactions.complete_transaction(transaction.id)
            return RepairResult(
                success=True,
                graph=working,
                fixes=(NO_REPAIRS_NEEDED,),
                remaining_issues=tuple(advisory),
            )

        fixes: list[str] = []
        unresolved: list[Diagnostic] = []
        for diagnostic in prioritize(errors):
            outcome = self._library.dispatch(working, diagnostic)
            if outcome.success:
                working = outcome.graph
                fixes.append(outcome.description)
                self._trace(
                    "repair_fix_applied",
                    error_type=diagnostic.error_type.value,
                    description=outcome.description,
                )
            else:
                unresolved.append(diagnostic)
                self._trace(
                    "repair_fix_failed",
                    error_type=diagnostic.error_type.value,
                    diagnostic=diagnostic.message,
                )

        success = all_errors_addressed(errors, fixes)
        self._transactions.complete_transaction(transaction.id)
        self._trace(
            "repair_attempt_completed",
            success=success,
            fixes=len(fixes),
            remaining_errors=len(unresolved),
        )
        return RepairResult(
            success=success,
            graph=working,
            fixes=tuple(fixes),
            remaining_issues=(*unresolved, *advisory),
        )

    # ------------------------
    # Loops
    # ------------------------

    def repair_loop(
        self,
        graph: Graph,
        diagnostics: Iterable[Diagnostic],
        validate: SyncValidator,
        max_attempts: int | None = None,
    ) -> RepairResult:
        """Repair with synchronous re-validation after every unsuccessful attempt."""
        budget = self._attempt_budget(max_attempts)
        transaction = self._transactions.create_transaction(graph, "Repair loop")
        current_graph = graph
        current = list(diagnostics)
        fixes: list[str] = []

        for attempt in range(1, budget + 1):
            result = self._loop_attempt(transaction, current_graph, current, attempt, fixes)
            if result.success:
                return self._loop_success(transaction, result.graph, fixes, result.remaining_issues, attempt)
            current_graph = result.graph
            outcome = validate(current_graph)
            if inspect.isawaitable(outcome):
                if inspect.iscoroutine(outcome):
                    outcome.close()
                raise TypeError("repair_loop requires a synchronous validate; use repair_loop_async")
            current = list(outcome)
            if count_errors(current) == 0:
                return self._loop_success(transaction, current_graph, fixes, current, attempt)
            self._trace("repair_errors_remaining", attempt=attempt, errors=count_errors(current))

        return self._loop_exhausted(transaction, current_graph, fixes, current, budget)

    async def repair_loop_async(
        self,
        graph: Graph,
        diagnostics: Iterable[Diagnostic],
        validate: Validator,
        max_attempts: int | None = None,
    ) -> RepairResult:
        """Same contract as ``repair_loop``; waits ``retry_delay_ms`` between attempts."""
        budget = self._attempt_budget(max_attempts)
        transaction = self._transactions.create_transaction(graph, "Repair loop")
        current_graph = graph
        current = list(diagnostics)
        fixes: list[str] = []

        for attempt in range(1, budget + 1):
            if attempt > 1 and self._config.retry_delay_ms:
                await asyncio.sleep(self._config.retry_delay_ms / 1000)
            result = self._loop_attempt(transaction, current_graph, current, attempt, fixes)
            if result.success:
                return self._loop_success(transaction, result.graph, fixes, result.remaining_issues, attempt)
            current_graph = result.graph
            current = list(await resolve_maybe_awaitable(validate(current_graph)))
            if count_errors(current) == 0:
                return self._loop_success(transaction, current_graph, fixes, current, attempt)
            self._trace("repair_errors_remaining", attempt=attempt, errors=count_errors(current))

        return self._loop_exhausted(transaction, current_graph, fixes, current, budget)

    # ------------------------
    # Rollback
    # ------------------------

    def rollback(self, graph: Graph, steps: int = 1) -> RollbackResult:
        """Walk back ``steps`` checkpoints through the global history."""
        if not self._config.enable_rollback:
            return RollbackResult(success=False, graph=graph, applied_fixes=("Rollback is disabled",))
        if steps < 1:
            raise ValueError("steps must be >= 1")

        history = self._transactions.recent_checkpoints(steps)
        if not history:
            return self._transactions.rollback_last(graph)

        current = graph
        applied: list[str] = []
        performed = 0
        for checkpoint in reversed(history):
            result = self._transactions.rollback_to_checkpoint(checkpoint.id, current)
            if not result.success:
                break
            current = result.graph
            applied.extend(result.applied_fixes)
            performed += 1
        self._logger.info("repair_rolled_back", steps=performed)
        return RollbackResult(
            success=performed > 0,
            graph=current,
            applied_fixes=tuple(applied),
            rollback_steps=performed,
        )

    async def execute_repair_with_transaction(
        self,
        graph: Graph,
        diagnostics: Iterable[Diagnostic],
        validate: Validator,
    ) -> RepairResult:
        """Run a bounded repair loop inside a transaction; never raises on repair failure."""
        original = list(diagnostics)
        transaction = self._transactions.create_transaction(graph, "Atomic repair transaction")
        try:
            result = await run_with_timeout(
                self.repair_loop_async(graph, original, validate),
                self._config.timeout_ms / 1000,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("repair_transaction_crashed", error=str(exc), error_type=type(exc).__name__)
            return self._failed_transaction(graph, original, (f"Repair failed: {exc}",))

        if not result.success:
            return self._failed_transaction(graph, original, result.fixes, attempts=result.attempts)

        self._transactions.complete_transaction(transaction.id)
        return result

    # ------------------------
    # Internals
    # ------------------------

    def _attempt_budget(self, max_attempts: int | None) -> int:
        budget = self._config.max_repair_attempts if max_attempts is None else max_attempts
        if budget < 1:
            raise ValueError("max_attempts must be >= 1")
        return budget

    def _loop_attempt(
        self,
        transaction: Transaction,
        graph: Graph,
        diagnostics: list[Diagnostic],
        attempt: int,
        fixes: list[str],
    ) -> RepairResult:
        self._transactions.create_checkpoint(
            graph,
            f"Before repair attempt {attempt}",
            {"attempt": attempt, "transactionId": transaction.id},
        )
        result = self.attempt_repair(graph, diagnostics)
        fixes.extend(result.fixes)
        return result

    def _loop_success(
        self,
        transaction: Transaction,
        graph: Graph,
        fixes: list[str],
        remaining: Iterable[Diagnostic],
        attempt: int,
    ) -> RepairResult:
        self._transactions.complete_transaction(transaction.id)
        self._trace("repair_loop_succeeded", attempts=attempt)
        return RepairResult(
            success=True,
            graph=graph,
            fixes=tuple(fixes),
            remaining_issues=tuple(remaining),
            attempts=attempt,
        )

    def _loop_exhausted(
        self,
        transaction: Transaction,
        graph: Graph,
        fixes: list[str],
        remaining: list[Diagnostic],
        attempts: int,
    ) -> RepairResult:
        self._transactions.complete_transaction(transaction.id)
        self._logger.warning(
            "repair_loop_exhausted", attempts=attempts, errors=count_errors(remaining)
        )
        return RepairResult(
            success=False,
            graph=graph,
            fixes=tuple(fixes),
            remaining_issues=tuple(remaining),
            attempts=attempts,
        )

    def _failed_transaction(
        self,
        graph: Graph,
        diagnostics: list[Diagnostic],
        fixes: Iterable[str],
        *,
        attempts: int = 1,
    ) -> RepairResult:
        if not self._config.enable_rollback:
            return RepairResult(
                success=False,
                graph=graph,
                fixes=tuple(fixes),
                remaining_issues=tuple(diagnostics),
                attempts=attempts,
            )
        rollback = self.rollback(graph)
        return RepairResult(
            success=False,
            graph=rollback.graph,
            fixes=(*fixes, *rollback.applied_fixes),
            remaining_issues=tuple(diagnostics),
            rolled_back=rollback.success,
            attempts=attempts,
        )

    def _trace(self, event: str, **fields: object) -> None:
        if self._config.verbose:
            self._logger.info(event, **fields)
        else:
            self._logger.debug(event, **fields)


def prioritize(errors: Iterable[ClassifiedDiagnostic]) -> list[ClassifiedDiagnostic]:
    """Duplicate ids first, invalid references second, the rest in original order."""
    return sorted(errors, key=lambda item: _REPAIR_PRIORITY.get(item.error_type, len(_REPAIR_PRIORITY)))


def distinct_errors(errors: Iterable[ClassifiedDiagnostic]) -> list[ClassifiedDiagnostic]:
    """Drop repeats of an error already seen with the same type, message and location."""
    seen: set[tuple[ErrorType, str, object]] = set()
    unique: list[ClassifiedDiagnostic] = []
    for item in errors:
        key = (item.error_type, item.message, item.location)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def all_errors_addressed(errors: Iterable[Diagnostic], fixes: Sequence[str]) -> bool:
    return all(
        any(error.message[:SUCCESS_MATCH_PREFIX] in fix for fix in fixes) for error in errors
    )


__all__ = [
    "SUCCESS_MATCH_PREFIX",
    "RepairConfig",
    "RepairEngine",
    "RepairResult",
    "SyncValidator",
    "Validator",
    "all_errors_addressed",
    "distinct_errors",
    "prioritize",
]
