"""
layout-orchestrator — repair transactions and checkpoints

File: src/layout_orchestrator/repair_plane/transactions.py
Last updated: 2026-10-18

Purpose
- Snapshot graphs during repair so a failed repair can be rolled back.

Functional requirements
- ``create_transaction`` deep-copies the starting graph and records an initial checkpoint.
- ``create_checkpoint`` appends to the most recent transaction (capped at
  ``max_rollback_depth``) and to the global history (capped at twice that).
  Overflow evicts the oldest entry.
- ``rollback_to_checkpoint`` returns a fresh deep copy; neither the live graph
  nor the stored snapshot is touched.
- ``complete_transaction`` only flips the completion flag.

Non-functional requirements
- Transaction history is a bounded ring buffer.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from layout_orchestrator.constants import (
    DEFAULT_MAX_ROLLBACK_DEPTH,
    DEFAULT_TRANSACTION_HISTORY_LIMIT,
)
from layout_orchestrator.domain.ids import generate_checkpoint_id, generate_transaction_id
from layout_orchestrator.domain.models import JSONValue, utc_now

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph


@dataclass(frozen=True, slots=True)
class Checkpoint:
    id: str
    timestamp: datetime
    graph: Graph
    description: str
    metadata: dict[str, JSONValue] = field(default_factory=dict)


@dataclass(slots=True)
class Transaction:
    id: str
    timestamp: datetime
    original_graph: Graph
    operations: list[str]
    checkpoints: deque[Checkpoint]
    completed: bool = False
    rollback_applied: bool = False


@dataclass(frozen=True, slots=True)
class RollbackResult:
    success: bool
    graph: Graph
    applied_fixes: tuple[str, ...] = ()
    rollback_steps: int = 0


class TransactionManager:
    def __init__(
        self,
        *,
        max_rollback_depth: int = DEFAULT_MAX_ROLLBACK_DEPTH,
        transaction_history_limit: int = DEFAULT_TRANSACTION_HISTORY_LIMIT,
        logger: Any | None = None,
    ) -> None:
        if max_rollback_depth < 1:
            raise ValueError("max_rollback_depth must be >= 1")
        if transaction_history_limit < 1:
            raise ValueError("transaction_history_limit must be >= 1")
        self._max_rollback_depth = max_rollback_depth
        self._transactions: deque[Transaction] = deque(maxlen=transaction_history_limit)
        self._checkpoints: deque[Checkpoint] = deque(maxlen=max_rollback_depth * 2)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def max_rollback_depth(self) -> int:
        return self._max_rollback_depth

    def create_transaction(self, graph: Graph, description: str) -> Transaction:
        transaction = Transaction(
            id=generate_transaction_id(),
            timestamp=utc_now(),
            original_graph=graph.clone(),
            operations=[description],
            checkpoints=deque(maxlen=self._max_rollback_depth),
        )
        self._transactions.append(transaction)
        self._logger.debug(
            "transaction_created", transaction_id=transaction.id, description=description
        )
        self.create_checkpoint(
            graph,
            f"Initial state for transaction {transaction.id}",
            {"transactionId": transaction.id},
        )
        return transaction

    def create_checkpoint(
        self,
        graph: Graph,
        description: str,
        metadata: dict[str, JSONValue] | None = None,
    ) -> Checkpoint:
        checkpoint = Checkpoint(
            id=generate_checkpoint_id(),
            timestamp=utc_now(),
            graph=graph.clone(),
            description=description,
            metadata=dict(metadata or {}),
        )
        if self._transactions:
            self._transactions[-1].checkpoints.append(checkpoint)
        self._checkpoints.append(checkpoint)
        self._logger.debug(
            "checkpoint_created", checkpoint_id=checkpoint.id, description=description
        )
        return checkpoint

    def rollback_to_checkpoint(self, checkpoint_id: str, graph: Graph) -> RollbackResult:
        """Restore a checkpoint; ``graph`` is handed back unchanged when it is unknown."""
        checkpoint = next((item for item in self._checkpoints if item.id == checkpoint_id), None)
        if checkpoint is None:
            return RollbackResult(
                success=False,
                graph=graph,
                applied_fixes=(f"Checkpoint {checkpoint_id} not found",),
            )

        for transaction in self._transactions:
            if any(item.id == checkpoint_id for item in transaction.checkpoints):
                transaction.rollback_applied = True
        self._logger.info(
            "checkpoint_restored", checkpoint_id=checkpoint_id, description=checkpoint.description
        )
        return RollbackResult(
            success=True,
            graph=checkpoint.graph.clone(),
            applied_fixes=(f"Rolled back to checkpoint: {checkpoint.description}",),
            rollback_steps=1,
        )

    def rollback_last(self, graph: Graph) -> RollbackResult:
        if not self._checkpoints:
            return RollbackResult(
                success=False,
                graph=graph,
                applied_fixes=("No checkpoints available for rollback",),
            )
        return self.rollback_to_checkpoint(self._checkpoints[-1].id, graph)

    def complete_transaction(self, transaction_id: str) -> bool:
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            return False
        transaction.completed = True
        return True

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def active_transactions(self) -> list[Transaction]:
        return [transaction for transaction in self._transactions if not transaction.completed]

    def recent_checkpoints(self, count: int = 5) -> list[Checkpoint]:
        if count <= 0:
            return []
        return list(self._checkpoints)[-count:]


__all__ = ["Checkpoint", "RollbackResult", "Transaction", "TransactionManager"]
