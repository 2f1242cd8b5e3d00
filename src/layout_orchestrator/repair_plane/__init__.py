"""
layout-orchestrator — repair plane

File: src/layout_orchestrator/repair_plane/__init__.py
Last updated: 2026-10-18

Purpose
- Classify gate diagnostics, dispatch them to repair strategies and keep
  rollback checkpoints for the repairs.
"""

from layout_orchestrator.repair_plane.classifier import CLASSIFICATION_RULES, ErrorClassifier
from layout_orchestrator.repair_plane.engine import (
    RepairConfig,
    RepairEngine,
    RepairResult,
    all_errors_addressed,
    prioritize,
)
from layout_orchestrator.repair_plane.strategies import (
    BUILTIN_STRATEGIES,
    RepairStrategy,
    RepairStrategyLibrary,
    StrategyOutcome,
)
from layout_orchestrator.repair_plane.transactions import (
    Checkpoint,
    RollbackResult,
    Transaction,
    TransactionManager,
)

__all__ = [
    "BUILTIN_STRATEGIES",
    "CLASSIFICATION_RULES",
    "Checkpoint",
    "ErrorClassifier",
    "RepairConfig",
    "RepairEngine",
    "RepairResult",
    "RepairStrategy",
    "RepairStrategyLibrary",
    "RollbackResult",
    "StrategyOutcome",
    "Transaction",
    "TransactionManager",
    "all_errors_addressed",
    "prioritize",
]
