"""Validation gates and the pipeline that runs them."""

from layout_orchestrator.verification_plane.checkers import (
    DEFAULT_CHECKER_REGISTRY,
    CheckerRegistry,
    GateChecker,
    GateResult,
)
from layout_orchestrator.verification_plane.pipeline import (
    ValidationGate,
    ValidationResult,
    format_diagnostics,
    run_validation_gate,
)

__all__ = [
    "DEFAULT_CHECKER_REGISTRY",
    "CheckerRegistry",
    "GateChecker",
    "GateResult",
    "ValidationGate",
    "ValidationResult",
    "format_diagnostics",
    "run_validation_gate",
]
