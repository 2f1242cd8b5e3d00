"""Control plane: the turn orchestrator and its result types."""

from layout_orchestrator.control_plane.orchestrator import (
    NO_OPERATIONS,
    REPAIR_NOT_ACCEPTED,
    OrchestratorConfig,
    TurnOrchestrator,
    TurnResult,
    TurnSummary,
    ValidationFailedError,
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
