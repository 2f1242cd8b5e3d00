"""
layout-orchestrator — domain layer

File: src/layout_orchestrator/domain/__init__.py
Last updated: 2026-10-18

Purpose
- Data contracts shared across planes: Graph, ComponentSpec, commands, edit plans, diagnostics.

Functional requirements
- Domain objects serialize to canonical camelCase JSON and parse back losslessly.

Non-functional requirements
- Domain layer stays free of IO side effects.
"""

from layout_orchestrator.domain.commands import (
    AddCommand,
    Command,
    CommandType,
    ComponentUpdates,
    EditPlan,
    MoveCommand,
    PlanMeta,
    PlanPriority,
    RemoveCommand,
    SetTokensCommand,
    UpdateCommand,
)
from layout_orchestrator.domain.diagnostics import (
    ClassifiedDiagnostic,
    Diagnostic,
    DiagnosticLocation,
    ErrorType,
    Gate,
    Severity,
)
from layout_orchestrator.domain.models import (
    ComponentSpec,
    ComponentType,
    Frame,
    Graph,
    GraphMeta,
    TokenSet,
    Typography,
)

__all__ = [
    "AddCommand",
    "ClassifiedDiagnostic",
    "Command",
    "CommandType",
    "ComponentSpec",
    "ComponentType",
    "ComponentUpdates",
    "Diagnostic",
    "DiagnosticLocation",
    "EditPlan",
    "ErrorType",
    "Frame",
    "Gate",
    "Graph",
    "GraphMeta",
    "MoveCommand",
    "PlanMeta",
    "PlanPriority",
    "RemoveCommand",
    "SetTokensCommand",
    "Severity",
    "TokenSet",
    "Typography",
    "UpdateCommand",
]
