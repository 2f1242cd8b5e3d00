"""
layout-orchestrator — integration plane

File: src/layout_orchestrator/integration_plane/__init__.py
Last updated: 2026-10-18

Purpose
- Integration plane: atomic application of edit plans to the layout graph.

Functional requirements
- A plan is applied completely or not at all; the caller's graph is never mutated.
"""

from layout_orchestrator.integration_plane.patcher import (
    GraphChanges,
    PatchCommandError,
    PatchResult,
    Patcher,
    apply_patch,
    calculate_changes,
    removal_closure,
)

__all__ = [
    "GraphChanges",
    "PatchCommandError",
    "PatchResult",
    "Patcher",
    "apply_patch",
    "calculate_changes",
    "removal_closure",
]
