"""
layout-orchestrator — gate checkers

File: src/layout_orchestrator/verification_plane/checkers/__init__.py
Last updated: 2026-10-18

Purpose
- One checker per validation gate (schema, lint, types, unit, smoke).

Functional requirements
- Importing this package registers every built-in checker in DEFAULT_CHECKER_REGISTRY.
"""

from layout_orchestrator.verification_plane.checkers.base import (
    DEFAULT_CHECKER_REGISTRY,
    CheckerFactory,
    CheckerRegistry,
    GateChecker,
    GateResult,
    frames_overlap,
    has_numeric_frame,
    overlap_warnings,
    register_builtin_checker,
)
from layout_orchestrator.verification_plane.checkers.lint_checker import LintChecker
from layout_orchestrator.verification_plane.checkers.schema_checker import SchemaChecker
from layout_orchestrator.verification_plane.checkers.smoke_checker import SmokeChecker
from layout_orchestrator.verification_plane.checkers.test_checker import UnitTestChecker
from layout_orchestrator.verification_plane.checkers.typecheck_checker import (
    TypeCheckChecker,
    find_cycles,
)

__all__ = [
    "DEFAULT_CHECKER_REGISTRY",
    "CheckerFactory",
    "CheckerRegistry",
    "GateChecker",
    "GateResult",
    "LintChecker",
    "SchemaChecker",
    "SmokeChecker",
    "TypeCheckChecker",
    "UnitTestChecker",
    "find_cycles",
    "frames_overlap",
    "has_numeric_frame",
    "overlap_warnings",
    "register_builtin_checker",
]
