"""
layout-orchestrator — smoke gate

File: src/layout_orchestrator/verification_plane/checkers/smoke_checker.py
Last updated: 2026-10-18

Purpose
- Renderability checks: every component must sit on the canvas with a drawable size.

Functional requirements
- Coordinates outside [COORDINATE_MIN, COORDINATE_MAX] are errors and use the
  ``coordinate out of bounds`` wording the repair classifier keys on.
- Extents above MAX_RENDERABLE_EXTENT are errors; tiny/huge sizes, overlaps and
  unlabeled interactive components are warnings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from layout_orchestrator.constants import (
    COORDINATE_MAX,
    COORDINATE_MIN,
    HUGE_EXTENT,
    MAX_RENDERABLE_EXTENT,
    TINY_EXTENT,
)
from layout_orchestrator.domain.diagnostics import Diagnostic, Gate, error, info, warning
from layout_orchestrator.domain.models import INTERACTIVE_COMPONENT_TYPES
from layout_orchestrator.verification_plane.checkers.base import (
    GateResult,
    overlap_warnings,
    register_builtin_checker,
)

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import ComponentSpec, Graph

_LABEL_PROPS = ("label", "placeholder", "name")


@register_builtin_checker(Gate.SMOKE)
class SmokeChecker:
    gate = Gate.SMOKE

    def check(self, graph: Graph) -> GateResult:
        try:
            diagnostics = self._run(graph)
        except Exception as exc:  # noqa: BLE001
            diagnostics = [error(self.gate, f"Smoke test execution failed: {exc}")]
        return GateResult.from_diagnostics(self.gate, diagnostics)

    def _run(self, graph: Graph) -> list[Diagnostic]:
        if not graph.nodes:
            return [info(self.gate, "Graph is empty (no components)")]

        diagnostics: list[Diagnostic] = []
        for node in graph.nodes:
            diagnostics.extend(self._interaction_checks(node))
            diagnostics.extend(self._bounds_checks(node))
            diagnostics.extend(self._size_checks(node))
        diagnostics.extend(overlap_warnings(self.gate, graph.nodes))
        return diagnostics

    def _interaction_checks(self, node: ComponentSpec) -> list[Diagnostic]:
        if node.type not in INTERACTIVE_COMPONENT_TYPES:
            return []
        if node.name or any(node.props.get(key) for key in _LABEL_PROPS):
            return []
        return [
            warning(
                self.gate,
                f"Interactive component {node.id} ({node.type}) has no label, placeholder, or name",
                component_id=node.id,
            )
        ]

    def _bounds_checks(self, node: ComponentSpec) -> list[Diagnostic]:
        found: list[Diagnostic] = []
        for axis in ("x", "y"):
            value = getattr(node.frame, axis)
            if not COORDINATE_MIN <= value <= COORDINATE_MAX:
                found.append(
                    error(
                        self.gate,
                        f"Component {node.id} has {axis} coordinate out of bounds: {value}",
                        component_id=node.id,
                        path=f"frame.{axis}",
                    )
                )

        for extent, label in (("w", "width"), ("h", "height")):
            value = getattr(node.frame, extent)
            if value <= 0 or value > MAX_RENDERABLE_EXTENT:
                found.append(
                    error(
                        self.gate,
                        f"Component {node.id} has invalid {label}: {value}",
                        component_id=node.id,
                        path=f"frame.{extent}",
                    )
                )
        return found

    def _size_checks(self, node: ComponentSpec) -> list[Diagnostic]:
        frame = node.frame
        if frame.w < TINY_EXTENT or frame.h < TINY_EXTENT:
            return [
                warning(
                    self.gate,
                    f"Component {node.id} is extremely small ({frame.w}x{frame.h}) "
                    "and may not render properly",
                    component_id=node.id,
                )
            ]
        if frame.w > HUGE_EXTENT or frame.h > HUGE_EXTENT:
            return [
                warning(
                    self.gate,
                    f"Component {node.id} is extremely large ({frame.w}x{frame.h}) "
                    "and may cause performance issues",
                    component_id=node.id,
                )
            ]
        return []


__all__ = ["SmokeChecker"]
