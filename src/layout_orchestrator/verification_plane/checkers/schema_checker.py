"""Schema gate: id uniqueness, child reference integrity and region overlap."""

from __future__ import annotations

from typing import TYPE_CHECKING

from layout_orchestrator.domain.diagnostics import Diagnostic, Gate, error
from layout_orchestrator.verification_plane.checkers.base import (
    GateResult,
    overlap_warnings,
    register_builtin_checker,
)

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph


@register_builtin_checker(Gate.SCHEMA)
class SchemaChecker:
    """Structural integrity of the node set."""

    gate = Gate.SCHEMA

    def check(self, graph: Graph) -> GateResult:
        diagnostics: list[Diagnostic] = []

        seen: set[str] = set()
        for node in graph.nodes:
            if node.id in seen:
                diagnostics.append(
                    error(self.gate, f"Duplicate component ID: {node.id}", component_id=node.id)
                )
            seen.add(node.id)

        for node in graph.nodes:
            for child_id in node.children:
                if child_id not in seen:
                    diagnostics.append(
                        error(
                            self.gate,
                            f"Invalid child reference in {node.id}: {child_id} does not exist",
                            component_id=node.id,
                        )
                    )

        diagnostics.extend(overlap_warnings(self.gate, graph.nodes))
        return GateResult.from_diagnostics(self.gate, diagnostics)


__all__ = ["SchemaChecker"]
