"""
layout-orchestrator — lint gate

File: src/layout_orchestrator/verification_plane/checkers/lint_checker.py
Last updated: 2026-10-18

Purpose
- Style and hygiene checks over component names, props and geometry.

Functional requirements
- Emits warning and info diagnostics only; the lint gate never blocks a turn.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import TYPE_CHECKING, Final

from layout_orchestrator.domain.diagnostics import Diagnostic, Gate, info, warning
from layout_orchestrator.domain.models import ComponentType
from layout_orchestrator.verification_plane.checkers.base import (
    GateResult,
    has_numeric_frame,
    register_builtin_checker,
)

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import ComponentSpec, Graph

KEBAB_CASE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")

MIN_REASONABLE_DIMENSION: Final[float] = 10
MAX_REASONABLE_DIMENSION: Final[float] = 5000
MIN_REASONABLE_POSITION: Final[float] = -1000
MAX_REASONABLE_POSITION: Final[float] = 10000

# Any one of the listed props satisfies the requirement.
REQUIRED_PROPS: Final[dict[str, tuple[tuple[str, ...], str]]] = {
    ComponentType.BUTTON: (("label", "text", "children"), "a label, text, or children prop"),
    ComponentType.INPUT: (("placeholder", "label"), "a placeholder or label prop"),
    ComponentType.MODAL: (("title", "header"), "a title or header prop"),
}

_TYPE_TITLES: Final[dict[str, str]] = {
    ComponentType.BUTTON: "Button",
    ComponentType.INPUT: "Input",
    ComponentType.MODAL: "Modal",
}


@register_builtin_checker(Gate.LINT)
class LintChecker:
    gate = Gate.LINT

    def check(self, graph: Graph) -> GateResult:
        diagnostics: list[Diagnostic] = []
        names: dict[str, list[str]] = defaultdict(list)

        for node in graph.nodes:
            diagnostics.extend(self._check_node(node))
            if node.name:
                names[node.name].append(node.id)

        for name, owners in names.items():
            if len(owners) > 1:
                diagnostics.append(
                    warning(
                        self.gate,
                        f'Duplicate component name "{name}" used by {len(owners)} components: '
                        f"{', '.join(owners)}",
                    )
                )

        return GateResult.from_diagnostics(self.gate, diagnostics)

    def _check_node(self, node: ComponentSpec) -> list[Diagnostic]:
        found: list[Diagnostic] = []
        gate = self.gate

        if node.name and not KEBAB_CASE_RE.fullmatch(node.name):
            found.append(
                warning(
                    gate,
                    f'Component {node.id} name "{node.name}" should use kebab-case '
                    '(e.g., "my-component")',
                    component_id=node.id,
                )
            )

        if not node.props:
            found.append(
                warning(gate, f"Component {node.id} ({node.type}) has no props", component_id=node.id)
            )

        if has_numeric_frame(node):
            frame = node.frame
            if frame.w < MIN_REASONABLE_DIMENSION or frame.h < MIN_REASONABLE_DIMENSION:
                found.append(
                    warning(
                        gate,
                        f"Component {node.id} has very small dimensions ({frame.w}x{frame.h})",
                        component_id=node.id,
                    )
                )
            if frame.w > MAX_REASONABLE_DIMENSION or frame.h > MAX_REASONABLE_DIMENSION:
                found.append(
                    warning(
                        gate,
                        f"Component {node.id} has very large dimensions ({frame.w}x{frame.h})",
                        component_id=node.id,
                    )
                )
            if not (
                MIN_REASONABLE_POSITION <= frame.x <= MAX_REASONABLE_POSITION
                and MIN_REASONABLE_POSITION <= frame.y <= MAX_REASONABLE_POSITION
            ):
                found.append(
                    warning(
                        gate,
                        f"Component {node.id} has position out of bounds: ({frame.x}, {frame.y})",
                        component_id=node.id,
                    )
                )

        required = REQUIRED_PROPS.get(node.type)
        if required is not None:
            keys, wording = required
            if not any(key in node.props for key in keys):
                found.append(
                    warning(
                        gate,
                        f"{_TYPE_TITLES[node.type]} component {node.id} should have {wording}",
                        component_id=node.id,
                    )
                )

        if node.type == ComponentType.BUTTON and "ariaLabel" not in node.props:
            found.append(
                info(
                    gate,
                    f"Button component {node.id} should have an aria-label for accessibility",
                    component_id=node.id,
                )
            )
        return found


__all__ = ["KEBAB_CASE_RE", "LintChecker"]
