"""
layout-orchestrator — types gate

File: src/layout_orchestrator/verification_plane/checkers/typecheck_checker.py
Last updated: 2026-10-18

Purpose
- Type-correctness of the graph: field types, per-component prop contracts,
  declared dependencies and acyclic child relationships.

Functional requirements
- Field-level type errors are reported as ``Type error at <path>: <reason>`` and
  carry a SchemaViolation classification plus the offending document path.
- Prop contract violations are reported as ``Type mismatch: ...``.
- Unresolved ``props.dependsOn`` entries are reported as ``Missing dependency``.
- Cycles through ``children`` are reported once per discovered cycle.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Final

from layout_orchestrator.domain.diagnostics import (
    ClassifiedDiagnostic,
    Diagnostic,
    DiagnosticLocation,
    ErrorType,
    Gate,
    Severity,
    error,
)
from layout_orchestrator.domain.models import ComponentType, TokenSet
from layout_orchestrator.verification_plane.checkers.base import (
    GateResult,
    register_builtin_checker,
)

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import ComponentSpec, Graph

DEPENDENCY_PROP: Final[str] = "dependsOn"

_COMPONENT_TYPES: Final[frozenset[str]] = frozenset(item.value for item in ComponentType)

# Handlers are stored by name in serialized graphs.
_STRING = ("a string", lambda value: isinstance(value, str))
_HANDLER = ("a handler name (string)", lambda value: isinstance(value, str))
_BOOLEAN = ("a boolean", lambda value: isinstance(value, bool))
_NUMBER = ("a number", lambda value: _is_number(value))
_STRING_OR_NUMBER = (
    "a string or number",
    lambda value: isinstance(value, str) or _is_number(value),
)

PROP_CONTRACTS: Final[dict[str, dict[str, tuple[str, Callable[[object], bool]]]]] = {
    ComponentType.BUTTON: {"label": _STRING, "onClick": _HANDLER, "disabled": _BOOLEAN},
    ComponentType.INPUT: {"value": _STRING_OR_NUMBER, "type": _STRING, "onChange": _HANDLER},
    ComponentType.SLIDER: {
        "value": _NUMBER,
        "min": _NUMBER,
        "max": _NUMBER,
        "onChange": _HANDLER,
    },
    ComponentType.TOGGLE: {"checked": _BOOLEAN, "onChange": _HANDLER},
    ComponentType.MODAL: {"open": _BOOLEAN, "onClose": _HANDLER},
}


def _is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _describe(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


@register_builtin_checker(Gate.TYPES)
class TypeCheckChecker:
    gate = Gate.TYPES

    def check(self, graph: Graph) -> GateResult:
        diagnostics: list[Diagnostic] = list(self._field_errors(graph))

        known_ids = {node.id for node in graph.nodes if isinstance(node.id, str)}
        for node in graph.nodes:
            diagnostics.extend(self._prop_contract_errors(node))
            diagnostics.extend(self._dependency_errors(node, known_ids))

        for cycle in find_cycles(graph.nodes):
            diagnostics.append(
                error(
                    self.gate,
                    f"Circular reference detected: {' -> '.join(cycle)}",
                    component_id=cycle[0],
                )
            )

        return GateResult.from_diagnostics(self.gate, diagnostics)

    # ------------------------
    # Field-level type errors
    # ------------------------

    def _field_errors(self, graph: Graph) -> Iterator[Diagnostic]:
        if not isinstance(graph.version, str) or not graph.version.strip():
            yield self._type_error("version", "must be a non-empty string")

        for index, node in enumerate(graph.nodes):
            for path, reason in _node_field_issues(node, f"nodes.{index}"):
                yield self._type_error(path, reason, component_id=node.id)

        if graph.tokens is not None:
            try:
                TokenSet.from_dict(graph.tokens.to_dict())
            except (AttributeError, TypeError, ValueError) as exc:
                yield self._type_error("tokens", str(exc))

    def _type_error(
        self, path: str, reason: str, *, component_id: object = None
    ) -> ClassifiedDiagnostic:
        return ClassifiedDiagnostic(
            gate=self.gate,
            severity=Severity.ERROR,
            message=f"Type error at {path}: {reason}",
            location=DiagnosticLocation(
                component_id=component_id if isinstance(component_id, str) else None,
                path=path,
            ),
            error_type=ErrorType.SCHEMA_VIOLATION,
        )

    # ------------------------
    # Prop contracts
    # ------------------------

    def _prop_contract_errors(self, node: ComponentSpec) -> Iterator[Diagnostic]:
        contract = PROP_CONTRACTS.get(node.type) if isinstance(node.type, str) else None
        if contract is None or not isinstance(node.props, Mapping):
            return
        title = str(node.type).capitalize()
        for key, (expected, predicate) in contract.items():
            if key not in node.props:
                continue
            value = node.props[key]
            if not predicate(value):
                yield error(
                    self.gate,
                    f"Type mismatch: {title} component {node.id} prop '{key}' "
                    f"should be {expected}, got {_describe(value)}",
                    component_id=node.id,
                )

    def _dependency_errors(self, node: ComponentSpec, known_ids: set[str]) -> Iterator[Diagnostic]:
        if not isinstance(node.props, Mapping):
            return
        raw = node.props.get(DEPENDENCY_PROP)
        if raw is None:
            return
        dependencies = [raw] if isinstance(raw, str) else raw
        if not isinstance(dependencies, list):
            yield error(
                self.gate,
                f"Type mismatch: Component {node.id} prop '{DEPENDENCY_PROP}' "
                f"should be a list of component ids, got {_describe(raw)}",
                component_id=node.id,
            )
            return
        for dependency in dependencies:
            if isinstance(dependency, str) and dependency and dependency not in known_ids:
                yield error(
                    self.gate,
                    f"Missing dependency: {dependency} for component {node.id}",
                    component_id=node.id,
                )


def _node_field_issues(node: ComponentSpec, base: str) -> Iterator[tuple[str, str]]:
    if not isinstance(node.id, str) or not node.id.strip():
        yield f"{base}.id", "must be a non-empty string"
    if not isinstance(node.type, str) or node.type not in _COMPONENT_TYPES:
        allowed = ", ".join(sorted(_COMPONENT_TYPES))
        yield f"{base}.type", f"invalid value {node.type!r}; expected one of: {allowed}"
    if node.name is not None and not isinstance(node.name, str):
        yield f"{base}.name", f"expected string, got {_describe(node.name)}"
    if not isinstance(node.props, Mapping):
        yield f"{base}.props", f"expected object, got {_describe(node.props)}"
    elif any(not isinstance(key, str) for key in node.props):
        yield f"{base}.props", "object keys must be strings"

    frame = node.frame
    for axis in ("x", "y"):
        value = getattr(frame, axis, None)
        if not _is_number(value):
            yield f"{base}.frame.{axis}", f"expected finite number, got {_describe(value)}"
    for extent in ("w", "h"):
        value = getattr(frame, extent, None)
        if not _is_number(value):
            yield f"{base}.frame.{extent}", f"expected finite number, got {_describe(value)}"
        elif value < 1:
            yield f"{base}.frame.{extent}", "must be >= 1"
    region = getattr(frame, "region", None)
    if not isinstance(region, str) or not region.strip():
        yield f"{base}.frame.region", "must be a non-empty string"

    if not isinstance(node.children, list):
        yield f"{base}.children", f"expected array, got {_describe(node.children)}"
        return
    for index, child in enumerate(node.children):
        if not isinstance(child, str) or not child.strip():
            yield f"{base}.children.{index}", "must be a non-empty string"


def find_cycles(nodes: list[ComponentSpec]) -> list[list[str]]:
    """Return each cycle through ``children`` as an id path closed on its first id.

    Iterative depth-first search; unknown child ids are ignored here because
    dangling references are reported by the schema gate.
    """
    children_of: dict[str, list[str]] = {}
    for node in nodes:
        if isinstance(node.children, list):
            children_of.setdefault(node.id, [c for c in node.children if isinstance(c, str)])

    visiting, done = 1, 2
    state: dict[str, int] = {}
    cycles: list[list[str]] = []

    for root in children_of:
        if root in state:
            continue
        path = [root]
        state[root] = visiting
        stack = [iter(children_of[root])]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                state[path.pop()] = done
                stack.pop()
                continue
            if child not in children_of:
                continue
            seen = state.get(child)
            if seen == visiting:
                start = path.index(child)
                cycles.append([*path[start:], child])
            elif seen is None:
                state[child] = visiting
                path.append(child)
                stack.append(iter(children_of[child]))
    return cycles


__all__ = ["DEPENDENCY_PROP", "PROP_CONTRACTS", "TypeCheckChecker", "find_cycles"]
