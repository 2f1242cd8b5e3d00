"""
layout-orchestrator — repair strategy library

File: src/layout_orchestrator/repair_plane/strategies.py
Last updated: 2026-10-18

Purpose
- Type-directed repair strategies and the immutable library that dispatches them.

Functional requirements
- A strategy declares the error types it applies to, a ``can_repair`` predicate and
  an ``execute`` that returns a StrategyOutcome over a fresh copy of the graph.
- Dispatch tries applicable strategies in registration order; the first success wins.
- When nothing succeeds the outcome is a failure carrying an unchanged deep copy.
- Successful descriptions embed the diagnostic message they resolved.

Non-functional requirements
- Strategies never mutate the graph they are given.
- The library is built once; extending it returns a new library.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, ClassVar, Final, Protocol, runtime_checkable

from layout_orchestrator.constants import (
    COORDINATE_MAX,
    COORDINATE_MIN,
    PLACEHOLDER_HEIGHT,
    PLACEHOLDER_TEXT,
    PLACEHOLDER_WIDTH,
)
from layout_orchestrator.domain.diagnostics import (
    ClassifiedDiagnostic,
    DiagnosticLocation,
    ErrorType,
)
from layout_orchestrator.domain.ids import generate_component_id
from layout_orchestrator.domain.models import DEFAULT_REGION, ComponentSpec, ComponentType, Frame

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph

_DUPLICATE_ID = re.compile(r"Duplicate component ID: (.+)$")
_INVALID_REFERENCE = re.compile(r"Invalid child reference in (.+): (.+) does not exist")
_OUT_OF_BOUNDS = re.compile(r"Component (.+) has (x|y) coordinate out of bounds: (.+)$")
_NODE_INDEX = re.compile(r"nodes\.(\d+)")
_MISSING_DEPENDENCY = re.compile(r"Missing dependency: (.+) for component (.+)$")


@dataclass(frozen=True, slots=True)
class StrategyOutcome:
    success: bool
    graph: Graph
    description: str


@runtime_checkable
class RepairStrategy(Protocol):
    name: str
    applies_to: frozenset[ErrorType]

    def can_repair(self, diagnostic: ClassifiedDiagnostic) -> bool: ...

    def execute(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> StrategyOutcome: ...


class _TypedStrategy:
    """Base for built-ins that repair exactly the error types they declare."""

    name: ClassVar[str]
    applies_to: ClassVar[frozenset[ErrorType]]

    def can_repair(self, diagnostic: ClassifiedDiagnostic) -> bool:
        return diagnostic.error_type in self.applies_to

    def execute(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> StrategyOutcome:
        working = graph.clone()
        summary = self._repair(working, diagnostic)
        if summary is None:
            return StrategyOutcome(False, working, f"Could not apply {self.name}: {diagnostic.message}")
        return StrategyOutcome(True, working, f"Fixed [{diagnostic.message}]: {summary}")

    def _repair(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> str | None:
        raise NotImplementedError


class DuplicateIdRepair(_TypedStrategy):
    name = "duplicate-id-repair"
    applies_to = frozenset({ErrorType.DUPLICATE_ID})

    def _repair(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> str | None:
        match = _DUPLICATE_ID.search(diagnostic.message)
        if match is None:
            return None
        duplicate_id = match.group(1)
        duplicates = [node for node in graph.nodes if node.id == duplicate_id]
        if len(duplicates) < 2:
            return None

        renamed: list[ComponentSpec] = []
        for node in duplicates[1:]:
            node.id = generate_component_id()
            renamed.append(node)

        replacement = renamed[0].id
        renamed_ids = {id(node) for node in renamed}
        for node in graph.nodes:
            if id(node) in renamed_ids:
                continue
            node.children = [replacement if child == duplicate_id else child for child in node.children]
        return f"regenerated {len(renamed)} id(s) for {duplicate_id}"


class InvalidReferenceRepair(_TypedStrategy):
    name = "invalid-reference-repair"
    applies_to = frozenset({ErrorType.INVALID_REFERENCE})

    def _repair(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> str | None:
        match = _INVALID_REFERENCE.search(diagnostic.message)
        if match is None:
            return None
        parent_id, child_id = match.group(1), match.group(2)
        for node in graph.nodes:
            if node.id == parent_id:
                node.children = [child for child in node.children if child != child_id]
                return f"removed child reference {child_id} from {parent_id}"
        return None


class OutOfBoundsRepair(_TypedStrategy):
    name = "out-of-bounds-repair"
    applies_to = frozenset({ErrorType.OUT_OF_BOUNDS})

    def _repair(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> str | None:
        match = _OUT_OF_BOUNDS.search(diagnostic.message)
        if match is None:
            return None
        component_id, axis = match.group(1), match.group(2)
        try:
            value = float(match.group(3))
        except ValueError:
            return None
        for node in graph.nodes:
            if node.id == component_id:
                clamped = clamp_coordinate(value)
                setattr(node.frame, axis, clamped)
                return f"clamped {axis} of {component_id} from {value:g} to {clamped:g}"
        return None


class SchemaViolationRepair(_TypedStrategy):
    """Drops the node a schema violation points at.

    The component id in the diagnostic location wins over the path index; the
    index only breaks ties between nodes sharing that id. A node that is already
    gone counts as resolved, so several violations on one node delete it once.
    Diagnostics without a component id fall back to the path index.
    """

    name = "schema-validation-repair"
    applies_to = frozenset({ErrorType.SCHEMA_VIOLATION})

    def _repair(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> str | None:
        index = node_index(diagnostic)
        component_id = diagnostic.location.component_id if diagnostic.location is not None else None
        if component_id is None:
            if index is None or index >= len(graph.nodes):
                return None
            removed = graph.nodes.pop(index)
            return f"removed invalid node at index {index} (id {removed.id})"

        positions = [position for position, node in enumerate(graph.nodes) if node.id == component_id]
        if not positions:
            return f"invalid node {component_id} no longer present"
        position = index if index in positions else positions[0]
        graph.nodes.pop(position)
        return f"removed invalid node {component_id} at index {position}"


class MissingDependencyRepair(_TypedStrategy):
    name = "missing-dependency-repair"
    applies_to = frozenset({ErrorType.MISSING_DEPENDENCY})

    def _repair(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> str | None:
        match = _MISSING_DEPENDENCY.search(diagnostic.message)
        if match is None:
            return None
        dependency_id = match.group(1)
        if any(node.id == dependency_id for node in graph.nodes):
            return f"dependency {dependency_id} already present"
        graph.nodes.append(create_placeholder(dependency_id))
        return f"created placeholder for {dependency_id}"


def clamp_coordinate(value: float) -> float:
    return max(float(COORDINATE_MIN), min(float(COORDINATE_MAX), value))


def create_placeholder(component_id: str) -> ComponentSpec:
    return ComponentSpec(
        id=component_id,
        type=ComponentType.PLACEHOLDER.value,
        frame=Frame(0, 0, PLACEHOLDER_WIDTH, PLACEHOLDER_HEIGHT, DEFAULT_REGION),
        props={"text": PLACEHOLDER_TEXT, "width": PLACEHOLDER_WIDTH, "height": PLACEHOLDER_HEIGHT},
        children=[],
    )


def node_index(diagnostic: ClassifiedDiagnostic) -> int | None:
    """Index from a ``nodes.<i>`` path, read from the location first, then the message."""
    sources = [diagnostic.message]
    if diagnostic.location is not None and diagnostic.location.path:
        sources.insert(0, diagnostic.location.path)
    for source in sources:
        match = _NODE_INDEX.search(source)
        if match is not None:
            return int(match.group(1))
    return None


def pin_node_targets(
    graph: Graph, diagnostics: Iterable[ClassifiedDiagnostic]
) -> list[ClassifiedDiagnostic]:
    """Bind index-only schema violations to the component id the index names in ``graph``.

    Indexes go stale once earlier fixes remove nodes; ids do not. Ids shared by
    several nodes stay index-addressed.
    """
    id_counts = Counter(node.id for node in graph.nodes if isinstance(node.id, str))
    pinned: list[ClassifiedDiagnostic] = []
    for diagnostic in diagnostics:
        location = diagnostic.location
        index = node_index(diagnostic)
        if (
            diagnostic.error_type is ErrorType.SCHEMA_VIOLATION
            and (location is None or location.component_id is None)
            and index is not None
            and index < len(graph.nodes)
        ):
            component_id = graph.nodes[index].id
            if isinstance(component_id, str) and component_id.strip() and id_counts[component_id] == 1:
                diagnostic = replace(
                    diagnostic,
                    location=DiagnosticLocation(
                        component_id=component_id,
                        path=location.path if location is not None else None,
                    ),
                )
        pinned.append(diagnostic)
    return pinned


BUILTIN_STRATEGIES: Final[tuple[RepairStrategy, ...]] = (
    DuplicateIdRepair(),
    InvalidReferenceRepair(),
    OutOfBoundsRepair(),
    SchemaViolationRepair(),
    MissingDependencyRepair(),
)


class RepairStrategyLibrary:
    """Ordered, immutable strategy table."""

    def __init__(self, strategies: Iterable[RepairStrategy] = BUILTIN_STRATEGIES) -> None:
        ordered = tuple(strategies)
        names = [strategy.name for strategy in ordered]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate strategy names: {', '.join(duplicates)}")
        self._strategies = ordered

    @property
    def strategies(self) -> tuple[RepairStrategy, ...]:
        return self._strategies

    def with_strategies(self, *extra: RepairStrategy) -> RepairStrategyLibrary:
        return RepairStrategyLibrary((*self._strategies, *extra))

    def get_strategy(self, name: str) -> RepairStrategy | None:
        for strategy in self._strategies:
            if strategy.name == name:
                return strategy
        return None

    def applicable_strategies(self, diagnostic: ClassifiedDiagnostic) -> list[RepairStrategy]:
        return [strategy for strategy in self._strategies if strategy.can_repair(diagnostic)]

    def dispatch(self, graph: Graph, diagnostic: ClassifiedDiagnostic) -> StrategyOutcome:
        for strategy in self.applicable_strategies(diagnostic):
            outcome = strategy.execute(graph, diagnostic)
            if outcome.success:
                return outcome
        return StrategyOutcome(
            success=False,
            graph=graph.clone(),
            description=f"No repair strategy could fix: {diagnostic.message}",
        )


__all__ = [
    "BUILTIN_STRATEGIES",
    "DuplicateIdRepair",
    "InvalidReferenceRepair",
    "MissingDependencyRepair",
    "OutOfBoundsRepair",
    "RepairStrategy",
    "RepairStrategyLibrary",
    "SchemaViolationRepair",
    "StrategyOutcome",
    "clamp_coordinate",
    "create_placeholder",
    "node_index",
    "pin_node_targets",
]
