"""
layout-orchestrator — gate checker interface

File: src/layout_orchestrator/verification_plane/checkers/base.py
Last updated: 2026-10-18

Purpose
- Defines the gate checker interface: input is a Graph, output is a GateResult of diagnostics.

Functional requirements
- A gate passes iff it produced no error-severity diagnostic.
- Built-in checkers self-register per gate in a deterministic registry.

Non-functional requirements
- Checkers are pure: they never mutate the graph they inspect.
"""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

from layout_orchestrator.domain.diagnostics import GATE_ORDER, Diagnostic, Gate, warning

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import ComponentSpec, Frame, Graph

CheckerFactory = Callable[[], "GateChecker"]


@dataclass(frozen=True, slots=True)
class GateResult:
    """Outcome of one gate for one graph."""

    gate: Gate
    passed: bool
    diagnostics: tuple[Diagnostic, ...] = ()
    duration_ms: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "diagnostics", tuple(self.diagnostics))
        if self.duration_ms < 0:
            raise ValueError("GateResult.duration_ms must be >= 0")

    @classmethod
    def from_diagnostics(
        cls, gate: Gate, diagnostics: Iterable[Diagnostic], *, duration_ms: int = 0
    ) -> GateResult:
        collected = tuple(diagnostics)
        return cls(
            gate=gate,
            passed=not any(item.is_error for item in collected),
            diagnostics=collected,
            duration_ms=duration_ms,
        )

    def with_duration(self, duration_ms: int) -> GateResult:
        return GateResult(
            gate=self.gate,
            passed=self.passed,
            diagnostics=self.diagnostics,
            duration_ms=duration_ms,
        )


@runtime_checkable
class GateChecker(Protocol):
    """Checker protocol implemented by built-ins and caller-supplied gates."""

    gate: Gate

    def check(self, graph: Graph) -> GateResult | Awaitable[GateResult]: ...


class CheckerRegistry:
    """Deterministic gate -> checker factory registry."""

    def __init__(self) -> None:
        self._factories: dict[Gate, CheckerFactory] = {}

    def register(self, gate: Gate, factory: CheckerFactory, *, replace: bool = False) -> None:
        if not callable(factory):
            raise ValueError("factory: must be callable")
        if gate in self._factories and not replace:
            raise ValueError(f"checker for gate {gate.value!r} already registered")
        self._factories[gate] = factory

    def contains(self, gate: Gate) -> bool:
        return gate in self._factories

    def create(self, gate: Gate) -> GateChecker:
        factory = self._factories.get(gate)
        if factory is None:
            known = ", ".join(item.value for item in self.registered_gates())
            raise ValueError(f"gate: unknown gate {gate.value!r}; registered: [{known}]")
        return factory()

    def registered_gates(self) -> tuple[Gate, ...]:
        return tuple(gate for gate in GATE_ORDER if gate in self._factories)

    def create_all(self) -> tuple[GateChecker, ...]:
        return tuple(self.create(gate) for gate in self.registered_gates())


CheckerType = TypeVar("CheckerType")

DEFAULT_CHECKER_REGISTRY = CheckerRegistry()


def register_builtin_checker(
    gate: Gate,
    *,
    registry: CheckerRegistry | None = None,
) -> Callable[[type[CheckerType]], type[CheckerType]]:
    """Decorator that registers a zero-argument checker class for ``gate``."""

    target = registry if registry is not None else DEFAULT_CHECKER_REGISTRY

    def decorator(checker_cls: type[CheckerType]) -> type[CheckerType]:
        target.register(gate, factory=lambda: checker_cls())  # type: ignore[arg-type,return-value]
        return checker_cls

    return decorator


def frames_overlap(a: Frame, b: Frame) -> bool:
    """Axis-aligned bounding-box intersection; touching edges count as overlap."""
    return not (a.right < b.x or b.right < a.x or a.bottom < b.y or b.bottom < a.y)


def has_numeric_frame(node: ComponentSpec) -> bool:
    """True when every frame coordinate is a finite real number."""
    values = (node.frame.x, node.frame.y, node.frame.w, node.frame.h)
    return all(
        isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
        for value in values
    )


def overlap_warnings(gate: Gate, nodes: list[ComponentSpec]) -> list[Diagnostic]:
    """Pairwise overlap warnings for nodes sharing a region.

    Nodes with malformed frames are skipped; the types gate reports them.
    """
    found: list[Diagnostic] = []
    nodes = [node for node in nodes if has_numeric_frame(node)]
    for index, first in enumerate(nodes):
        for second in nodes[index + 1 :]:
            if first.frame.region != second.frame.region:
                continue
            if frames_overlap(first.frame, second.frame):
                found.append(
                    warning(
                        gate,
                        f"Components {first.id} and {second.id} overlap "
                        f"in region {first.frame.region}",
                        component_id=first.id,
                    )
                )
    return found


__all__ = [
    "DEFAULT_CHECKER_REGISTRY",
    "CheckerFactory",
    "CheckerRegistry",
    "GateChecker",
    "GateResult",
    "frames_overlap",
    "has_numeric_frame",
    "overlap_warnings",
    "register_builtin_checker",
]
