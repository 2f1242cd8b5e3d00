"""
layout-orchestrator — planner contract

File: src/layout_orchestrator/planning/planner.py
Last updated: 2026-10-18

Purpose
- Define the seam between free-form intents and structured edit plans.

Functional requirements
- A planner maps ``(intent, graph)`` to an ``EditPlan`` or ``None``; it may be sync or async.
- ``StaticPlanner`` serves pre-built plans keyed by normalized intent text.
- Planners never mutate the graph they are shown.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from layout_orchestrator.domain.commands import EditPlan

if TYPE_CHECKING:
    from layout_orchestrator.domain.models import Graph


@runtime_checkable
class Planner(Protocol):
    def plan(self, intent: str, graph: Graph) -> EditPlan | None | Awaitable[EditPlan | None]: ...


class StaticPlanner:
    """Lookup-table planner; unknown intents fall back to ``default`` (if any)."""

    def __init__(
        self,
        plans: Mapping[str, EditPlan] | None = None,
        *,
        default: EditPlan | None = None,
    ) -> None:
        self._plans = {normalize_intent(key): value for key, value in (plans or {}).items()}
        self._default = default

    @property
    def intents(self) -> tuple[str, ...]:
        return tuple(sorted(self._plans))

    def register(self, intent: str, plan: EditPlan) -> None:
        key = normalize_intent(intent)
        if not key:
            raise ValueError("intent must not be empty")
        self._plans[key] = plan

    def plan(self, intent: str, graph: Graph) -> EditPlan | None:
        del graph
        selected = self._plans.get(normalize_intent(intent), self._default)
        if selected is None:
            return None
        if selected.prompt is None:
            return replace(selected, prompt=intent)
        return selected


def normalize_intent(intent: str) -> str:
    return " ".join(intent.lower().split())


__all__ = ["Planner", "StaticPlanner", "normalize_intent"]
