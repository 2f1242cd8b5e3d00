"""Atomic application of edit plans to layout graphs."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from layout_orchestrator.domain.commands import (
    AddCommand,
    Command,
    EditPlan,
    MoveCommand,
    RemoveCommand,
    SetTokensCommand,
    UpdateCommand,
)
from layout_orchestrator.domain.models import ComponentSpec, Frame, Graph, JSONValue

if TYPE_CHECKING:
    from collections.abc import Iterable


class PatchCommandError(Exception):
    """Raised by a single command handler; aborts the whole plan."""


@dataclass(frozen=True, slots=True)
class PatchResult:
    success: bool
    graph: Graph
    errors: tuple[str, ...] = ()
    applied_count: int = 0


@dataclass(frozen=True, slots=True)
class GraphChanges:
    added: int = 0
    removed: int = 0
    updated: int = 0
    moved: int = 0

    @property
    def total(self) -> int:
        return self.added + self.removed + self.updated + self.moved

    def to_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "removed": self.removed,
            "updated": self.updated,
            "moved": self.moved,
        }


class Patcher:
    """Applies every command of a plan to a private copy of the graph.

    Execution stops at the first failing command. The caller either gets a
    graph with all commands applied or the exact graph it passed in.
    """

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def apply(self, graph: Graph, plan: EditPlan) -> PatchResult:
        working = graph.clone()
        errors: list[str] = []
        applied = 0

        self._logger.debug(
            "patch_started",
            plan_id=plan.id,
            description=plan.description,
            operations=len(plan.operations),
        )

        for command in plan.operations:
            try:
                self._apply_command(working, command)
            except PatchCommandError as exc:
                errors.append(str(exc))
                break
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                errors.append(f"Failed to apply command {command.id}: {exc}")
                break
            working.meta.touch()
            applied += 1

        success = not errors and applied == len(plan.operations)
        if success:
            self._logger.info("patch_applied", plan_id=plan.id, applied=applied)
            return PatchResult(success=True, graph=working, applied_count=applied)

        self._logger.warning(
            "patch_rejected",
            plan_id=plan.id,
            applied=applied,
            total=len(plan.operations),
            errors=errors,
        )
        return PatchResult(success=False, graph=graph, errors=tuple(errors), applied_count=applied)

    def _apply_command(self, graph: Graph, command: Command) -> None:
        if isinstance(command, AddCommand):
            graph.nodes.append(copy.deepcopy(command.component))
        elif isinstance(command, UpdateCommand):
            _apply_update(graph, command)
        elif isinstance(command, RemoveCommand):
            doomed = removal_closure(graph, command.target_id, cascade=command.cascade)
            graph.nodes = [node for node in graph.nodes if node.id not in doomed]
        elif isinstance(command, MoveCommand):
            node = _require_node(graph, command.target_id)
            node.frame.x = command.x
            node.frame.y = command.y
            if command.region:
                node.frame.region = command.region
        elif isinstance(command, SetTokensCommand):
            graph.tokens = copy.deepcopy(command.tokens)
        else:
            raise PatchCommandError(
                f"Failed to apply command {getattr(command, 'id', '?')}: "
                f"unsupported command {type(command).__name__}"
            )


def apply_patch(graph: Graph, plan: EditPlan) -> PatchResult:
    """Module-level convenience wrapper around :class:`Patcher`."""
    return Patcher().apply(graph, plan)


def removal_closure(graph: Graph, target_id: str, *, cascade: bool = True) -> set[str]:
    """Return ``target_id`` plus, when cascading, every transitively owned child id.

    Iterates to a fixed point; membership is checked before insertion so
    shared or cyclic child references still converge.
    """
    doomed = {target_id}
    if not cascade:
        return doomed

    changed = True
    while changed:
        changed = False
        for node in graph.nodes:
            if node.id not in doomed:
                continue
            for child_id in node.children:
                if child_id not in doomed:
                    doomed.add(child_id)
                    changed = True
    return doomed


def calculate_changes(before: Graph, after: Graph) -> GraphChanges:
    """Summarize node-level differences between two graph versions."""
    before_by_id = {node.id: node for node in before.nodes}
    after_ids = {node.id for node in after.nodes}

    added = len(after_ids - before_by_id.keys())
    removed = len(before_by_id.keys() - after_ids)
    updated = 0
    moved = 0
    for node in after.nodes:
        previous = before_by_id.get(node.id)
        if previous is None:
            continue
        if (
            previous.props != node.props
            or previous.name != node.name
            or previous.children != node.children
        ):
            updated += 1
        if previous.frame != node.frame:
            moved += 1
    return GraphChanges(added=added, removed=removed, updated=updated, moved=moved)


def _apply_update(graph: Graph, command: UpdateCommand) -> None:
    node = _require_node(graph, command.target_id)
    updates = command.updates
    if updates.name:
        node.name = updates.name
    if updates.props is not None:
        node.props = {**node.props, **copy.deepcopy(updates.props)}
    if updates.frame is not None:
        node.frame = _merge_frame(node.frame, updates.frame.items())


def _merge_frame(frame: Frame, updates: Iterable[tuple[str, JSONValue]]) -> Frame:
    merged = copy.copy(frame)
    for key, value in updates:
        setattr(merged, key, value)
    return merged


def _require_node(graph: Graph, component_id: str) -> ComponentSpec:
    for node in graph.nodes:
        if node.id == component_id:
            return node
    raise PatchCommandError(f"Component not found: {component_id}")


__all__ = [
    "GraphChanges",
    "PatchCommandError",
    "PatchResult",
    "Patcher",
    "apply_patch",
    "calculate_changes",
    "removal_closure",
]
