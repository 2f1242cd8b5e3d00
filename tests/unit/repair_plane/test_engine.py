"""
layout-orchestrator — unit tests for the repair engine

File: tests/unit/repair_plane/test_engine.py
Last updated: 2026-10-18

Purpose
- Validate single-pass repair, bounded repair loops, rollback and the
  transactional wrapper.

What this test file should cover
- Advisory-only input reports no repairs needed.
- Repair priority: duplicate ids, then invalid references, then the rest.
- Several schema violations on one node delete that node once; repeated errors
  are repaired once.
- Loop budgets bound validator calls; sync loops reject async validators.
- Rollback is disabled on request and walks back through checkpoints.
- The transactional wrapper rolls back on failure and timeout instead of raising.
"""

from __future__ import annotations

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from layout_orchestrator.constants import NO_REPAIRS_NEEDED
from layout_orchestrator.domain.diagnostics import (
    ClassifiedDiagnostic,
    Diagnostic,
    ErrorType,
    Gate,
    error,
    warning,
)
from layout_orchestrator.domain.models import ComponentSpec, Frame, Graph
from layout_orchestrator.repair_plane.engine import (
    RepairConfig,
    RepairEngine,
    RepairResult,
    all_errors_addressed,
    distinct_errors,
    prioritize,
)
from layout_orchestrator.repair_plane.classifier import ErrorClassifier
from layout_orchestrator.verification_plane.pipeline import ValidationGate

_CYCLE = "Circular reference detected: a -> b -> a"


def _node(component_id: str, *, x: float = 0, children: list[str] | None = None) -> ComponentSpec:
    return ComponentSpec(
        id=component_id,
        type="card",
        frame=Frame(x, 0, 100, 50),
        props={"title": component_id},
        children=list(children or []),
    )


def _cyclic_graph() -> Graph:
    return Graph(nodes=[_node("a", children=["b"]), _node("b", children=["a"])])


def _fast_engine(**overrides: object) -> RepairEngine:
    return RepairEngine(RepairConfig(retry_delay_ms=0, **overrides))  # type: ignore[arg-type]


def test_advisory_only_diagnostics_need_no_repair() -> None:
    graph = Graph(nodes=[_node("a")])
    advisory = warning(Gate.SCHEMA, "Components a and b overlap in region main")

    result = RepairEngine().attempt_repair(graph, [advisory])

    assert result.success
    assert result.fixes == (NO_REPAIRS_NEEDED,)
    assert result.remaining_issues == (advisory,)
    assert result.remaining_errors == 0
    assert result.graph == graph and result.graph is not graph


def test_attempt_repair_orders_fixes_by_priority() -> None:
    graph = Graph(
        nodes=[_node("X", x=5000, children=["ghost"]), _node("X", x=200)],
    )
    diagnostics = [
        error(Gate.SMOKE, "Component X has x coordinate out of bounds: 5000"),
        error(Gate.SCHEMA, "Invalid child reference in X: ghost does not exist"),
        error(Gate.SCHEMA, "Duplicate component ID: X"),
    ]

    result = RepairEngine().attempt_repair(graph, diagnostics)

    assert result.success
    assert [fix.split("]")[0] for fix in result.fixes] == [
        "Fixed [Duplicate component ID: X",
        "Fixed [Invalid child reference in X: ghost does not exist",
        "Fixed [Component X has x coordinate out of bounds: 5000",
    ]
    assert result.graph.nodes[0].children == []
    assert result.graph.nodes[0].frame.x == 1000
    assert graph.nodes[0].frame.x == 5000


def test_prioritize_is_stable_for_other_types() -> None:
    classified = ErrorClassifier().classify_all(
        [
            error(Gate.TYPES, "Missing dependency: d for component a"),
            error(Gate.SMOKE, "Component a has y coordinate out of bounds: -5000"),
            error(Gate.SCHEMA, "Invalid child reference in a: z does not exist"),
        ]
    )
    assert [item.message[:7] for item in prioritize(classified)] == ["Invalid", "Missing", "Compone"]


def test_unresolved_errors_fail_the_attempt() -> None:
    result = RepairEngine().attempt_repair(_cyclic_graph(), [error(Gate.TYPES, _CYCLE)])

    assert not result.success
    assert result.fixes == ()
    assert [item.message for item in result.remaining_issues] == [_CYCLE]
    assert result.remaining_errors == 1


def test_several_type_errors_on_one_node_remove_only_that_node() -> None:
    broken = ComponentSpec(
        id="broken", type="card", frame=Frame(0, 0, 0, 0), props={"title": "broken"}, children=[]
    )
    graph = Graph(nodes=[broken, _node("keep-one", x=200), _node("keep-two", x=400)])
    validation = ValidationGate().run_sync(graph)

    result = _fast_engine().attempt_repair(graph, validation.diagnostics)

    assert sorted(item.message for item in validation.errors) == [
        "Type error at nodes.0.frame.h: must be >= 1",
        "Type error at nodes.0.frame.w: must be >= 1",
    ]
    assert result.success
    assert result.graph.node_ids() == ["keep-one", "keep-two"]
    assert result.remaining_errors == 0
    assert graph.node_ids() == ["broken", "keep-one", "keep-two"]


def test_index_only_schema_violations_target_the_nodes_they_named() -> None:
    graph = Graph(nodes=[_node("a"), _node("b", x=200), _node("c", x=400)])
    diagnostics = [
        ClassifiedDiagnostic.from_diagnostic(
            error(
                Gate.TYPES,
                f"Type error at nodes.{index}.frame.w: must be >= 1",
                path=f"nodes.{index}.frame.w",
            ),
            ErrorType.SCHEMA_VIOLATION,
        )
        for index in (0, 2)
    ]

    result = _fast_engine().attempt_repair(graph, diagnostics)

    assert result.success
    assert result.graph.node_ids() == ["b"]


def test_repeated_duplicate_id_errors_are_repaired_once() -> None:
    graph = Graph(nodes=[_node("X"), _node("X", x=200), _node("X", x=400)])
    validation = ValidationGate().run_sync(graph)

    result = _fast_engine().attempt_repair(graph, validation.diagnostics)

    assert [item.message for item in validation.errors] == ["Duplicate component ID: X"] * 2
    assert result.success
    assert len(result.fixes) == 1
    assert result.remaining_errors == 0
    assert len(set(result.graph.node_ids())) == 3
    assert ValidationGate().run_sync(result.graph).passed


def test_distinct_errors_keeps_first_occurrence_order() -> None:
    classified = ErrorClassifier().classify_all(
        [
            error(Gate.SCHEMA, "Duplicate component ID: X", component_id="X"),
            error(Gate.SCHEMA, "Invalid child reference in p: z does not exist"),
            error(Gate.SCHEMA, "Duplicate component ID: X", component_id="X"),
            error(Gate.SCHEMA, "Duplicate component ID: X"),
        ]
    )

    unique = distinct_errors(classified)

    assert [(item.message[:9], item.location) for item in unique] == [
        ("Duplicate", classified[0].location),
        ("Invalid c", None),
        ("Duplicate", None),
    ]


def test_all_errors_addressed_matches_message_prefix() -> None:
    long_error = error(Gate.SCHEMA, "Duplicate component ID: a-very-long-identifier")
    assert all_errors_addressed([long_error], ["Fixed [Duplicate component ID: a-very-lo...]"])
    assert not all_errors_addressed([long_error], ["Fixed something else"])


def test_repair_loop_succeeds_without_validating_when_first_pass_fixes() -> None:
    calls: list[Graph] = []
    graph = Graph(nodes=[_node("X"), _node("X", x=300)])

    def validate(candidate: Graph) -> list[Diagnostic]:
        calls.append(candidate)
        return []

    result = _fast_engine().repair_loop(graph, [error(Gate.SCHEMA, "Duplicate component ID: X")], validate)

    assert result.success
    assert result.attempts == 1
    assert calls == []
    assert len(set(result.graph.node_ids())) == 2


def test_repair_loop_accepts_clean_revalidation() -> None:
    result = _fast_engine().repair_loop(
        _cyclic_graph(), [error(Gate.TYPES, _CYCLE)], lambda graph: []
    )
    assert result.success
    assert result.attempts == 1
    assert result.remaining_issues == ()


@settings(max_examples=20, deadline=None)
@given(budget=st.integers(min_value=1, max_value=6))
def test_repair_loop_calls_validate_at_most_budget_times(budget: int) -> None:
    calls = 0

    def validate(graph: Graph) -> list[Diagnostic]:
        nonlocal calls
        calls += 1
        return [error(Gate.TYPES, _CYCLE)]

    result = _fast_engine().repair_loop(
        _cyclic_graph(), [error(Gate.TYPES, _CYCLE)], validate, max_attempts=budget
    )

    assert not result.success
    assert result.attempts == budget
    assert calls <= budget
    assert result.remaining_errors == 1


def test_repair_loop_rejects_async_validate() -> None:
    async def validate(graph: Graph) -> list[Diagnostic]:
        return []

    with pytest.raises(TypeError, match="repair_loop requires a synchronous validate"):
        _fast_engine().repair_loop(_cyclic_graph(), [error(Gate.TYPES, _CYCLE)], validate)


def test_repair_loop_rejects_empty_budget() -> None:
    with pytest.raises(ValueError, match="max_attempts must be >= 1"):
        _fast_engine().repair_loop(Graph(), [], lambda graph: [], max_attempts=0)


@pytest.mark.asyncio
async def test_repair_loop_async_with_pipeline_validator() -> None:
    graph = Graph(nodes=[_node("far", x=5000)])
    gate = ValidationGate()
    diagnostics = await gate.diagnostics_async(graph)

    result = await _fast_engine().repair_loop_async(graph, diagnostics, gate.diagnostics_async)

    assert result.success
    assert result.graph.nodes[0].frame.x == 1000
    assert (await gate.run(result.graph)).passed


@pytest.mark.asyncio
async def test_repair_loop_async_exhausts_budget() -> None:
    seen: list[int] = []

    async def validate(graph: Graph) -> list[Diagnostic]:
        seen.append(len(graph.nodes))
        return [error(Gate.TYPES, _CYCLE)]

    result = await _fast_engine(max_repair_attempts=2).repair_loop_async(
        _cyclic_graph(), [error(Gate.TYPES, _CYCLE)], validate
    )

    assert not result.success
    assert result.attempts == 2
    assert seen == [2, 2]


def test_rollback_disabled_returns_input_graph() -> None:
    graph = Graph(nodes=[_node("a")])
    result = RepairEngine(RepairConfig(enable_rollback=False)).rollback(graph)

    assert not result.success
    assert result.graph is graph
    assert result.applied_fixes == ("Rollback is disabled",)


def test_rollback_walks_back_through_checkpoints() -> None:
    engine = RepairEngine()
    manager = engine.transaction_manager
    for label in ("one", "two", "three"):
        manager.create_checkpoint(Graph(nodes=[_node(label)]), label)

    result = engine.rollback(Graph(nodes=[_node("live")]), steps=2)

    assert result.success
    assert result.rollback_steps == 2
    assert result.graph.node_ids() == ["two"]
    assert result.applied_fixes == (
        "Rolled back to checkpoint: three",
        "Rolled back to checkpoint: two",
    )


def test_rollback_without_checkpoints() -> None:
    graph = Graph()
    result = RepairEngine().rollback(graph)
    assert not result.success
    assert result.applied_fixes == ("No checkpoints available for rollback",)
    with pytest.raises(ValueError, match="steps must be >= 1"):
        RepairEngine().rollback(graph, steps=0)


@pytest.mark.asyncio
async def test_transactional_repair_rolls_back_on_failure() -> None:
    graph = _cyclic_graph()
    original = [error(Gate.TYPES, _CYCLE)]

    result = await _fast_engine(max_repair_attempts=2).execute_repair_with_transaction(
        graph, original, lambda candidate: [error(Gate.TYPES, _CYCLE)]
    )

    assert isinstance(result, RepairResult)
    assert not result.success
    assert result.rolled_back
    assert result.remaining_issues == tuple(original)
    assert result.fixes[-1].startswith("Rolled back to checkpoint:")
    assert result.graph == graph


@pytest.mark.asyncio
async def test_transactional_repair_times_out_without_raising() -> None:
    async def slow_validate(graph: Graph) -> list[Diagnostic]:
        await asyncio.sleep(1)
        return []

    engine = _fast_engine(timeout_ms=10, enable_rollback=False)
    result = await engine.execute_repair_with_transaction(
        _cyclic_graph(), [error(Gate.TYPES, _CYCLE)], slow_validate
    )

    assert not result.success
    assert not result.rolled_back
    assert result.fixes[0].startswith("Repair failed: operation timed out")


@pytest.mark.asyncio
async def test_transactional_repair_success_passes_through() -> None:
    graph = Graph(nodes=[_node("X"), _node("X", x=300)])
    result = await _fast_engine().execute_repair_with_transaction(
        graph, [error(Gate.SCHEMA, "Duplicate component ID: X")], lambda candidate: []
    )
    assert result.success
    assert not result.rolled_back


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_repair_attempts": 0},
        {"max_rollback_depth": 0},
        {"timeout_ms": 0},
        {"retry_delay_ms": -1},
        {"transaction_history_limit": 0},
    ],
)
def test_repair_config_rejects_invalid_values(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError, match="RepairConfig"):
        RepairConfig(**kwargs)
