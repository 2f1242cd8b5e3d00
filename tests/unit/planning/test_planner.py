"""Tests for the planner protocol and the lookup-table planner."""

from __future__ import annotations

import pytest

from layout_orchestrator.domain.commands import create_edit_plan, create_remove_command
from layout_orchestrator.domain.models import create_empty_graph
from layout_orchestrator.planning.planner import Planner, StaticPlanner, normalize_intent


def test_normalize_intent_collapses_case_and_whitespace() -> None:
    assert normalize_intent("  Remove   the\tBanner ") == "remove the banner"


def test_static_planner_matches_normalized_intents() -> None:
    plan = create_edit_plan([create_remove_command("banner")], "drop banner")
    planner = StaticPlanner({"Remove Banner": plan})
    graph = create_empty_graph()

    selected = planner.plan("remove   banner", graph)

    assert selected is not None
    assert selected.operations == plan.operations
    assert selected.prompt == "remove   banner"
    assert plan.prompt is None
    assert planner.intents == ("remove banner",)


def test_static_planner_keeps_an_existing_prompt() -> None:
    plan = create_edit_plan([], "noop", prompt="original")
    planner = StaticPlanner({"noop": plan})

    assert planner.plan("NOOP", create_empty_graph()) is plan


def test_unknown_intent_uses_default_or_none() -> None:
    fallback = create_edit_plan([], "fallback")

    assert StaticPlanner().plan("anything", create_empty_graph()) is None
    chosen = StaticPlanner(default=fallback).plan("anything", create_empty_graph())
    assert chosen is not None
    assert chosen.description == "fallback"


def test_register_rejects_blank_intents() -> None:
    planner = StaticPlanner()
    planner.register("Add Header", create_edit_plan([], "header"))

    assert planner.intents == ("add header",)
    with pytest.raises(ValueError, match="intent must not be empty"):
        planner.register("   ", create_edit_plan([], "blank"))


def test_static_planner_satisfies_protocol() -> None:
    assert isinstance(StaticPlanner(), Planner)


def test_planner_does_not_touch_the_graph() -> None:
    graph = create_empty_graph(description="before")
    snapshot = graph.to_dict()

    StaticPlanner(default=create_edit_plan([], "noop")).plan("x", graph)

    assert graph.to_dict() == snapshot
