"""
layout-orchestrator — unit tests for domain models

File: tests/unit/domain/test_models.py
Last updated: 2026-10-18

Purpose
- Verify layout graph dataclasses: construction, canonical serialization, strict
  structural parsing and the factory/finder helpers.

What this test file should cover
- Lossless dict/json round-trips with camelCase wire keys.
- Path-qualified ValueError messages for malformed input.
- Graph.clone independence.
- Finders by id, name, type and region.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from layout_orchestrator.domain.models import (
    DEFAULT_REGION,
    GRAPH_VERSION,
    ComponentSpec,
    ComponentType,
    Frame,
    Graph,
    GraphMeta,
    TokenSet,
    create_component,
    create_empty_graph,
    find_component_by_id,
    find_components_by_name,
    find_components_by_type,
    find_components_in_region,
)


def _tokens() -> TokenSet:
    return TokenSet.from_dict(
        {
            "colors": {"primary": "#0055ff"},
            "spacing": {"sm": 4, "md": 8},
            "typography": {
                "fontFamily": "Inter",
                "sizes": {"body": 14},
                "weights": {"regular": 400},
                "lineHeights": {"body": 1.4},
            },
            "radius": {"sm": 2},
            "shadows": {"card": "0 1px 2px rgba(0,0,0,0.2)"},
        }
    )


def _graph() -> Graph:
    card = create_component(
        ComponentType.CARD,
        Frame(0, 0, 300, 200),
        name="profile-card",
        props={"title": "Profile"},
        children=["btn-save"],
        component_id="card-1",
    )
    button = create_component(
        ComponentType.BUTTON,
        {"x": 10, "y": 150, "w": 80, "h": 30, "region": "main"},
        name="save",
        props={"label": "Save"},
        component_id="btn-save",
    )
    drawer = create_component(
        "drawer",
        Frame(0, 0, 240, 600, region="sidebar"),
        component_id="drawer-1",
    )
    graph = create_empty_graph(_tokens(), author="designer", description="profile page")
    graph.nodes.extend([card, button, drawer])
    return graph


def test_graph_round_trips_through_dict_and_json() -> None:
    graph = _graph()

    restored = Graph.from_dict(graph.to_dict())
    assert restored == graph

    from_json = Graph.from_json(graph.to_json())
    assert from_json.to_dict() == graph.to_dict()

    payload = json.loads(graph.to_json())
    assert payload["version"] == GRAPH_VERSION
    assert payload["tokens"]["typography"]["fontFamily"] == "Inter"
    assert payload["tokens"]["typography"]["lineHeights"] == {"body": 1.4}
    assert payload["meta"]["created"].endswith("Z")
    assert payload["meta"]["author"] == "designer"


def test_component_spec_serialization_omits_absent_name() -> None:
    component = ComponentSpec(id="c1", type="button", frame=Frame(1, 2, 3, 4))
    data = component.to_dict()

    assert "name" not in data
    assert data["frame"] == {"x": 1, "y": 2, "w": 3, "h": 4, "region": DEFAULT_REGION}
    assert data["children"] == []
    assert ComponentSpec.from_dict(data) == component


def test_component_spec_accepts_mapping_frame() -> None:
    component = ComponentSpec(id="c1", type="card", frame={"x": 0, "y": 0, "w": 10, "h": 10})
    assert isinstance(component.frame, Frame)
    assert component.frame.region == DEFAULT_REGION


def test_parsing_is_structural_only() -> None:
    # Unknown types and zero sizes parse; the gates report them.
    component = ComponentSpec.from_dict(
        {"id": "odd", "type": "carousel", "frame": {"x": 0, "y": 0, "w": 0, "h": 0}}
    )
    assert component.type == "carousel"
    assert component.frame.w == 0


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"nodes": "nope"}, "Graph.nodes: expected array"),
        ({"nodes": [], "extra": 1}, "unexpected fields: \\['extra'\\]"),
        ({}, "missing required fields: \\['nodes'\\]"),
        ({"nodes": [{"id": "a", "type": "button"}]}, "Graph.nodes\\[0\\]"),
        (
            {"nodes": [{"id": "a", "type": "button", "frame": {"x": "1", "y": 0, "w": 1, "h": 1}}]},
            "Frame.x: expected number",
        ),
        (
            {"nodes": [{"id": "a", "type": "button", "frame": {"x": 0, "y": 0, "w": 1, "h": 1}, "children": [1]}]},
            "ComponentSpec.children\\[0\\]",
        ),
        ({"nodes": [], "meta": {"created": "2026-01-01T00:00:00", "modified": "x"}}, "timezone-aware"),
    ],
)
def test_graph_from_dict_rejects_malformed_structure(payload: dict[str, object], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        Graph.from_dict(payload)


def test_from_json_rejects_non_object_root() -> None:
    with pytest.raises(ValueError, match="Graph: JSON root must be an object"):
        Graph.from_json("[]")
    with pytest.raises(ValueError, match="Graph: invalid JSON"):
        Graph.from_json("{")


def test_graph_meta_parses_z_suffix_and_datetime_objects() -> None:
    meta = GraphMeta.from_dict(
        {
            "created": "2026-10-18T12:00:00Z",
            "modified": datetime(2026, 10, 18, 13, 0, tzinfo=UTC),
        }
    )
    assert meta.created == datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
    assert meta.modified.hour == 13


def test_graph_meta_touch_advances_modified() -> None:
    meta = GraphMeta(
        created=datetime(2020, 1, 1, tzinfo=UTC), modified=datetime(2020, 1, 1, tzinfo=UTC)
    )
    meta.touch()
    assert meta.modified > meta.created


def test_clone_shares_no_mutable_state() -> None:
    graph = _graph()
    clone = graph.clone()

    clone.nodes[0].props["title"] = "changed"
    clone.nodes[0].frame.x = 999
    clone.nodes[0].children.append("ghost")
    clone.nodes.pop()

    assert graph.nodes[0].props["title"] == "Profile"
    assert graph.nodes[0].frame.x == 0
    assert graph.nodes[0].children == ["btn-save"]
    assert len(graph.nodes) == 3


def test_create_component_generates_ids_and_copies_inputs() -> None:
    frame = Frame(0, 0, 10, 10)
    props = {"label": "Go"}
    first = create_component(ComponentType.BUTTON, frame, props=props)
    second = create_component(ComponentType.BUTTON, frame, props=props)

    assert first.id != second.id
    assert first.id.startswith("cmp-")
    assert first.type == "button"

    first.frame.x = 50
    first.props["label"] = "Stop"
    assert frame.x == 0
    assert props == {"label": "Go"}


def test_create_empty_graph_defaults() -> None:
    graph = create_empty_graph()
    assert graph.nodes == []
    assert graph.tokens is None
    assert graph.version == GRAPH_VERSION


def test_graph_accepts_mapping_nodes_and_rejects_other_values() -> None:
    graph = Graph(nodes=[{"id": "a", "type": "card", "frame": {"x": 0, "y": 0, "w": 5, "h": 5}}])
    assert isinstance(graph.nodes[0], ComponentSpec)

    with pytest.raises(ValueError, match="Graph.nodes\\[0\\]: expected ComponentSpec"):
        Graph(nodes=[42])  # type: ignore[list-item]


def test_finders() -> None:
    graph = _graph()

    assert find_component_by_id(graph, "btn-save") is graph.nodes[1]
    assert find_component_by_id(graph, "missing") is None
    assert [node.id for node in find_components_by_name(graph, "save")] == ["btn-save"]
    assert [node.id for node in find_components_by_type(graph, ComponentType.CARD)] == ["card-1"]
    assert [node.id for node in find_components_by_type(graph, "drawer")] == ["drawer-1"]
    assert [node.id for node in find_components_in_region(graph, "sidebar")] == ["drawer-1"]
    assert graph.node_ids() == ["card-1", "btn-save", "drawer-1"]


def test_token_set_rejects_non_numeric_spacing() -> None:
    payload = _tokens().to_dict()
    payload["spacing"] = {"sm": "4px"}
    with pytest.raises(ValueError, match="TokenSet.spacing.sm: expected number"):
        TokenSet.from_dict(payload)


def test_frame_edges() -> None:
    frame = Frame(10, 20, 30, 40)
    assert frame.right == 40
    assert frame.bottom == 60
