"""Layout graph dataclasses with structural parsing and canonical serialization."""

from __future__ import annotations

import copy
import json
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import Final, NoReturn, TypeVar

from layout_orchestrator.domain import ids as domain_ids

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

GRAPH_VERSION: Final[str] = "1.0.0"
DEFAULT_REGION: Final[str] = "main"

_MAX_JSON_DEPTH = 16


class ComponentType(StrEnum):
    BUTTON = "button"
    SLIDER = "slider"
    TOGGLE = "toggle"
    TABS = "tabs"
    MODAL = "modal"
    TRAY = "tray"
    CARD = "card"
    CARD_GRID = "card-grid"
    FORM = "form"
    INPUT = "input"
    SELECT = "select"
    TEXTAREA = "textarea"
    PROGRESS = "progress"
    TOOLTIP = "tooltip"
    POPOVER = "popover"
    DRAWER = "drawer"
    DIALOG = "dialog"
    SETTINGS_PANEL = "settings-panel"
    # Only synthesized by repair for missing dependencies.
    PLACEHOLDER = "placeholder"


INTERACTIVE_COMPONENT_TYPES: Final[frozenset[str]] = frozenset(
    {
        ComponentType.BUTTON,
        ComponentType.SLIDER,
        ComponentType.TOGGLE,
        ComponentType.INPUT,
        ComponentType.SELECT,
    }
)


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        _fail(self.__class__.__name__, "to_dict is not implemented for this model type")

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


# ------------------------
# Parsing helpers
# ------------------------


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(value: object, path: str, *, min_len: int = 1) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if len(value.strip()) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    return value


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    return _as_str(value, path, min_len=0)


def _as_number(value: object, path: str) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        _fail(path, "must be finite")
    return value


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_sequence(value: object, path: str) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    _fail(path, f"expected array, got {type(value).__name__}")


def _as_str_list(value: object, path: str) -> list[str]:
    return [
        _as_str(item, f"{path}[{index}]") for index, item in enumerate(_as_sequence(value, path))
    ]


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def _datetime_to_iso8601z(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _as_json_value(value: object, path: str, *, depth: int = 0) -> JSONValue:
    if depth > _MAX_JSON_DEPTH:
        _fail(path, f"JSON nesting exceeds max depth {_MAX_JSON_DEPTH}")

    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, (list, tuple)):
        return [
            _as_json_value(item, f"{path}[{idx}]", depth=depth + 1)
            for idx, item in enumerate(value)
        ]
    if isinstance(value, Mapping):
        parsed: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, f"object key must be string, got {type(key).__name__}")
            parsed[key] = _as_json_value(item, f"{path}.{key}", depth=depth + 1)
        return parsed

    _fail(path, f"value is not JSON-serializable ({type(value).__name__})")


def _as_json_object(value: object, path: str) -> dict[str, JSONValue]:
    parsed = _as_json_value(value, path)
    if not isinstance(parsed, dict):
        _fail(path, "expected JSON object")
    return parsed


def _as_str_map(value: object, path: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return {
        _as_str(key, f"{path}.<key>"): _as_str(item, f"{path}.{key}", min_len=0)
        for key, item in value.items()
    }


def _as_number_map(value: object, path: str) -> dict[str, int | float]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return {
        _as_str(key, f"{path}.<key>"): _as_number(item, f"{path}.{key}")
        for key, item in value.items()
    }


def utc_now() -> datetime:
    return datetime.now(UTC)


# ------------------------
# Models
# ------------------------


@dataclass(slots=True)
class Frame(CanonicalModel):
    """Axis-aligned placement of a component inside a named region."""

    x: float
    y: float
    w: float
    h: float
    region: str = DEFAULT_REGION

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def to_dict(self) -> dict[str, JSONValue]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h, "region": self.region}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Frame:
        parsed = _expect_object(data, "Frame", required={"x", "y", "w", "h"}, optional={"region"})
        return cls(
            x=_as_number(parsed["x"], "Frame.x"),
            y=_as_number(parsed["y"], "Frame.y"),
            w=_as_number(parsed["w"], "Frame.w"),
            h=_as_number(parsed["h"], "Frame.h"),
            region=_as_str(parsed.get("region", DEFAULT_REGION), "Frame.region", min_len=0),
        )


@dataclass(slots=True)
class ComponentSpec(CanonicalModel):
    """One node of the layout graph.

    Parsing is structural only: component types, frame limits and child
    references are checked by the validation gates so that invalid graphs
    stay representable and repairable.
    """

    id: str
    type: str
    frame: Frame
    props: dict[str, JSONValue] = field(default_factory=dict)
    name: str | None = None
    children: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.frame, Mapping):
            self.frame = Frame.from_dict(self.frame)
        self.props = dict(self.props)
        self.children = list(self.children)

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "id": self.id,
            "type": str(self.type),
            "props": copy.deepcopy(self.props),
            "frame": self.frame.to_dict(),
            "children": list(self.children),
        }
        if self.name is not None:
            out["name"] = self.name
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ComponentSpec:
        parsed = _expect_object(
            data,
            "ComponentSpec",
            required={"id", "type", "frame"},
            optional={"name", "props", "children"},
        )
        return cls(
            id=_as_str(parsed["id"], "ComponentSpec.id"),
            type=_as_str(parsed["type"], "ComponentSpec.type"),
            frame=Frame.from_dict(_expect_frame_mapping(parsed["frame"])),
            props=_as_json_object(parsed.get("props", {}), "ComponentSpec.props"),
            name=_as_optional_str(parsed.get("name"), "ComponentSpec.name"),
            children=_as_str_list(parsed.get("children", []), "ComponentSpec.children"),
        )


def _expect_frame_mapping(value: object) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail("ComponentSpec.frame", f"expected object, got {type(value).__name__}")
    return value


@dataclass(slots=True)
class Typography(CanonicalModel):
    font_family: str
    sizes: dict[str, int | float] = field(default_factory=dict)
    weights: dict[str, int | float] = field(default_factory=dict)
    line_heights: dict[str, int | float] | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "fontFamily": self.font_family,
            "sizes": dict(self.sizes),
            "weights": dict(self.weights),
        }
        if self.line_heights is not None:
            out["lineHeights"] = dict(self.line_heights)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Typography:
        parsed = _expect_object(
            data,
            "Typography",
            required={"fontFamily", "sizes", "weights"},
            optional={"lineHeights"},
        )
        line_heights = parsed.get("lineHeights")
        return cls(
            font_family=_as_str(parsed["fontFamily"], "Typography.fontFamily"),
            sizes=_as_number_map(parsed["sizes"], "Typography.sizes"),
            weights=_as_number_map(parsed["weights"], "Typography.weights"),
            line_heights=(
                None
                if line_heights is None
                else _as_number_map(line_heights, "Typography.lineHeights")
            ),
        )


@dataclass(slots=True)
class TokenSet(CanonicalModel):
    """Design tokens shared by every component of a graph."""

    colors: dict[str, str]
    spacing: dict[str, int | float]
    typography: Typography
    radius: dict[str, int | float]
    shadows: dict[str, str] | None = None
    transitions: dict[str, str] | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "colors": dict(self.colors),
            "spacing": dict(self.spacing),
            "typography": self.typography.to_dict(),
            "radius": dict(self.radius),
        }
        if self.shadows is not None:
            out["shadows"] = dict(self.shadows)
        if self.transitions is not None:
            out["transitions"] = dict(self.transitions)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TokenSet:
        parsed = _expect_object(
            data,
            "TokenSet",
            required={"colors", "spacing", "typography", "radius"},
            optional={"shadows", "transitions"},
        )
        typography = parsed["typography"]
        if not isinstance(typography, Mapping):
            _fail("TokenSet.typography", f"expected object, got {type(typography).__name__}")
        shadows = parsed.get("shadows")
        transitions = parsed.get("transitions")
        return cls(
            colors=_as_str_map(parsed["colors"], "TokenSet.colors"),
            spacing=_as_number_map(parsed["spacing"], "TokenSet.spacing"),
            typography=Typography.from_dict(typography),
            radius=_as_number_map(parsed["radius"], "TokenSet.radius"),
            shadows=None if shadows is None else _as_str_map(shadows, "TokenSet.shadows"),
            transitions=(
                None if transitions is None else _as_str_map(transitions, "TokenSet.transitions")
            ),
        )


@dataclass(slots=True)
class GraphMeta(CanonicalModel):
    created: datetime = field(default_factory=utc_now)
    modified: datetime = field(default_factory=utc_now)
    author: str | None = None
    description: str | None = None

    def touch(self) -> None:
        self.modified = utc_now()

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "created": _datetime_to_iso8601z(self.created),
            "modified": _datetime_to_iso8601z(self.modified),
        }
        if self.author is not None:
            out["author"] = self.author
        if self.description is not None:
            out["description"] = self.description
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> GraphMeta:
        parsed = _expect_object(
            data,
            "GraphMeta",
            required={"created", "modified"},
            optional={"author", "description"},
        )
        return cls(
            created=_as_datetime(parsed["created"], "GraphMeta.created"),
            modified=_as_datetime(parsed["modified"], "GraphMeta.modified"),
            author=_as_optional_str(parsed.get("author"), "GraphMeta.author"),
            description=_as_optional_str(parsed.get("description"), "GraphMeta.description"),
        )


@dataclass(slots=True)
class Graph(CanonicalModel):
    """Full layout state. Node order is z-order."""

    nodes: list[ComponentSpec] = field(default_factory=list)
    tokens: TokenSet | None = None
    meta: GraphMeta = field(default_factory=GraphMeta)
    version: str = GRAPH_VERSION

    def __post_init__(self) -> None:
        parsed_nodes: list[ComponentSpec] = []
        for index, node in enumerate(self.nodes):
            if isinstance(node, ComponentSpec):
                parsed_nodes.append(node)
            elif isinstance(node, Mapping):
                parsed_nodes.append(ComponentSpec.from_dict(node))
            else:
                _fail(f"Graph.nodes[{index}]", f"expected ComponentSpec, got {type(node).__name__}")
        self.nodes = parsed_nodes

    def clone(self) -> Graph:
        """Return a deep copy that shares no mutable state with ``self``."""
        return copy.deepcopy(self)

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "version": self.version,
            "nodes": [node.to_dict() for node in self.nodes],
            "meta": self.meta.to_dict(),
        }
        if self.tokens is not None:
            out["tokens"] = self.tokens.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Graph:
        parsed = _expect_object(
            data,
            "Graph",
            required={"nodes"},
            optional={"version", "tokens", "meta"},
        )
        nodes: list[ComponentSpec] = []
        for index, raw in enumerate(_as_sequence(parsed["nodes"], "Graph.nodes")):
            if not isinstance(raw, Mapping):
                _fail(f"Graph.nodes[{index}]", f"expected object, got {type(raw).__name__}")
            try:
                nodes.append(ComponentSpec.from_dict(raw))
            except ValueError as exc:
                _fail(f"Graph.nodes[{index}]", str(exc))

        tokens_raw = parsed.get("tokens")
        meta_raw = parsed.get("meta")
        return cls(
            nodes=nodes,
            tokens=None if tokens_raw is None else TokenSet.from_dict(_as_mapping(tokens_raw)),
            meta=GraphMeta() if meta_raw is None else GraphMeta.from_dict(_as_mapping(meta_raw)),
            version=_as_str(parsed.get("version", GRAPH_VERSION), "Graph.version"),
        )


def _as_mapping(value: object) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail("Graph", f"expected object, got {type(value).__name__}")
    return value


# ------------------------
# Factories and finders
# ------------------------


def create_empty_graph(
    tokens: TokenSet | None = None,
    *,
    author: str | None = None,
    description: str | None = None,
) -> Graph:
    return Graph(
        nodes=[],
        tokens=copy.deepcopy(tokens),
        meta=GraphMeta(author=author, description=description),
    )


def create_component(
    component_type: ComponentType | str,
    frame: Frame | Mapping[str, object],
    *,
    name: str | None = None,
    props: Mapping[str, JSONValue] | None = None,
    children: Iterable[str] = (),
    component_id: str | None = None,
) -> ComponentSpec:
    """Build a component with a freshly generated id unless one is supplied."""
    resolved_frame = frame if isinstance(frame, Frame) else Frame.from_dict(frame)
    return ComponentSpec(
        id=component_id if component_id is not None else domain_ids.generate_component_id(),
        type=str(component_type),
        frame=copy.deepcopy(resolved_frame),
        props=copy.deepcopy(dict(props or {})),
        name=name,
        children=list(children),
    )


def find_component_by_id(graph: Graph, component_id: str) -> ComponentSpec | None:
    for node in graph.nodes:
        if node.id == component_id:
            return node
    return None


def find_components_by_name(graph: Graph, name: str) -> list[ComponentSpec]:
    return [node for node in graph.nodes if node.name == name]


def find_components_by_type(
    graph: Graph, component_type: ComponentType | str
) -> list[ComponentSpec]:
    wanted = str(component_type)
    return [node for node in graph.nodes if node.type == wanted]


def find_components_in_region(graph: Graph, region: str) -> list[ComponentSpec]:
    return [node for node in graph.nodes if node.frame.region == region]


__all__ = [
    "DEFAULT_REGION",
    "GRAPH_VERSION",
    "INTERACTIVE_COMPONENT_TYPES",
    "CanonicalModel",
    "ComponentSpec",
    "ComponentType",
    "Frame",
    "Graph",
    "GraphMeta",
    "JSONValue",
    "TokenSet",
    "Typography",
    "create_component",
    "create_empty_graph",
    "find_component_by_id",
    "find_components_by_name",
    "find_components_by_type",
    "find_components_in_region",
    "utc_now",
]
