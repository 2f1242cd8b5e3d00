"""Edit commands and edit plans consumed by the patcher."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import ClassVar

from layout_orchestrator.domain import ids as domain_ids
from layout_orchestrator.domain.models import (
    CanonicalModel,
    ComponentSpec,
    JSONValue,
    TokenSet,
    _as_datetime,
    _as_enum,
    _as_json_object,
    _as_number,
    _as_optional_str,
    _as_sequence,
    _as_str,
    _datetime_to_iso8601z,
    _expect_object,
    _fail,
    utc_now,
)

_FRAME_FIELDS = frozenset({"x", "y", "w", "h", "region"})


class CommandType(StrEnum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    REMOVE = "REMOVE"
    MOVE = "MOVE"
    SET_TOKENS = "SET_TOKENS"


class PlanPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class ComponentUpdates:
    """Shallow patch merged into an existing component."""

    name: str | None = None
    props: dict[str, JSONValue] | None = None
    frame: dict[str, JSONValue] | None = None

    def __post_init__(self) -> None:
        if self.frame is not None:
            unknown = sorted(set(self.frame) - _FRAME_FIELDS)
            if unknown:
                _fail("ComponentUpdates.frame", f"unexpected fields: {unknown}")

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {}
        if self.name is not None:
            out["name"] = self.name
        if self.props is not None:
            out["props"] = copy.deepcopy(self.props)
        if self.frame is not None:
            out["frame"] = dict(self.frame)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ComponentUpdates:
        parsed = _expect_object(
            data, "ComponentUpdates", required=set(), optional={"name", "props", "frame"}
        )
        props = parsed.get("props")
        frame = parsed.get("frame")
        return cls(
            name=_as_optional_str(parsed.get("name"), "ComponentUpdates.name"),
            props=None if props is None else _as_json_object(props, "ComponentUpdates.props"),
            frame=None if frame is None else _as_json_object(frame, "ComponentUpdates.frame"),
        )


@dataclass(frozen=True, slots=True)
class AddCommand:
    command_type: ClassVar[CommandType] = CommandType.ADD

    component: ComponentSpec
    id: str = field(default_factory=domain_ids.generate_command_id)

    def to_dict(self) -> dict[str, JSONValue]:
        return {"type": self.command_type.value, "id": self.id, "component": self.component.to_dict()}


@dataclass(frozen=True, slots=True)
class UpdateCommand:
    command_type: ClassVar[CommandType] = CommandType.UPDATE

    target_id: str
    updates: ComponentUpdates
    id: str = field(default_factory=domain_ids.generate_command_id)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "type": self.command_type.value,
            "id": self.id,
            "targetId": self.target_id,
            "updates": self.updates.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class RemoveCommand:
    command_type: ClassVar[CommandType] = CommandType.REMOVE

    target_id: str
    cascade: bool = True
    id: str = field(default_factory=domain_ids.generate_command_id)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "type": self.command_type.value,
            "id": self.id,
            "targetId": self.target_id,
            "cascade": self.cascade,
        }


@dataclass(frozen=True, slots=True)
class MoveCommand:
    command_type: ClassVar[CommandType] = CommandType.MOVE

    target_id: str
    x: float
    y: float
    region: str | None = None
    id: str = field(default_factory=domain_ids.generate_command_id)

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "type": self.command_type.value,
            "id": self.id,
            "targetId": self.target_id,
            "position": {"x": self.x, "y": self.y},
        }
        if self.region is not None:
            out["region"] = self.region
        return out


@dataclass(frozen=True, slots=True)
class SetTokensCommand:
    command_type: ClassVar[CommandType] = CommandType.SET_TOKENS

    tokens: TokenSet
    id: str = field(default_factory=domain_ids.generate_command_id)

    def to_dict(self) -> dict[str, JSONValue]:
        return {"type": self.command_type.value, "id": self.id, "tokens": self.tokens.to_dict()}


Command = AddCommand | UpdateCommand | RemoveCommand | MoveCommand | SetTokensCommand


def command_from_dict(data: Mapping[str, object], *, path: str = "Command") -> Command:
    """Parse one wire-format command, dispatching on its ``type`` tag."""
    if not isinstance(data, Mapping):
        _fail(path, f"expected object, got {type(data).__name__}")
    command_type = _as_enum(CommandType, data.get("type"), f"{path}.type")

    if command_type is CommandType.ADD:
        parsed = _expect_object(data, path, required={"type", "component"}, optional={"id"})
        component = parsed["component"]
        if not isinstance(component, Mapping):
            _fail(f"{path}.component", f"expected object, got {type(component).__name__}")
        return AddCommand(component=ComponentSpec.from_dict(component), **_command_id(parsed, path))

    if command_type is CommandType.UPDATE:
        parsed = _expect_object(data, path, required={"type", "targetId", "updates"}, optional={"id"})
        updates = parsed["updates"]
        if not isinstance(updates, Mapping):
            _fail(f"{path}.updates", f"expected object, got {type(updates).__name__}")
        return UpdateCommand(
            target_id=_as_str(parsed["targetId"], f"{path}.targetId"),
            updates=ComponentUpdates.from_dict(updates),
            **_command_id(parsed, path),
        )

    if command_type is CommandType.REMOVE:
        parsed = _expect_object(data, path, required={"type", "targetId"}, optional={"id", "cascade"})
        cascade = parsed.get("cascade", True)
        if not isinstance(cascade, bool):
            _fail(f"{path}.cascade", f"expected boolean, got {type(cascade).__name__}")
        return RemoveCommand(
            target_id=_as_str(parsed["targetId"], f"{path}.targetId"),
            cascade=cascade,
            **_command_id(parsed, path),
        )

    if command_type is CommandType.MOVE:
        parsed = _expect_object(
            data, path, required={"type", "targetId", "position"}, optional={"id", "region"}
        )
        position = _expect_object(parsed["position"], f"{path}.position", required={"x", "y"})
        return MoveCommand(
            target_id=_as_str(parsed["targetId"], f"{path}.targetId"),
            x=_as_number(position["x"], f"{path}.position.x"),
            y=_as_number(position["y"], f"{path}.position.y"),
            region=_as_optional_str(parsed.get("region"), f"{path}.region"),
            **_command_id(parsed, path),
        )

    parsed = _expect_object(data, path, required={"type", "tokens"}, optional={"id"})
    tokens = parsed["tokens"]
    if not isinstance(tokens, Mapping):
        _fail(f"{path}.tokens", f"expected object, got {type(tokens).__name__}")
    return SetTokensCommand(tokens=TokenSet.from_dict(tokens), **_command_id(parsed, path))


def _command_id(parsed: Mapping[str, object], path: str) -> dict[str, str]:
    if "id" not in parsed:
        return {}
    return {"id": _as_str(parsed["id"], f"{path}.id")}


@dataclass(frozen=True, slots=True)
class PlanMeta:
    priority: PlanPriority = PlanPriority.NORMAL
    estimated_duration: float | None = None
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {"priority": self.priority.value, "tags": list(self.tags)}
        if self.estimated_duration is not None:
            out["estimatedDuration"] = self.estimated_duration
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PlanMeta:
        parsed = _expect_object(
            data, "PlanMeta", required=set(), optional={"priority", "estimatedDuration", "tags"}
        )
        duration = parsed.get("estimatedDuration")
        return cls(
            priority=_as_enum(PlanPriority, parsed.get("priority", "normal"), "PlanMeta.priority"),
            estimated_duration=(
                None if duration is None else float(_as_number(duration, "PlanMeta.estimatedDuration"))
            ),
            tags=tuple(
                _as_str(tag, f"PlanMeta.tags[{index}]")
                for index, tag in enumerate(_as_sequence(parsed.get("tags", []), "PlanMeta.tags"))
            ),
        )


@dataclass(frozen=True, slots=True)
class EditPlan(CanonicalModel):
    """Ordered commands produced by a planner for one turn."""

    operations: tuple[Command, ...]
    description: str
    id: str = field(default_factory=domain_ids.generate_plan_id)
    prompt: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    meta: PlanMeta = field(default_factory=PlanMeta)

    def __post_init__(self) -> None:
        object.__setattr__(self, "operations", tuple(self.operations))

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "id": self.id,
            "operations": [operation.to_dict() for operation in self.operations],
            "description": self.description,
            "timestamp": _datetime_to_iso8601z(self.timestamp),
            "meta": self.meta.to_dict(),
        }
        if self.prompt is not None:
            out["prompt"] = self.prompt
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> EditPlan:
        parsed = _expect_object(
            data,
            "EditPlan",
            required={"operations"},
            optional={"id", "description", "prompt", "timestamp", "meta"},
        )
        operations = tuple(
            command_from_dict(_as_command_mapping(raw, index), path=f"EditPlan.operations[{index}]")
            for index, raw in enumerate(_as_sequence(parsed["operations"], "EditPlan.operations"))
        )
        meta_raw = parsed.get("meta")
        extra: dict[str, object] = {}
        if "id" in parsed:
            extra["id"] = _as_str(parsed["id"], "EditPlan.id")
        if "timestamp" in parsed:
            extra["timestamp"] = _as_datetime(parsed["timestamp"], "EditPlan.timestamp")
        return cls(
            operations=operations,
            description=_as_str(parsed.get("description", ""), "EditPlan.description", min_len=0),
            prompt=_as_optional_str(parsed.get("prompt"), "EditPlan.prompt"),
            meta=PlanMeta() if meta_raw is None else PlanMeta.from_dict(_as_plan_meta(meta_raw)),
            **extra,  # type: ignore[arg-type]
        )


def _as_command_mapping(value: object, index: int) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(f"EditPlan.operations[{index}]", f"expected object, got {type(value).__name__}")
    return value


def _as_plan_meta(value: object) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail("EditPlan.meta", f"expected object, got {type(value).__name__}")
    return value


# ------------------------
# Factories
# ------------------------


def create_add_command(component: ComponentSpec) -> AddCommand:
    return AddCommand(component=component)


def create_update_command(
    target_id: str,
    *,
    name: str | None = None,
    props: Mapping[str, JSONValue] | None = None,
    frame: Mapping[str, JSONValue] | None = None,
) -> UpdateCommand:
    return UpdateCommand(
        target_id=target_id,
        updates=ComponentUpdates(
            name=name,
            props=None if props is None else dict(props),
            frame=None if frame is None else dict(frame),
        ),
    )


def create_remove_command(target_id: str, *, cascade: bool = True) -> RemoveCommand:
    return RemoveCommand(target_id=target_id, cascade=cascade)


def create_move_command(
    target_id: str, x: float, y: float, *, region: str | None = None
) -> MoveCommand:
    return MoveCommand(target_id=target_id, x=x, y=y, region=region)


def create_set_tokens_command(tokens: TokenSet) -> SetTokensCommand:
    return SetTokensCommand(tokens=tokens)


def create_edit_plan(
    operations: Iterable[Command] | Sequence[Command],
    description: str,
    *,
    prompt: str | None = None,
    priority: PlanPriority | str = PlanPriority.NORMAL,
    tags: Iterable[str] = (),
) -> EditPlan:
    return EditPlan(
        operations=tuple(operations),
        description=description,
        prompt=prompt,
        meta=PlanMeta(priority=PlanPriority(priority), tags=tuple(tags)),
    )


__all__ = [
    "AddCommand",
    "Command",
    "CommandType",
    "ComponentUpdates",
    "EditPlan",
    "MoveCommand",
    "PlanMeta",
    "PlanPriority",
    "RemoveCommand",
    "SetTokensCommand",
    "UpdateCommand",
    "command_from_dict",
    "create_add_command",
    "create_edit_plan",
    "create_move_command",
    "create_remove_command",
    "create_set_tokens_command",
    "create_update_command",
]
