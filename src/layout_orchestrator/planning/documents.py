"""Load and dump graph and edit-plan documents (JSON or YAML)."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Final

import yaml

from layout_orchestrator.domain.commands import EditPlan
from layout_orchestrator.domain.models import Graph
from layout_orchestrator.utils.fs import atomic_write

_YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})


class DocumentError(ValueError):
    """Raised when a document cannot be read or does not describe a valid model."""


def load_document(path: str | Path) -> Mapping[str, object]:
    """Read a JSON or YAML object from ``path``; the suffix picks the parser."""

    source = Path(path)
    payload = _read_payload(source)
    if not isinstance(payload, Mapping):
        raise DocumentError(f"{source.as_posix()}: document root must be an object")
    return payload


def _read_payload(source: Path) -> object:
    try:
        with source.open("r", encoding="utf-8") as handle:
            if source.suffix.lower() in _YAML_SUFFIXES:
                payload = yaml.safe_load(handle)
            else:
                payload = json.load(handle)
    except OSError as exc:
        raise DocumentError(f"{source.as_posix()}: unable to read document: {exc}") from exc
    except yaml.YAMLError as exc:
        raise DocumentError(f"{source.as_posix()}: invalid YAML: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DocumentError(f"{source.as_posix()}: invalid JSON: {exc.msg}") from exc
    return payload


def load_graph(path: str | Path) -> Graph:
    payload = load_document(path)
    try:
        return Graph.from_dict(payload)
    except ValueError as exc:
        raise DocumentError(f"{Path(path).as_posix()}: {exc}") from exc


def load_edit_plan(path: str | Path) -> EditPlan:
    """Load an edit plan; a bare list of commands is accepted as ``operations``."""

    source = Path(path)
    payload = _read_payload(source)
    if isinstance(payload, list):
        payload = {"operations": payload, "description": source.stem}
    elif not isinstance(payload, Mapping):
        raise DocumentError(f"{source.as_posix()}: plan must be an object or a list of commands")
    try:
        return EditPlan.from_dict(payload)
    except ValueError as exc:
        raise DocumentError(f"{source.as_posix()}: {exc}") from exc


def dump_graph(graph: Graph, path: str | Path | None = None) -> str:
    """Render ``graph`` as JSON (or YAML for ``.yaml``/``.yml`` targets) and optionally write it."""

    target = None if path is None else Path(path)
    if target is not None and target.suffix.lower() in _YAML_SUFFIXES:
        rendered = yaml.safe_dump(graph.to_dict(), sort_keys=False, allow_unicode=True)
    else:
        rendered = json.dumps(graph.to_dict(), indent=2, ensure_ascii=False) + "\n"
    if target is not None:
        atomic_write(target, rendered)
    return rendered


__all__ = ["DocumentError", "dump_graph", "load_document", "load_edit_plan", "load_graph"]
