"""
layout-orchestrator — runtime config loader.

File: src/layout_orchestrator/config/loader.py
Last updated: 2026-10-18

Purpose
- Build the effective config from layered sources.

Functional requirements
- Layers, lowest first: defaults, ``layout.toml``, the selected profile,
  ``LAYOUT_<SECTION>_<FIELD>`` environment variables, CLI overrides.
- The profile comes from the ``profile`` argument, a ``profile`` CLI override
  or ``LAYOUT_PROFILE``, in that order.
- Relative ``log_file`` paths resolve against the config file's directory.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from layout_orchestrator.config.schema import (
    PATH_FIELDS,
    SCHEMA,
    FieldKind,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "layout.toml"
ENV_PREFIX: Final[str] = "LAYOUT_"

_TRUTHY: Final = frozenset({"1", "true", "yes", "on"})
_FALSY: Final = frozenset({"0", "false", "no", "off"})


class ConfigLoadError(ValueError):
    """The config file or an override could not be read."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    ``cli_overrides`` uses dotted keys such as ``"repair.max_repair_attempts"``.
    An explicit ``config_path`` must exist; the implicit ``./layout.toml`` may not.
    """

    env = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})
    if config_path is None:
        path = Path.cwd().resolve() / DEFAULT_CONFIG_FILE
    else:
        path = Path(config_path).expanduser().resolve()

    file_layer = _read_toml(path, required=config_path is not None)
    config = assert_valid_config(merge_config(default_config(), file_layer))

    selected = _pick_profile(profile, overrides.pop("profile", None), env)
    if selected is not None:
        config = apply_profile_overlay(config, selected)

    config = merge_config(config, _env_layer(env))
    config = merge_config(config, _dotted_layer(overrides))
    config = assert_valid_config(config, active_profile=selected)
    return normalize_paths(config, base_dir=path.parent)


def normalize_paths(config: Mapping[str, Any], *, base_dir: Path) -> dict[str, Any]:
    """Resolve relative path fields against ``base_dir``."""

    out = merge_config({}, config)
    for section, name in PATH_FIELDS:
        table = out.get(section)
        raw = table.get(name) if isinstance(table, dict) else None
        if isinstance(raw, str):
            candidate = base_dir / Path(os.path.expandvars(raw)).expanduser()
            table[name] = Path(os.path.normpath(candidate)).as_posix()
    return out


def dump_effective_config(config: Mapping[str, Any]) -> str:
    return json.dumps(dict(config), indent=2, sort_keys=True)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        if required:
            raise ConfigLoadError(f"config file not found: {path}") from None
        return {}
    except OSError as exc:
        raise ConfigLoadError(f"cannot read config file {path}: {exc}") from exc
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc


def _pick_profile(explicit: str | None, from_cli: object, env: Mapping[str, str]) -> str | None:
    for candidate in (explicit, from_cli, env.get(f"{ENV_PREFIX}PROFILE")):
        if candidate is None:
            continue
        if not isinstance(candidate, str):
            raise ConfigLoadError(f"profile must be a string, got {type(candidate).__name__}")
        return candidate.strip() or None
    return None


def _env_layer(env: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for section, fields in SCHEMA.items():
        if section == "meta":
            continue
        for name, spec in fields.items():
            variable = f"{ENV_PREFIX}{section}_{name}".upper()
            raw = env.get(variable)
            if raw is not None:
                layer.setdefault(section, {})[name] = _parse_env(variable, raw.strip(), spec.kind)
    return layer


def _parse_env(variable: str, text: str, kind: FieldKind) -> object:
    if kind == "bool":
        if text.lower() in _TRUTHY:
            return True
        if text.lower() in _FALSY:
            return False
        raise ConfigLoadError(f"{variable} must be a boolean (true/false, yes/no, on/off, 1/0)")
    if kind == "int":
        try:
            return int(text)
        except ValueError:
            raise ConfigLoadError(f"{variable} must be an integer, got {text!r}") from None
    if kind == "seconds":
        try:
            return float(text)
        except ValueError:
            raise ConfigLoadError(f"{variable} must be a number, got {text!r}") from None
    return text


def _dotted_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key, value in overrides.items():
        parts = [part for part in key.split(".") if part]
        if not parts:
            raise ConfigLoadError(f"invalid override key {key!r}")
        node = layer
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return layer


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "dump_effective_config",
    "load_config",
    "normalize_paths",
]
