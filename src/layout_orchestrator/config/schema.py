"""
layout-orchestrator — configuration schema and validation.

File: src/layout_orchestrator/config/schema.py
Last updated: 2026-10-18

Purpose
- Describe every configuration field once (``SCHEMA``) and validate payloads
  against that table.

Functional requirements
- Report every problem at once as ``path: message`` issues.
- ``orchestrator.max_repair_attempts`` bounds the outer turn loop while
  ``repair.max_repair_attempts`` bounds a single engine loop; both are kept.
- Profiles are partial overlays over any section except ``meta``. The defaults
  ship ``strict`` (strict acceptance) and ``manual`` (auto-repair off).
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Final, Literal

from layout_orchestrator.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_GATE_TIMEOUT_SECONDS,
    DEFAULT_MAX_ROLLBACK_DEPTH,
    DEFAULT_REPAIR_TIMEOUT_MS,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TRANSACTION_HISTORY_LIMIT,
    ENGINE_MAX_REPAIR_ATTEMPTS,
    ORCHESTRATOR_MAX_REPAIR_ATTEMPTS,
)

FieldKind = Literal["bool", "int", "seconds", "level", "path"]

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = (("observability", "log_file"),)

_PROFILE_NAME: Final = re.compile(r"[a-z][a-z0-9_-]*")


@dataclass(frozen=True, slots=True)
class FieldSpec:
    kind: FieldKind
    minimum: int | None = None
    optional: bool = False


SCHEMA: Final[dict[str, dict[str, FieldSpec]]] = {
    "meta": {"schema_version": FieldSpec("int", minimum=1)},
    "orchestrator": {
        "verbose": FieldSpec("bool"),
        "enable_auto_repair": FieldSpec("bool"),
        "max_repair_attempts": FieldSpec("int", minimum=1),
        "strict_acceptance": FieldSpec("bool"),
    },
    "repair": {
        "max_repair_attempts": FieldSpec("int", minimum=1),
        "max_rollback_depth": FieldSpec("int", minimum=1),
        "enable_rollback": FieldSpec("bool"),
        "verbose": FieldSpec("bool"),
        "timeout_ms": FieldSpec("int", minimum=1),
        "retry_delay_ms": FieldSpec("int", minimum=0),
        "transaction_history_limit": FieldSpec("int", minimum=1),
    },
    "validation": {"gate_timeout_seconds": FieldSpec("seconds")},
    "observability": {
        "log_level": FieldSpec("level"),
        "redact_secrets": FieldSpec("bool"),
        "log_file": FieldSpec("path", optional=True),
    },
}

_OVERLAY_SECTIONS: Final[tuple[str, ...]] = tuple(name for name in SCHEMA if name != "meta")

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "orchestrator": {
        "verbose": False,
        "enable_auto_repair": True,
        "max_repair_attempts": ORCHESTRATOR_MAX_REPAIR_ATTEMPTS,
        "strict_acceptance": False,
    },
    "repair": {
        "max_repair_attempts": ENGINE_MAX_REPAIR_ATTEMPTS,
        "max_rollback_depth": DEFAULT_MAX_ROLLBACK_DEPTH,
        "enable_rollback": True,
        "verbose": False,
        "timeout_ms": DEFAULT_REPAIR_TIMEOUT_MS,
        "retry_delay_ms": DEFAULT_RETRY_DELAY_MS,
        "transaction_history_limit": DEFAULT_TRANSACTION_HISTORY_LIMIT,
    },
    "validation": {"gate_timeout_seconds": DEFAULT_GATE_TIMEOUT_SECONDS},
    "observability": {"log_level": "WARNING", "redact_secrets": True},
    "profiles": {
        "strict": {"orchestrator": {"strict_acceptance": True}},
        "manual": {"orchestrator": {"enable_auto_repair": False}},
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class ConfigValidationError(ValueError):
    """Raised with every issue found in a config payload."""

    def __init__(self, issues: Iterable[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        listing = "\n".join(f"- {issue}" for issue in self.issues)
        super().__init__(f"invalid config:\n{listing or '- <root>: validation failed'}")


def default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` deep-merged with ``overlay``; neither argument is modified."""

    merged = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = merge_config(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(
    config: object, *, active_profile: str | None = None
) -> list[ConfigValidationIssue]:
    """Return all issues in ``config``; an empty list means it is valid."""

    checker = _Checker()
    checker.check(config, active_profile)
    return checker.issues


def assert_valid_config(config: object, *, active_profile: str | None = None) -> dict[str, Any]:
    """Return the normalized config or raise ``ConfigValidationError``."""

    checker = _Checker()
    normalized = checker.check(config, active_profile)
    if checker.issues:
        raise ConfigValidationError(checker.issues)
    return normalized


def apply_profile_overlay(config: Mapping[str, Any], profile: str | None) -> dict[str, Any]:
    """Merge the named profile over ``config`` and validate the result."""

    name = (profile or "").strip()
    if not name:
        return copy.deepcopy(dict(config))
    profiles = config.get("profiles")
    overlay = profiles.get(name) if isinstance(profiles, Mapping) else None
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            [ConfigValidationIssue("profiles", f"profile {name!r} is not defined")]
        )
    return assert_valid_config(merge_config(config, overlay), active_profile=name)


class _Checker:
    def __init__(self) -> None:
        self.issues: list[ConfigValidationIssue] = []

    def fail(self, path: str, message: str) -> None:
        self.issues.append(ConfigValidationIssue(path, message))

    def check(self, payload: object, active_profile: str | None) -> dict[str, Any]:
        if not isinstance(payload, Mapping):
            self.fail("<root>", f"expected a table, got {type(payload).__name__}")
            return {}
        self._reject_unknown(payload, [*SCHEMA, "profiles"], "")

        out: dict[str, Any] = {}
        for section, fields in SCHEMA.items():
            if section not in payload:
                self.fail(section, "missing required section")
                continue
            out[section] = self._section(payload[section], fields, section, partial=False)

        version = out.get("meta", {}).get("schema_version")
        if version is not None and version != CONFIG_SCHEMA_VERSION:
            self.fail(
                "meta.schema_version",
                f"unsupported schema version {version}; "
                f"this runtime reads version {CONFIG_SCHEMA_VERSION}",
            )

        if "profiles" in payload:
            out["profiles"] = self._profiles(payload["profiles"])
        name = (active_profile or "").strip()
        if name and name not in out.get("profiles", {}):
            self.fail("profiles", f"profile {name!r} is not defined")
        return out

    def _section(
        self,
        raw: object,
        fields: Mapping[str, FieldSpec],
        path: str,
        *,
        partial: bool,
    ) -> dict[str, Any]:
        if not isinstance(raw, Mapping):
            self.fail(path, f"expected a table, got {type(raw).__name__}")
            return {}
        self._reject_unknown(raw, list(fields), path)

        out: dict[str, Any] = {}
        for name, spec in fields.items():
            where = f"{path}.{name}"
            if name not in raw:
                if not (partial or spec.optional):
                    self.fail(where, "missing required field")
                continue
            value = self._value(raw[name], spec, where)
            if value is not None:
                out[name] = value
        return out

    def _profiles(self, raw: object) -> dict[str, Any]:
        if not isinstance(raw, Mapping):
            self.fail("profiles", f"expected a table, got {type(raw).__name__}")
            return {}
        out: dict[str, Any] = {}
        for name in sorted(raw, key=str):
            path = f"profiles.{name}"
            overlay = raw[name]
            if not isinstance(name, str) or not _PROFILE_NAME.fullmatch(name):
                self.fail(path, "profile names are lowercase: [a-z][a-z0-9_-]*")
                continue
            if not isinstance(overlay, Mapping):
                self.fail(path, f"expected a table, got {type(overlay).__name__}")
                continue
            self._reject_unknown(overlay, list(_OVERLAY_SECTIONS), path)
            out[name] = {
                section: self._section(
                    overlay[section], SCHEMA[section], f"{path}.{section}", partial=True
                )
                for section in _OVERLAY_SECTIONS
                if section in overlay
            }
        return out

    def _value(self, value: object, spec: FieldSpec, path: str) -> Any:
        kind = spec.kind
        if kind == "bool":
            if isinstance(value, bool):
                return value
            return self._wrong_type(path, "boolean", value)

        if kind == "int":
            if isinstance(value, bool) or not isinstance(value, int):
                return self._wrong_type(path, "integer", value)
            if spec.minimum is not None and value < spec.minimum:
                self.fail(path, f"must be >= {spec.minimum}")
                return None
            return value

        if kind == "seconds":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return self._wrong_type(path, "number", value)
            if not math.isfinite(value) or value <= 0:
                self.fail(path, "must be a finite number > 0")
                return None
            return float(value)

        if not isinstance(value, str):
            return self._wrong_type(path, "string", value)
        text = value.strip()
        if kind == "level":
            text = text.upper()
            if text not in LOG_LEVELS:
                self.fail(path, f"invalid value {value!r}; expected one of: {', '.join(LOG_LEVELS)}")
                return None
            return text
        if not text or "\x00" in text:
            self.fail(path, "must be a non-empty path without NUL bytes")
            return None
        return text

    def _wrong_type(self, path: str, expected: str, value: object) -> None:
        self.fail(path, f"expected {expected}, got {type(value).__name__}")

    def _reject_unknown(self, payload: Mapping[Any, object], allowed: list[str], path: str) -> None:
        for key in sorted(payload, key=str):
            if key not in allowed:
                self.fail(f"{path}.{key}" if path else str(key), "unknown field")


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "SCHEMA",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "FieldSpec",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
