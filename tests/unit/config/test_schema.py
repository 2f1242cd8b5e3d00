"""
layout-orchestrator — unit tests for config schema

File: tests/unit/config/test_schema.py
Last updated: 2026-10-18

Purpose
- Validate defaults, structured issues, profile overlays and deep-merge behavior.

What this test file should cover
- Defaults validate cleanly and are returned as independent copies.
- Type, range and enum violations are reported with dotted paths.
- Every issue is collected in one pass.
- Profile overlays are partial and validated on application.
"""

from __future__ import annotations

import pytest

from layout_orchestrator.config.schema import (
    DEFAULT_CONFIG,
    SCHEMA,
    ConfigValidationError,
    ConfigValidationIssue,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)


def _issue_map(config: object) -> dict[str, str]:
    return {issue.path: issue.message for issue in validate_config(config)}


def test_defaults_are_valid_and_copied() -> None:
    first = default_config()
    first["repair"]["max_repair_attempts"] = 99

    assert validate_config(default_config()) == []
    assert default_config()["repair"]["max_repair_attempts"] == 5
    assert DEFAULT_CONFIG["repair"]["max_repair_attempts"] == 5


def test_every_schema_field_has_a_default_except_optional_ones() -> None:
    for section, fields in SCHEMA.items():
        for name, spec in fields.items():
            assert (name in DEFAULT_CONFIG[section]) != spec.optional, f"{section}.{name}"


def test_the_two_attempt_budgets_are_independent() -> None:
    config = default_config()

    assert config["orchestrator"]["max_repair_attempts"] == 3
    assert config["repair"]["max_repair_attempts"] == 5


@pytest.mark.parametrize(
    ("section", "field", "value", "message"),
    [
        ("orchestrator", "verbose", "yes", "expected boolean, got str"),
        ("orchestrator", "max_repair_attempts", 0, "must be >= 1"),
        ("repair", "retry_delay_ms", -1, "must be >= 0"),
        ("repair", "timeout_ms", True, "expected integer, got bool"),
        ("validation", "gate_timeout_seconds", 0, "must be a finite number > 0"),
        ("validation", "gate_timeout_seconds", float("inf"), "must be a finite number > 0"),
        ("observability", "log_file", "   ", "must be a non-empty path without NUL bytes"),
    ],
)
def test_field_rules(section: str, field: str, value: object, message: str) -> None:
    config = default_config()
    config[section][field] = value

    assert _issue_map(config) == {f"{section}.{field}": message}


def test_log_level_is_normalized_and_checked() -> None:
    config = default_config()
    config["observability"]["log_level"] = " info "
    assert assert_valid_config(config)["observability"]["log_level"] == "INFO"

    config["observability"]["log_level"] = "TRACE"
    issues = _issue_map(config)
    assert issues["observability.log_level"].startswith("invalid value 'TRACE'")


def test_all_issues_are_reported_together() -> None:
    config = default_config()
    del config["validation"]
    config["repair"]["max_rollback_depth"] = "3"
    config["repair"]["surprise"] = 1
    config["extra"] = {}

    assert _issue_map(config) == {
        "extra": "unknown field",
        "repair.max_rollback_depth": "expected integer, got str",
        "repair.surprise": "unknown field",
        "validation": "missing required section",
    }


def test_missing_required_field() -> None:
    config = default_config()
    del config["orchestrator"]["strict_acceptance"]

    assert _issue_map(config) == {"orchestrator.strict_acceptance": "missing required field"}


def test_schema_version_must_match() -> None:
    config = default_config()
    config["meta"]["schema_version"] = 2

    message = _issue_map(config)["meta.schema_version"]

    assert "unsupported schema version 2" in message


def test_non_mapping_root_is_rejected() -> None:
    assert validate_config(["not", "a", "table"]) == [
        ConfigValidationIssue("<root>", "expected a table, got list")
    ]


def test_profile_overlays_are_partial_but_checked() -> None:
    config = default_config()
    config["profiles"]["Bad Name"] = {}
    config["profiles"]["fast"] = {"repair": {"max_repair_attempts": 0}, "meta": {}}

    assert _issue_map(config) == {
        "profiles.Bad Name": "profile names are lowercase: [a-z][a-z0-9_-]*",
        "profiles.fast.meta": "unknown field",
        "profiles.fast.repair.max_repair_attempts": "must be >= 1",
    }


def test_apply_profile_overlay() -> None:
    config = default_config()

    strict = apply_profile_overlay(config, "strict")
    untouched = apply_profile_overlay(config, "  ")

    assert strict["orchestrator"]["strict_acceptance"] is True
    assert strict["orchestrator"]["enable_auto_repair"] is True
    assert untouched == config
    assert config["orchestrator"]["strict_acceptance"] is False

    with pytest.raises(ConfigValidationError, match="profile 'missing' is not defined"):
        apply_profile_overlay(config, "missing")


def test_active_profile_must_exist() -> None:
    issues = validate_config(default_config(), active_profile="ghost")

    assert issues == [ConfigValidationIssue("profiles", "profile 'ghost' is not defined")]


def test_merge_config_is_deep_and_non_mutating() -> None:
    base = {"a": {"b": 1, "c": [1, 2]}, "d": 1}
    overlay = {"a": {"b": 2}, "e": {"f": True}}

    merged = merge_config(base, overlay)
    merged["a"]["c"].append(3)

    assert merged == {"a": {"b": 2, "c": [1, 2, 3]}, "d": 1, "e": {"f": True}}
    assert base == {"a": {"b": 1, "c": [1, 2]}, "d": 1}
    assert overlay == {"a": {"b": 2}, "e": {"f": True}}


def test_validation_error_lists_issues() -> None:
    error = ConfigValidationError(
        [ConfigValidationIssue("repair.timeout_ms", "must be >= 1")]
    )

    assert str(error) == "invalid config:\n- repair.timeout_ms: must be >= 1"
    assert error.issues[0].path == "repair.timeout_ms"
