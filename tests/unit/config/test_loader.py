"""
layout-orchestrator — unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-18

Purpose
- Validate layered config loading from defaults, TOML, profiles, env vars and CLI overrides.

What this test file should cover
- Precedence: CLI > env > profile > file > defaults.
- Env var naming and type coercion.
- Profile selection order.
- Path normalization relative to the config file.
- Load errors for missing or malformed files.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from layout_orchestrator.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text.strip() + "\n", encoding="utf-8")
    return path


def test_precedence_defaults_file_env_cli(tmp_path: Path) -> None:
    empty = _write_config(tmp_path / "empty.toml", "")
    config_path = _write_config(
        tmp_path / "layout.toml",
        """
[repair]
max_repair_attempts = 4
""",
    )
    env = {"LAYOUT_REPAIR_MAX_REPAIR_ATTEMPTS": "6"}

    assert load_config(empty, environ={})["repair"]["max_repair_attempts"] == 5
    assert load_config(config_path, environ={})["repair"]["max_repair_attempts"] == 4
    assert load_config(config_path, environ=env)["repair"]["max_repair_attempts"] == 6
    cli_loaded = load_config(
        config_path,
        environ=env,
        cli_overrides={"repair.max_repair_attempts": 7},
    )
    assert cli_loaded["repair"]["max_repair_attempts"] == 7


def test_env_coercion_for_each_field_kind(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    loaded = load_config(
        config_path,
        environ={
            "LAYOUT_ORCHESTRATOR_STRICT_ACCEPTANCE": "yes",
            "LAYOUT_REPAIR_ENABLE_ROLLBACK": "off",
            "LAYOUT_REPAIR_RETRY_DELAY_MS": " 0 ",
            "LAYOUT_VALIDATION_GATE_TIMEOUT_SECONDS": "2.5",
            "LAYOUT_OBSERVABILITY_LOG_LEVEL": "debug",
        },
    )

    assert loaded["orchestrator"]["strict_acceptance"] is True
    assert loaded["repair"]["enable_rollback"] is False
    assert loaded["repair"]["retry_delay_ms"] == 0
    assert loaded["validation"]["gate_timeout_seconds"] == 2.5
    assert loaded["observability"]["log_level"] == "DEBUG"


@pytest.mark.parametrize(
    ("variable", "raw"),
    [
        ("LAYOUT_REPAIR_TIMEOUT_MS", "soon"),
        ("LAYOUT_ORCHESTRATOR_VERBOSE", "maybe"),
        ("LAYOUT_VALIDATION_GATE_TIMEOUT_SECONDS", "fast"),
    ],
)
def test_invalid_env_value_names_the_variable(tmp_path: Path, variable: str, raw: str) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    with pytest.raises(ConfigLoadError, match=variable):
        load_config(config_path, environ={variable: raw})


def test_env_value_that_parses_but_breaks_a_rule_fails_validation(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    with pytest.raises(ConfigValidationError, match="repair.max_rollback_depth"):
        load_config(config_path, environ={"LAYOUT_REPAIR_MAX_ROLLBACK_DEPTH": "0"})


def test_profile_selection_order(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    from_env = load_config(config_path, environ={"LAYOUT_PROFILE": "manual"})
    from_cli = load_config(
        config_path,
        environ={"LAYOUT_PROFILE": "manual"},
        cli_overrides={"profile": "strict"},
    )
    explicit = load_config(
        config_path,
        profile="manual",
        environ={"LAYOUT_PROFILE": "strict"},
        cli_overrides={"profile": "strict"},
    )

    assert from_env["orchestrator"]["enable_auto_repair"] is False
    assert from_cli["orchestrator"]["strict_acceptance"] is True
    assert from_cli["orchestrator"]["enable_auto_repair"] is True
    assert explicit["orchestrator"]["enable_auto_repair"] is False
    assert explicit["orchestrator"]["strict_acceptance"] is False


def test_env_wins_over_profile(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    loaded = load_config(
        config_path,
        profile="strict",
        environ={"LAYOUT_ORCHESTRATOR_STRICT_ACCEPTANCE": "false"},
    )

    assert loaded["orchestrator"]["strict_acceptance"] is False


def test_profiles_defined_in_file_are_selectable(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "layout.toml",
        """
[profiles.ci.repair]
max_repair_attempts = 2
enable_rollback = false
""",
    )

    loaded = load_config(config_path, profile="ci", environ={})

    assert loaded["repair"]["max_repair_attempts"] == 2
    assert loaded["repair"]["enable_rollback"] is False
    assert set(loaded["profiles"]) == {"ci", "manual", "strict"}


def test_unknown_profile_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    with pytest.raises(ConfigValidationError, match="profile 'nightly' is not defined"):
        load_config(config_path, profile="nightly", environ={})


def test_log_file_is_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "nested" / "layout.toml",
        """
[observability]
log_file = "logs/../logs/run.jsonl"
""",
    )

    loaded = load_config(config_path, environ={})

    expected = (config_path.resolve().parent / "logs" / "run.jsonl").as_posix()
    assert loaded["observability"]["log_file"] == expected


def test_log_file_from_env_is_normalized(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    loaded = load_config(config_path, environ={"LAYOUT_OBSERVABILITY_LOG_FILE": "out.jsonl"})

    assert loaded["observability"]["log_file"] == (
        config_path.resolve().parent / "out.jsonl"
    ).as_posix()


def test_missing_explicit_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_implicit_file_is_optional(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    loaded = load_config(environ={})

    assert loaded["orchestrator"]["max_repair_attempts"] == 3
    assert loaded["observability"]["log_level"] == "WARNING"


def test_implicit_file_is_picked_up_from_cwd(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_config(tmp_path / "layout.toml", "[orchestrator]\nverbose = true")
    monkeypatch.chdir(tmp_path)

    assert load_config(environ={})["orchestrator"]["verbose"] is True


def test_malformed_toml_is_a_load_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "[repair\nmax = 1")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_unknown_fields_in_file_are_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "layout.toml",
        """
[repair]
max_attempts = 2
""",
    )

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(config_path, environ={})

    assert [str(issue) for issue in excinfo.value.issues] == ["repair.max_attempts: unknown field"]


def test_empty_override_key_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "")

    with pytest.raises(ConfigLoadError, match="invalid override key"):
        load_config(config_path, environ={}, cli_overrides={".": True})


def test_loading_is_deterministic_and_dump_is_stable(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "layout.toml", "[repair]\ntimeout_ms = 2500")
    env = {"LAYOUT_REPAIR_VERBOSE": "1"}

    first = load_config(config_path, environ=env)
    second = load_config(config_path, environ=env)

    assert first == second
    assert dump_effective_config(first) == dump_effective_config(second)
    assert json.loads(dump_effective_config(first))["repair"]["timeout_ms"] == 2500
