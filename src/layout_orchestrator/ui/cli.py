"""Command-line interface router for layout-orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from layout_orchestrator.config import (
    LOG_LEVELS,
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from layout_orchestrator.control_plane import (
    OrchestratorConfig,
    TurnOrchestrator,
    ValidationFailedError,
)
from layout_orchestrator.domain.models import Graph
from layout_orchestrator.main import ExitCode
from layout_orchestrator.observability import MetricsRegistry, setup_logging, shutdown_logging
from layout_orchestrator.planning import DocumentError, dump_graph, load_edit_plan, load_graph
from layout_orchestrator.repair_plane import RepairConfig, RepairEngine, RepairResult
from layout_orchestrator.ui.render import CLIRenderer, create_renderer
from layout_orchestrator.verification_plane import ValidationGate, ValidationResult


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.INTERNAL_ERROR)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="layout-orchestrator",
        description=(
            "layout-orchestrator: validate, patch and repair UI layout graphs.\n\n"
            "Common workflows:\n"
            "  layout-orchestrator validate graph.json          Run the validation gates\n"
            "  layout-orchestrator apply graph.json plan.yaml   Execute one turn\n"
            "  layout-orchestrator repair graph.json            Repair a broken graph\n"
            "  layout-orchestrator config                       Show effective config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./layout.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name (builtin: strict, manual).",
    )
    common.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override observability.log_level.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log phase transitions and show advisory diagnostics.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Run the validation gates over a graph document",
    )
    validate_parser.add_argument("graph_path", help="Graph document (JSON or YAML)")
    validate_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    validate_parser.set_defaults(handler=_cmd_validate)

    # apply ---------------------------------------------------------------
    apply_parser = subparsers.add_parser(
        "apply",
        parents=[common],
        help="Apply an edit plan to a graph as one turn",
        description=(
            "Patch, validate and (optionally) repair a graph.\n\n"
            "Examples:\n"
            "  layout-orchestrator apply graph.json plan.yaml --out next.json\n"
            "  layout-orchestrator apply graph.json plan.yaml --no-repair\n"
            "  layout-orchestrator apply graph.json plan.yaml --strict --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    apply_parser.add_argument("graph_path", help="Graph document (JSON or YAML)")
    apply_parser.add_argument("plan_path", help="Edit plan document (JSON or YAML)")
    apply_parser.add_argument("--out", default=None, help="Write the resulting graph here")
    apply_parser.add_argument(
        "--no-repair", action="store_true", help="Disable auto-repair for this turn"
    )
    apply_parser.add_argument(
        "--strict",
        action="store_true",
        help="Only accept repaired graphs that fully re-validate",
    )
    apply_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    apply_parser.set_defaults(handler=_cmd_apply)

    # repair --------------------------------------------------------------
    repair_parser = subparsers.add_parser(
        "repair",
        parents=[common],
        help="Run the repair loop over a graph that fails validation",
    )
    repair_parser.add_argument("graph_path", help="Graph document (JSON or YAML)")
    repair_parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Override repair.max_repair_attempts.",
    )
    repair_parser.add_argument("--out", default=None, help="Write the repaired graph here")
    repair_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    repair_parser.set_defaults(handler=_cmd_repair)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        return int(handler(namespace))
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    graph = _load_graph(args.graph_path)
    gate = _build_gate(config, MetricsRegistry())
    result = asyncio.run(gate.run(graph))

    if _flag(args, "json"):
        _emit_json({"command": "validate", **result.to_dict()})
    else:
        renderer = _get_renderer(args)
        renderer.kv("Graph", args.graph_path)
        renderer.kv("Nodes", len(graph.nodes))
        renderer.validation(result)
        renderer.section(f"Result: {'passed' if result.passed else 'failed'}")
    return int(ExitCode.SUCCESS if result.passed else ExitCode.VALIDATION_REJECTED)


def _cmd_apply(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if _flag(args, "no_repair"):
        overrides["orchestrator.enable_auto_repair"] = False
    if _flag(args, "strict"):
        overrides["orchestrator.strict_acceptance"] = True
    config = _load_effective_config(args, overrides)

    graph = _load_graph(args.graph_path)
    try:
        plan = load_edit_plan(args.plan_path)
    except DocumentError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.INPUT_ERROR)) from exc

    metrics = MetricsRegistry()
    orchestrator = TurnOrchestrator(
        OrchestratorConfig.from_mapping(config),
        gate=_build_gate(config, metrics),
        metrics=metrics,
    )
    renderer = _get_renderer(args)
    try:
        result = asyncio.run(orchestrator.execute_turn(plan, graph))
    except ValidationFailedError as exc:
        if _flag(args, "json"):
            _emit_json(
                {
                    "command": "apply",
                    "success": False,
                    "error": str(exc),
                    "errorCount": exc.error_count,
                    "diagnostics": [item.to_dict() for item in exc.diagnostics],
                }
            )
        else:
            renderer.fail(str(exc))
            renderer.diagnostics(exc.diagnostics)
        return int(ExitCode.VALIDATION_REJECTED)

    if result.success and args.out:
        dump_graph(result.graph, args.out)

    if _flag(args, "json"):
        _emit_json({"command": "apply", **result.to_dict()})
    else:
        renderer.turn(result)
        if result.success and args.out:
            renderer.kv("Wrote", args.out)
    return int(ExitCode.SUCCESS if result.success else ExitCode.VALIDATION_REJECTED)


def _cmd_repair(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.max_attempts is not None:
        overrides["repair.max_repair_attempts"] = args.max_attempts
    config = _load_effective_config(args, overrides)

    graph = _load_graph(args.graph_path)
    gate = _build_gate(config, MetricsRegistry())
    engine = RepairEngine(_repair_config(config, verbose=_flag(args, "verbose")))

    async def _run() -> tuple[RepairResult | None, ValidationResult]:
        initial = await gate.run(graph)
        if initial.passed:
            return None, initial
        result = await engine.repair_loop_async(graph, initial.diagnostics, gate.diagnostics_async)
        return result, await gate.run(result.graph)

    result, final = asyncio.run(_run())
    repaired = graph if result is None else result.graph
    passed = final.passed

    if passed and args.out:
        dump_graph(repaired, args.out)

    if _flag(args, "json"):
        payload: dict[str, object] = {
            "command": "repair",
            "success": passed,
            "fixes": [] if result is None else list(result.fixes),
            "attempts": 0 if result is None else result.attempts,
            "validation": final.to_dict(),
        }
        _emit_json(payload)
        return int(ExitCode.SUCCESS if passed else ExitCode.VALIDATION_REJECTED)

    renderer = _get_renderer(args)
    if result is None:
        renderer.ok("No repairs needed")
        return int(ExitCode.SUCCESS)
    renderer.kv("Attempts", result.attempts)
    renderer.fixes(result.fixes)
    renderer.validation(final)
    if passed:
        renderer.ok("graph repaired")
        if args.out:
            renderer.kv("Wrote", args.out)
    else:
        renderer.fail(f"{final.error_count} error(s) remain")
    return int(ExitCode.SUCCESS if passed else ExitCode.VALIDATION_REJECTED)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    if _flag(args, "json"):
        _emit_json({"command": "config", "active_profile": profile, "config": config})
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(dump_effective_config(config))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _load_effective_config(
    args: argparse.Namespace,
    overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))
    cli_overrides: dict[str, object] = dict(overrides or {})
    if getattr(args, "log_level", None):
        cli_overrides["observability.log_level"] = args.log_level
    if _flag(args, "verbose"):
        cli_overrides["orchestrator.verbose"] = True

    try:
        config = load_config(config_path, profile=profile, cli_overrides=cli_overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc

    setup_logging(config["observability"])
    return config


def _load_graph(path: str) -> Graph:
    try:
        return load_graph(path)
    except DocumentError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.INPUT_ERROR)) from exc


def _build_gate(config: Mapping[str, Any], metrics: MetricsRegistry) -> ValidationGate:
    return ValidationGate(
        gate_timeout_seconds=float(config["validation"]["gate_timeout_seconds"]),
        metrics=metrics,
    )


def _repair_config(config: Mapping[str, Any], *, verbose: bool) -> RepairConfig:
    section = dict(config["repair"])
    if verbose:
        section["verbose"] = True
    return RepairConfig(**section)


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = ["CLIError", "build_parser", "run_cli"]
