"""Output rendering for the layout-orchestrator CLI.

File: src/layout_orchestrator/ui/render.py
Last updated: 2026-10-18

Purpose
- Provide a thin plain-text rendering layer for CLI output.
- Render validation diagnostics, repair fixes and turn summaries.

Functional requirements
- Output is deterministic and never colored when ``NO_COLOR`` is set or stdout is not a TTY.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from layout_orchestrator.verification_plane.pipeline import format_diagnostics

if TYPE_CHECKING:
    from collections.abc import Sequence

    from layout_orchestrator.control_plane.orchestrator import TurnResult
    from layout_orchestrator.domain.diagnostics import Diagnostic
    from layout_orchestrator.verification_plane.pipeline import ValidationResult

_GREEN = "\x1b[32m"
_RED = "\x1b[31m"
_RESET = "\x1b[0m"


def _color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Plain-text CLI renderer for validation and turn output."""

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        print(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        print(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def ok(self, label: str) -> None:
        print(f"  {self._paint('OK', _GREEN)}  {label}")

    def fail(self, label: str) -> None:
        print(f"  {self._paint('FAIL', _RED)}  {label}")

    def diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        """Print diagnostics grouped by gate; advisory ones only in verbose mode."""

        shown = [item for item in diagnostics if self.verbose or item.is_error]
        hidden = len(diagnostics) - len(shown)
        print(format_diagnostics(shown))
        if hidden:
            print(f"({hidden} warning/info diagnostic(s) hidden; use --verbose)")

    def validation(self, result: ValidationResult) -> None:
        self.section("Validation:")
        for gate_result in result.gate_results:
            label = f"{gate_result.gate.value} ({gate_result.duration_ms} ms)"
            if gate_result.passed:
                self.ok(label)
            else:
                self.fail(label)
        self.section("Diagnostics:")
        self.diagnostics(result.diagnostics)

    def fixes(self, fixes: Sequence[str]) -> None:
        if not fixes:
            return
        self.section("Fixes:")
        self.items(fixes)

    def turn(self, result: TurnResult) -> None:
        """Print a turn summary: outcome, change counts, fixes and diagnostics."""

        summary = result.summary
        self.kv("Turn", result.turn_id or "(none)")
        self.kv("Result", "success" if result.success else "failed")
        self.kv("Description", summary.description)
        self.kv("Commands processed", summary.commands_processed)
        changes = summary.changes
        self.kv(
            "Changes",
            f"+{changes.added} -{changes.removed} ~{changes.updated} moved {changes.moved}",
        )
        if summary.repair_metrics is not None and self.verbose:
            metrics = summary.repair_metrics
            self.kv(
                "Repair metrics",
                f"attempts={metrics.repair_attempts} successful={metrics.successful_repairs} "
                f"failed={metrics.failed_repairs} rollbacks={metrics.rollback_count}",
            )
        self.fixes(result.fixes)
        if result.diagnostics:
            self.section("Diagnostics:")
            self.diagnostics(result.diagnostics)

    def _paint(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{_RESET}"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
