"""UI package exports for the CLI and its plain-text renderer."""

from layout_orchestrator.ui.cli import CLIError, build_parser, run_cli
from layout_orchestrator.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]
