"""
layout-orchestrator — package root

File: src/layout_orchestrator/__init__.py
Last updated: 2026-10-18

Purpose
- Turn pipeline for UI layout graphs: edit plans are patched atomically onto a
  component graph, validated through ordered gates and repaired transactionally.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
- Submodules are imported lazily by callers; this module only exports metadata.
"""

from __future__ import annotations

from typing import Final

__version__: Final[str] = "0.1.0"

__all__ = ["__version__"]
