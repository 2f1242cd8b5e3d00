"""Stable constants shared across orchestrator planes."""

from __future__ import annotations

from typing import Final

# Renderable canvas coordinates; smoke checks flag and repair clamps to this range.
COORDINATE_MIN: Final[float] = -1000
COORDINATE_MAX: Final[float] = 1000

# Smoke-gate size limits.
MAX_RENDERABLE_EXTENT: Final[float] = 10000
TINY_EXTENT: Final[float] = 5
HUGE_EXTENT: Final[float] = 5000

# Placeholder synthesized for unresolved dependencies.
PLACEHOLDER_TEXT: Final[str] = "Missing Component"
PLACEHOLDER_WIDTH: Final[int] = 100
PLACEHOLDER_HEIGHT: Final[int] = 50

# Repair defaults; the orchestrator and the repair engine keep separate attempt budgets.
ORCHESTRATOR_MAX_REPAIR_ATTEMPTS: Final[int] = 3
ENGINE_MAX_REPAIR_ATTEMPTS: Final[int] = 5
DEFAULT_MAX_ROLLBACK_DEPTH: Final[int] = 3
DEFAULT_REPAIR_TIMEOUT_MS: Final[int] = 10000
DEFAULT_RETRY_DELAY_MS: Final[int] = 100
DEFAULT_TRANSACTION_HISTORY_LIMIT: Final[int] = 64
DEFAULT_GATE_TIMEOUT_SECONDS: Final[float] = 30.0

NO_REPAIRS_NEEDED: Final[str] = "No repairs needed"

CONFIG_SCHEMA_VERSION: Final[int] = 1

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "COORDINATE_MAX",
    "COORDINATE_MIN",
    "DEFAULT_GATE_TIMEOUT_SECONDS",
    "DEFAULT_MAX_ROLLBACK_DEPTH",
    "DEFAULT_REPAIR_TIMEOUT_MS",
    "DEFAULT_RETRY_DELAY_MS",
    "DEFAULT_TRANSACTION_HISTORY_LIMIT",
    "ENGINE_MAX_REPAIR_ATTEMPTS",
    "HUGE_EXTENT",
    "MAX_RENDERABLE_EXTENT",
    "NO_REPAIRS_NEEDED",
    "ORCHESTRATOR_MAX_REPAIR_ATTEMPTS",
    "PLACEHOLDER_HEIGHT",
    "PLACEHOLDER_TEXT",
    "PLACEHOLDER_WIDTH",
    "TINY_EXTENT",
]
