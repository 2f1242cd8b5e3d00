"""Layered runtime configuration: ``layout.toml``, ``LAYOUT_*`` env vars and CLI overrides."""

from layout_orchestrator.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    normalize_paths,
)
from layout_orchestrator.config.schema import (
    DEFAULT_CONFIG,
    LOG_LEVELS,
    SCHEMA,
    ConfigValidationError,
    ConfigValidationIssue,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "LOG_LEVELS",
    "SCHEMA",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "merge_config",
    "normalize_paths",
    "validate_config",
]
