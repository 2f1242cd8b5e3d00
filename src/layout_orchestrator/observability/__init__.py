"""Public observability primitives: structured logging and repair metrics."""

from layout_orchestrator.observability.logging import (
    LoggingConfig,
    LogRedactor,
    StructuredLoggingHandle,
    configure_structlog,
    correlation_scope,
    default_log_redactor,
    flush_logging,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)
from layout_orchestrator.observability.metrics import MetricsRegistry, RepairMetrics

__all__ = [
    "LogRedactor",
    "LoggingConfig",
    "MetricsRegistry",
    "RepairMetrics",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
