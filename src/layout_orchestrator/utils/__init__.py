"""Utility exports for filesystem and concurrency helpers."""

from layout_orchestrator.utils.concurrency import (
    CancellationToken,
    resolve_maybe_awaitable,
    run_with_timeout,
)
from layout_orchestrator.utils.fs import atomic_write

__all__ = [
    "CancellationToken",
    "atomic_write",
    "resolve_maybe_awaitable",
    "run_with_timeout",
]
