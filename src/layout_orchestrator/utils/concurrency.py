"""Cancellation and timeout helpers for the async turn pipeline."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class CancellationToken:
    """Loop-bound cancellation flag; cancelling cancels every registered future."""

    __slots__ = ("_callbacks", "_cancelled")

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], object]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], object]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError("operation cancelled")


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    cancel_token: CancellationToken | None = None,
) -> T:
    """Await ``awaitable`` for at most ``timeout_seconds``.

    Raises ``TimeoutError`` when the deadline passes and ``CancelledError`` when
    ``cancel_token`` fires first. The inner work is cancelled in both cases.
    """
    if timeout_seconds <= 0:
        _discard(awaitable)
        raise ValueError("timeout_seconds must be > 0")
    if cancel_token is not None and cancel_token.is_cancelled:
        _discard(awaitable)
        raise asyncio.CancelledError("operation cancelled")

    work = asyncio.ensure_future(awaitable)
    unregister = cancel_token.on_cancel(work.cancel) if cancel_token is not None else None
    try:
        async with asyncio.timeout(timeout_seconds):
            return await work
    except TimeoutError:
        raise TimeoutError(f"operation timed out after {timeout_seconds:g}s") from None
    finally:
        if unregister is not None:
            unregister()
        if not work.done():
            work.cancel()


async def resolve_maybe_awaitable(value: T | Awaitable[T]) -> T:
    """Await ``value`` when a sync-or-async callable handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def _discard(awaitable: Awaitable[object]) -> None:
    # A coroutine that is never awaited warns when garbage collected.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = [
    "CancellationToken",
    "resolve_maybe_awaitable",
    "run_with_timeout",
]
