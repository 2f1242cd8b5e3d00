"""
layout-orchestrator — structured logging

File: src/layout_orchestrator/observability/logging.py
Last updated: 2026-10-18

Purpose
- One JSON object per log line, written off the caller's thread through a bounded
  queue, with credential redaction and turn/plan correlation fields.

Functional requirements
- ``setup_logging`` consumes the ``[observability]`` config section.
- ``configure_structlog`` routes ``structlog.get_logger`` events through the same
  stdlib handlers; event keyword arguments land under ``fields``.
- Correlation fields bound with ``correlation_scope`` appear at the top level of
  every line emitted inside the scope, including stdlib records.
- A full queue drops records instead of blocking and counts the drops.

Non-functional requirements
- Setting up logging again shuts down the previous listener first.
"""

from __future__ import annotations

import atexit
import json
import logging
import logging.handlers
import math
import queue
import re
import sys
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, TextIO

import structlog

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

REDACTED: Final[str] = "***REDACTED***"
DEFAULT_LOGGER_NAME: Final[str] = "layout_orchestrator"

CORRELATION_KEYS: Final[tuple[str, ...]] = ("turn_id", "plan_id", "transaction_id", "checkpoint_id")

# "tokens" holds design tokens and must stay readable.
_SENSITIVE_KEYS: Final[tuple[str, ...]] = (
    "secret",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "access_token",
)
_INLINE_SECRET: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|access[_-]?token|password|secret|authorization)(\s*[:=]\s*)([^\s,;]+)"
)
_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

# Attributes every LogRecord carries; anything else on a record is an extra field.
_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation"}

_active_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_registered = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    logger_name: str = DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    queue_size: int = 4096
    log_file: Path | str | None = None
    log_to_stderr: bool = True
    redactor: LogRedactor | None = None


class StructuredLoggingHandle:
    """Owns the queue listener and sinks of one logging setup."""

    def __init__(
        self,
        logger: logging.Logger,
        queue_handler: _DroppingQueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
        log_path: Path | None,
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks = sinks
        self._lock = threading.Lock()
        self._closed = False

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self) -> None:
        self._queue_handler.queue.join()  # type: ignore[union-attr]
        for sink in self._sinks:
            sink.flush()

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            # QueueListener.stop drains pending records before returning.
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._sinks:
                sink.flush()
                sink.close()
            self._closed = True


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    def __init__(self, log_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(log_queue)
        self._dropped = 0
        self._dropped_lock = threading.Lock()

    @property
    def dropped(self) -> int:
        with self._dropped_lock:
            return self._dropped

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # Contextvars do not follow the record onto the listener thread.
        record.correlation = {
            key: str(value)
            for key, value in structlog.contextvars.get_contextvars().items()
            if key in CORRELATION_KEYS and value is not None
        }
        return super().prepare(record)

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1


class JsonLineFormatter(logging.Formatter):
    def __init__(self, redactor: LogRedactor) -> None:
        super().__init__()
        self._redact = redactor

    def format(self, record: logging.LogRecord) -> str:
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        line: dict[str, JSONValue] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": _as_text(self._redact(record.getMessage())),
        }
        correlation = dict(getattr(record, "correlation", None) or {})
        for key in CORRELATION_KEYS:
            if key in extras:
                correlation[key] = str(extras.pop(key))
        line.update(sorted(correlation.items()))
        if extras:
            line["fields"] = self._redact(to_jsonable(extras))
        if record.exc_info:
            line["exception"] = _as_text(self._redact(self.formatException(record.exc_info)))
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    level: int | str | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure logging from an ``[observability]`` mapping; returns the package logger."""
    section = dict(observability_config or {})
    log_file = section.get("log_file")
    handle = setup_structured_logging(
        LoggingConfig(
            level=level if level is not None else str(section.get("log_level", "INFO")),
            log_file=log_file if isinstance(log_file, (str, Path)) and log_file else None,
            redactor=None if section.get("redact_secrets", True) else _no_redaction,
        ),
        stream=stream,
    )
    configure_structlog()
    return handle.logger


def configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_structured_logging(
    config: LoggingConfig,
    *,
    stream: TextIO | None = None,
) -> StructuredLoggingHandle:
    global _active, _atexit_registered

    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    name = config.logger_name.strip()
    if not name:
        raise ValueError("logger_name must not be empty")
    level = parse_log_level(config.level)

    shutdown_logging()

    redactor = _compose_redactor(config.redactor)
    formatter = JsonLineFormatter(redactor)
    sinks: list[logging.Handler] = []
    log_path = Path(config.log_file) if config.log_file is not None else None
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        sinks.append(logging.FileHandler(log_path, encoding="utf-8"))
    if config.log_to_stderr:
        sinks.append(logging.StreamHandler(stream if stream is not None else sys.stderr))
    if not sinks:
        sinks.append(logging.NullHandler())
    for sink in sinks:
        sink.setFormatter(formatter)
        sink.setLevel(level)

    logger = logging.getLogger(name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.setLevel(level)
    logger.propagate = False

    queue_handler = _DroppingQueueHandler(queue.Queue(maxsize=config.queue_size))
    listener = logging.handlers.QueueListener(
        queue_handler.queue, *sinks, respect_handler_level=True  # type: ignore[arg-type]
    )
    listener.start()
    logger.addHandler(queue_handler)

    handle = StructuredLoggingHandle(logger, queue_handler, listener, tuple(sinks), log_path)
    with _active_lock:
        _active = handle
        if not _atexit_registered:
            atexit.register(shutdown_logging)
            _atexit_registered = True
    return handle


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active


def flush_logging(handle: StructuredLoggingHandle | None = None) -> None:
    target = handle or get_active_logging_handle()
    if target is not None:
        target.flush()


def shutdown_logging(handle: StructuredLoggingHandle | None = None) -> None:
    """Stop the listener and close sinks; a no-op when nothing is active."""
    global _active

    target = handle or get_active_logging_handle()
    if target is None:
        return
    target.shutdown()
    with _active_lock:
        if _active is target:
            _active = None


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation ids for every log line emitted inside the block."""
    for key in fields:
        if key not in CORRELATION_KEYS:
            raise ValueError(f"unknown correlation key {key!r}")
    bound = {key: value for key, value in fields.items() if value}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def get_correlation_context() -> dict[str, str]:
    return {
        key: str(value)
        for key, value in structlog.contextvars.get_contextvars().items()
        if key in CORRELATION_KEYS
    }


def parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return resolved


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask values under credential-like keys and inline ``key=value`` secrets."""
    if isinstance(value, str):
        masked = _INLINE_SECRET.sub(lambda match: f"{match.group(1)}{match.group(2)}{REDACTED}", value)
        return _BEARER.sub(f"Bearer {REDACTED}", masked)
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED
            if any(term in key.lower() for term in _SENSITIVE_KEYS)
            else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def to_jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [to_jsonable(item) for item in value]
        return sorted(items, key=repr) if isinstance(value, (set, frozenset)) else items
    return repr(value)


def _compose_redactor(custom: LogRedactor | None) -> LogRedactor:
    if custom is None:
        return default_log_redactor
    if custom is _no_redaction:
        return custom
    return lambda value: default_log_redactor(to_jsonable(custom(value)))


def _no_redaction(value: JSONValue) -> JSONValue:
    return value


def _as_text(value: JSONValue) -> str:
    return value if isinstance(value, str) else json.dumps(value, sort_keys=True)


__all__ = [
    "CORRELATION_KEYS",
    "DEFAULT_LOGGER_NAME",
    "REDACTED",
    "JSONValue",
    "JsonLineFormatter",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "parse_log_level",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
    "to_jsonable",
]
