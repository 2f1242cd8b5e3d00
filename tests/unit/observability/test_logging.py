"""
layout-orchestrator — unit tests for structured logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-18

Purpose
- Validate JSON-lines logging with redaction, correlation fields and queue-backed delivery.

What this test file should cover
- JSON line validity and redaction guarantees.
- Correlation fields for stdlib and structlog events.
- Config-driven setup and level filtering.
- Multi-threaded logging and shutdown draining.
"""

from __future__ import annotations

import io
import json
import logging
import logging.handlers
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from layout_orchestrator.observability.logging import (
    REDACTED,
    LoggingConfig,
    configure_structlog,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    parse_log_level,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


def _logger_name() -> str:
    return f"layout_orchestrator.tests.logging.{uuid4().hex}"


def _file_config(tmp_path: Path, **overrides: object) -> LoggingConfig:
    values: dict[str, object] = {
        "logger_name": _logger_name(),
        "log_file": tmp_path / "logs" / "layout.jsonl",
        "log_to_stderr": False,
    }
    values.update(overrides)
    return LoggingConfig(**values)  # type: ignore[arg-type]


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_json_lines_redact_secrets_and_keep_design_tokens(tmp_path: Path) -> None:
    handle = setup_structured_logging(_file_config(tmp_path))
    logger = logging.getLogger(handle.logger.name)

    logger.info(
        "connecting with api_key=sk-FAKE1234567890",
        extra={"nested": {"password": "hunter2", "safe": "ok"}, "tokens": {"primary": "#000"}},
    )
    shutdown_logging(handle)

    assert handle.log_path is not None
    [line] = _read_json_lines(handle.log_path)
    assert line["level"] == "INFO"
    assert str(line["timestamp"]).endswith("Z")
    assert line["message"] == f"connecting with api_key={REDACTED}"
    assert line["fields"] == {
        "nested": {"password": REDACTED, "safe": "ok"},
        "tokens": {"primary": "#000"},
    }


def test_correlation_scope_adds_top_level_fields(tmp_path: Path) -> None:
    handle = setup_structured_logging(_file_config(tmp_path))
    logger = logging.getLogger(handle.logger.name)

    with correlation_scope(turn_id="turn-1", plan_id="plan-9"):
        assert get_correlation_context() == {"turn_id": "turn-1", "plan_id": "plan-9"}
        logger.info("inside")
    logger.info("outside")
    shutdown_logging(handle)

    assert handle.log_path is not None
    inside, outside = _read_json_lines(handle.log_path)
    assert inside["turn_id"] == "turn-1"
    assert inside["plan_id"] == "plan-9"
    assert "turn_id" not in outside
    assert get_correlation_context() == {}


def test_correlation_scope_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError, match="unknown correlation key 'work_item_id'"):
        with correlation_scope(work_item_id="wi-1"):
            pass


def test_structlog_events_route_through_json_handler(tmp_path: Path) -> None:
    handle = setup_structured_logging(_file_config(tmp_path))
    configure_structlog()
    logger = structlog.get_logger(handle.logger.name)

    with correlation_scope(turn_id="turn-7"):
        logger.info("turn_started", turn=1, secret="s3cr3t")
    logger.debug("filtered_out")
    shutdown_logging(handle)

    assert handle.log_path is not None
    [line] = _read_json_lines(handle.log_path)
    assert line["message"] == "turn_started"
    assert line["turn_id"] == "turn-7"
    assert line["fields"] == {"turn": 1, "secret": REDACTED}


def test_setup_logging_uses_observability_section() -> None:
    stream = io.StringIO()
    logger = setup_logging(
        {"log_level": "WARNING", "redact_secrets": False}, stream=stream
    )

    logger.info("too quiet")
    logger.warning("password=plain")
    shutdown_logging()

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["message"] for line in lines] == ["password=plain"]
    assert lines[0]["logger"] == "layout_orchestrator"
    assert get_active_logging_handle() is None


def test_setup_replaces_previous_handle(tmp_path: Path) -> None:
    first = setup_structured_logging(_file_config(tmp_path))
    second = setup_structured_logging(_file_config(tmp_path, log_file=tmp_path / "second.jsonl"))

    assert first.is_shutdown
    assert not second.is_shutdown
    assert get_active_logging_handle() is second


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    handle = setup_structured_logging(_file_config(tmp_path, queue_size=4096))
    logger = logging.getLogger(handle.logger.name)
    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        for index in range(per_thread):
            logger.info(
                "thread=%s index=%s", thread_idx, index, extra={"api_key": f"sk-{thread_idx}-{index}"}
            )

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    shutdown_logging(handle)

    assert handle.log_path is not None
    content = handle.log_path.read_text(encoding="utf-8")
    lines = content.splitlines()
    assert len(lines) == total_threads * per_thread
    assert all(isinstance(json.loads(line), dict) for line in lines)
    assert "sk-" not in content
    assert handle.dropped_records == 0


def test_logger_is_queue_backed(tmp_path: Path) -> None:
    handle = setup_structured_logging(_file_config(tmp_path))
    handlers = handle.logger.handlers
    assert any(isinstance(item, logging.handlers.QueueHandler) for item in handlers)
    assert handle.logger.propagate is False


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"queue_size": 0}, "queue_size must be > 0"),
        ({"logger_name": "  "}, "logger_name must not be empty"),
        ({"level": "LOUD"}, "unsupported logging level 'LOUD'"),
    ],
)
def test_invalid_logging_config(tmp_path: Path, kwargs: dict[str, object], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        setup_structured_logging(_file_config(tmp_path, **kwargs))


def test_parse_log_level_and_redactor_helpers() -> None:
    assert parse_log_level("debug") == logging.DEBUG
    assert parse_log_level(25) == 25
    assert default_log_redactor(["sent Bearer abc.def"]) == [f"sent Bearer {REDACTED}"]
    assert default_log_redactor({"ApiKey": "x", "count": 3}) == {"ApiKey": REDACTED, "count": 3}
