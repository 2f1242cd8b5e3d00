"""Process entrypoint: maps CLI outcomes and escaped exceptions onto exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    VALIDATION_REJECTED = 1
    CONFIG_ERROR = 2
    INPUT_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and always come back with an ``ExitCode`` value."""

    try:
        from layout_orchestrator.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _as_exit_code(exc.code)
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return ExitCode.INTERNAL_ERROR.value
    except Exception as exc:  # noqa: BLE001
        code = _classify(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return code.value


def console_main() -> None:
    raise SystemExit(cli_entrypoint())


def _as_exit_code(value: object) -> int:
    if value is None:
        return ExitCode.SUCCESS.value
    # argparse exits with 2 on usage errors, which is already CONFIG_ERROR.
    if isinstance(value, int) and any(value == code.value for code in ExitCode):
        return value
    if isinstance(value, str) and value.strip():
        print(value.strip(), file=sys.stderr)
    return ExitCode.INTERNAL_ERROR.value


def _classify(exc: BaseException) -> ExitCode:
    from layout_orchestrator.config import ConfigLoadError, ConfigValidationError
    from layout_orchestrator.planning.documents import DocumentError

    for link in _causes(exc):
        if isinstance(link, (ConfigLoadError, ConfigValidationError)):
            return ExitCode.CONFIG_ERROR
        if isinstance(link, (DocumentError, FileNotFoundError, PermissionError)):
            return ExitCode.INPUT_ERROR
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None or current.__suppress_context__:
            current = current.__cause__
        else:
            current = current.__context__


__all__ = ["ExitCode", "cli_entrypoint", "console_main"]
