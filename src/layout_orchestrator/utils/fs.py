"""Crash-safe file replacement for graph documents."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

__all__ = ["atomic_write"]


def atomic_write(path: str | os.PathLike[str], data: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``data`` so readers see either the old or the new file.

    The text is staged in a hidden sibling file, fsynced, then moved over the
    target with ``os.replace``. The parent directory must already exist.
    """

    target = Path(path)
    directory = target.parent.resolve(strict=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding=encoding,
        dir=directory,
        prefix=f".{target.name}.",
        suffix=".partial",
        delete=False,
    )
    staged = Path(handle.name)
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staged, target)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
