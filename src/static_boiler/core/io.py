"""Shared file I/O utilities for build steps.

This module provides reusable utilities for:
- Atomic file writes (temp file + os.replace pattern)
- Write-only-if-changed, so no-op reruns leave the trees untouched
- Source/destination staleness checks (newer-than)
- Human-readable size formatting for step reports
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path

__all__ = [
    "atomic_write",
    "format_size",
    "is_stale",
    "write_if_changed",
]

logger = logging.getLogger(__name__)


def atomic_write(path: Path, data: bytes) -> None:
    """Write bytes to path atomically.

    Writes to a temp file in the same directory, then renames over the
    target so readers (the dev server) never observe a half-written file.

    Args:
        path: Destination file. Parent directories are created.
        data: Content to write.

    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(temp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(temp_name)
        raise


def write_if_changed(path: Path, data: bytes | str) -> bool:
    """Write content unless the file already holds exactly these bytes.

    Args:
        path: Destination file.
        data: Content; str is encoded as UTF-8.

    Returns:
        True if the file was written, False if it was already up to date.

    """
    payload = data.encode("utf-8") if isinstance(data, str) else data
    try:
        if path.read_bytes() == payload:
            return False
    except FileNotFoundError:
        pass
    atomic_write(path, payload)
    return True


def is_stale(source: Path, destination: Path) -> bool:
    """Check whether destination must be regenerated from source.

    Returns:
        True if destination is missing or older than source.

    """
    try:
        dest_mtime = destination.stat().st_mtime
    except FileNotFoundError:
        return True
    return source.stat().st_mtime > dest_mtime


def format_size(num_bytes: int) -> str:
    """Format a byte count with decimal units ("1.23 kB").

    >>> format_size(1234)
    '1.23 kB'
    >>> format_size(12)
    '12 B'

    """
    if num_bytes < 1000:
        return f"{num_bytes} B"
    size = float(num_bytes)
    for unit in ("kB", "MB", "GB"):
        size /= 1000
        if size < 1000:
            return f"{size:.2f} {unit}"
    return f"{size:.2f} TB"
