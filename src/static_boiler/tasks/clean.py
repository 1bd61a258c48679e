"""Cleaner: remove the Temporary Tree and the Output Tree contents.

Reserved paths (.git inside the Output Tree by default) survive, together
with the directories leading to them. Missing trees are not an error, so running
clean twice in a row succeeds both times.
"""

import asyncio
import logging
import shutil
from pathlib import Path

from static_boiler.core.exceptions import AssetFileError
from static_boiler.tasks.base import BuildContext

logger = logging.getLogger(__name__)


def _remove(path: Path) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise AssetFileError(f"Cannot delete {path}: {e}") from e


def _clear_directory(directory: Path, keep: list[Path]) -> int:
    """Delete the entries of directory except keep paths; returns count removed."""
    removed = 0
    for entry in sorted(directory.iterdir()):
        if entry in keep:
            continue
        if any(entry in kept.parents for kept in keep):
            removed += _clear_directory(entry, keep)
            continue
        _remove(entry)
        removed += 1
    return removed


def clean_trees(ctx: BuildContext) -> int:
    """Delete .tmp and everything under dist except reserved paths.

    Returns:
        Number of entries removed.

    Raises:
        AssetFileError: If an entry cannot be deleted.

    """
    paths = ctx.paths
    removed = 0
    if paths.tmp.exists():
        _remove(paths.tmp)
        removed += 1
    if paths.dist.is_dir():
        removed += _clear_directory(paths.dist, paths.keep)
    logger.debug("clean removed %d entr%s", removed, "y" if removed == 1 else "ies")
    return removed


async def clean(ctx: BuildContext) -> int:
    """Task action for 'clean'."""
    return await asyncio.to_thread(clean_trees, ctx)
