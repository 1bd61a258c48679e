"""Copy step: mirror root-level static files into dist.

Everything directly under app/ except HTML (dotfiles included) plus the
configured extra files, such as the stock .htaccess.
"""

import asyncio
import logging
from pathlib import Path

from static_boiler.core.exceptions import AssetFileError
from static_boiler.core.globs import glob_files
from static_boiler.tasks.base import BuildContext, StepReport

logger = logging.getLogger(__name__)

ROOT_PATTERNS = ["*", "!*.html"]


def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise AssetFileError(f"Cannot read {path}: {e}") from e


def copy_root_files(ctx: BuildContext) -> StepReport:
    """Copy root files and extras into the Output Tree root.

    Raises:
        AssetFileError: If a source file cannot be read or written.

    """
    paths = ctx.paths
    report = StepReport("copy")

    sources = glob_files(paths.source, ROOT_PATTERNS, dot=True)
    for extra in ctx.config.copy_files.extra_files:
        extra_path = paths.resolve(extra)
        if not extra_path.is_file():
            logger.warning("copy: %s not found, skipping", extra)
            continue
        sources.append(extra_path)

    for source in sources:
        try:
            report.emit(paths.dist / source.name, _read(source))
        except OSError as e:
            raise AssetFileError(f"Cannot write {paths.dist / source.name}: {e}") from e
    return report


async def copy(ctx: BuildContext) -> StepReport:
    """Task action for 'copy'."""
    report = await asyncio.to_thread(copy_root_files, ctx)
    report.log()
    return report
