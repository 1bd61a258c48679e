"""Styles step: post-process, minify and source-map stylesheets.

Inputs are app/styles/**/*.css. A stylesheet is skipped when its copy in
.tmp/styles is newer. Otherwise it goes through the configured processor
chain, is minified with rcssmin, and lands (with an external .map) in both
.tmp/styles and dist/styles.
"""

import asyncio
import logging
import os
from pathlib import Path

import rcssmin

from static_boiler.core.exceptions import AssetInputError
from static_boiler.core.globs import glob_files
from static_boiler.core.io import is_stale
from static_boiler.tasks.base import BuildContext, StepReport
from static_boiler.tasks.css import build_processors, process_css
from static_boiler.tasks.sourcemaps import build_source_map, dumps, external_comment

logger = logging.getLogger(__name__)

STYLE_PATTERNS = ["styles/**/*.css"]


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise AssetInputError(path, f"not valid UTF-8: {e}") from e


def compile_styles(ctx: BuildContext) -> StepReport:
    """Compile every stale stylesheet.

    Args:
        ctx: Build context.

    Returns:
        StepReport for the styles step.

    Raises:
        AssetInputError: If a stylesheet is malformed.

    """
    paths = ctx.paths
    settings = ctx.config.styles
    processors = build_processors(settings)
    report = StepReport("styles")

    for source in glob_files(paths.source, STYLE_PATTERNS):
        rel = source.relative_to(paths.source_styles)
        tmp_out = paths.tmp_styles / rel
        if not is_stale(source, tmp_out):
            report.skipped += 1
            continue

        logger.debug("Compiling %s", ctx.relative(source))
        original = _read_source(source)
        processed = process_css(original, source, processors)
        minified = rcssmin.cssmin(processed, keep_bang_comments=True)

        outputs: list[tuple[Path, str]] = []
        if settings.sourcemaps:
            map_name = f"{rel.name}.map"
            # Minified output keeps no line structure; its first line maps to the source start
            source_map = build_source_map(rel.name, [(rel.as_posix(), original)], [(0, 0)])
            minified += external_comment(map_name, "css")
            for root in (paths.dist_styles, paths.tmp_styles):
                outputs.append((root / rel.parent / map_name, dumps(source_map)))
        outputs.append((paths.dist_styles / rel, minified))
        # Written last: its mtime marks the source as up to date
        outputs.append((tmp_out, minified))

        for target, content in outputs:
            report.emit(target, content)
        if tmp_out not in report.written:
            os.utime(tmp_out)

    return report


async def styles(ctx: BuildContext) -> StepReport:
    """Task action for 'styles'."""
    report = await asyncio.to_thread(compile_styles, ctx)
    report.log()
    return report
