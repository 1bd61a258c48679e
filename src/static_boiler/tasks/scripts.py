"""Scripts step: transpile, concatenate, minify and source-map entry scripts.

Each entry is transpiled and written to .tmp with an inline source map, so
the dev server serves readable code. The transpiled entries are then
minified with rjsmin (license-style comments survive), joined into one
bundle and written with an external map to both dist/scripts and
.tmp/scripts.
"""

import asyncio
import logging
import os
import re
from pathlib import Path

import rjsmin

from static_boiler.core.exceptions import AssetFileError, AssetInputError
from static_boiler.core.io import is_stale
from static_boiler.tasks.base import BuildContext, StepReport
from static_boiler.tasks.sourcemaps import (
    LineMapping,
    build_source_map,
    dumps,
    external_comment,
    identity_lines,
    inline_comment,
)
from static_boiler.tasks.transpile import transpile

logger = logging.getLogger(__name__)

# Comments a minifier must keep: /*! ... */ and license/preserve markers
_KEEP_COMMENT_RE = re.compile(
    r"/\*(?!!)((?:(?!\*/).)*?@(?:license|preserve|cc_on)(?:(?!\*/).)*)\*/",
    re.S,
)


def preserve_important_comments(source: str) -> str:
    """Mark @license/@preserve/@cc_on block comments as bang comments."""
    return _KEEP_COMMENT_RE.sub(lambda m: f"/*!{m.group(1)}*/", source)


def _read_entry(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise AssetFileError(f"Script entry not found: {path}") from e
    except UnicodeDecodeError as e:
        raise AssetInputError(path, f"not valid UTF-8: {e}") from e


def compile_scripts(ctx: BuildContext) -> StepReport:
    """Build the script bundle if any entry changed.

    Args:
        ctx: Build context.

    Returns:
        StepReport for the scripts step.

    Raises:
        AssetFileError: If an entry script is missing.
        AssetInputError: If the transpiler rejects an entry.

    """
    paths = ctx.paths
    settings = ctx.config.scripts
    report = StepReport("scripts")

    entries = [paths.source / entry for entry in settings.entries]
    for entry in entries:
        if not entry.is_file():
            raise AssetFileError(f"Script entry not found: {entry}")

    tmp_outputs = [paths.tmp / entry.relative_to(paths.source) for entry in entries]
    if not any(is_stale(src, out) for src, out in zip(entries, tmp_outputs, strict=True)):
        report.skipped = len(entries)
        return report

    sources: list[tuple[str, str]] = []
    transpiled_parts: list[str] = []
    for entry, tmp_out in zip(entries, tmp_outputs, strict=True):
        original = _read_entry(entry)
        rel = entry.relative_to(paths.source_scripts).as_posix()
        code = transpile(original, entry, settings.transpiler, settings.transpiler_timeout)
        sources.append((rel, original))
        transpiled_parts.append(code.rstrip("\n"))

        tmp_code = code.rstrip("\n") + "\n"
        if settings.sourcemaps:
            if code == original:
                entry_lines = identity_lines(0, len(tmp_code.splitlines()))
            else:
                entry_lines = [(0, 0)]
            entry_map = build_source_map(tmp_out.name, [(rel, original)], entry_lines)
            tmp_code += inline_comment(entry_map, "js") + "\n"
        if not report.emit(tmp_out, tmp_code):
            os.utime(tmp_out)

    # Entries are minified one by one so each starts on a known bundle line
    minified_parts: list[str] = []
    bundle_lines: list[LineMapping] = []
    for index, part in enumerate(transpiled_parts):
        part_min = rjsmin.jsmin(
            preserve_important_comments(part), keep_bang_comments=True
        ).strip()
        part_line_count = max(len(part_min.splitlines()), 1)
        bundle_lines.append((index, 0))
        bundle_lines.extend([None] * (part_line_count - 1))
        minified_parts.append(part_min)
    minified = "\n".join(minified_parts)

    bundle_name = settings.bundle
    if settings.sourcemaps:
        map_name = f"{bundle_name}.map"
        bundle_map = build_source_map(bundle_name, sources, bundle_lines)
        minified += "\n" + external_comment(map_name, "js")
        for root in (paths.dist_scripts, paths.tmp_scripts):
            report.emit(root / map_name, dumps(bundle_map))
    minified += "\n"

    for root in (paths.dist_scripts, paths.tmp_scripts):
        report.emit(root / bundle_name, minified)
    return report


async def scripts(ctx: BuildContext) -> StepReport:
    """Task action for 'scripts'."""
    report = await asyncio.to_thread(compile_scripts, ctx)
    report.log()
    return report
