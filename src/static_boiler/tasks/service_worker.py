"""Offline-cache generator: stage worker scripts and write service-worker.js.

The generated worker precaches every Output Tree file matching the static
file globs (keyed by an MD5 fingerprint of its content), purges stale
entries on activate and serves cached responses first. It imports the
runtime-caching toolbox and the project's rules script, which
copy_sw_scripts stages under dist/scripts/sw.

Output is deterministic for identical inputs: no timestamps, sorted
manifest entries.
"""

import asyncio
import hashlib
import logging
from importlib.resources import files
from pathlib import Path

from jinja2 import Template

from static_boiler.core.exceptions import AssetFileError
from static_boiler.core.globs import glob_files
from static_boiler.core.io import format_size
from static_boiler.tasks.base import BuildContext, StepReport

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "service-worker.js"

ManifestEntry = tuple[str, str]


def _bootstrap_sources(ctx: BuildContext) -> list[Path]:
    settings = ctx.config.service_worker
    # The toolbox comes first: the rules script uses what it defines
    return [
        ctx.paths.resolve(settings.toolbox),
        ctx.paths.source / settings.runtime_caching,
    ]


def import_script_urls(ctx: BuildContext) -> list[str]:
    """URLs the worker passes to importScripts, relative to the Output Tree."""
    prefix = ctx.paths.dist_sw_scripts.relative_to(ctx.paths.dist).as_posix()
    return [f"{prefix}/{source.name}" for source in _bootstrap_sources(ctx)]


def copy_sw_scripts(ctx: BuildContext) -> StepReport:
    """Copy the worker bootstrap scripts into dist/scripts/sw.

    Raises:
        AssetFileError: If a bootstrap script is missing.

    """
    report = StepReport("copy-sw-scripts")
    for source in _bootstrap_sources(ctx):
        try:
            data = source.read_bytes()
        except OSError as e:
            raise AssetFileError(f"Service worker script not found: {source}") from e
        report.emit(ctx.paths.dist_sw_scripts / source.name, data)
    return report


def _fingerprint(path: Path) -> str:
    digest = hashlib.md5(usedforsecurity=False)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def build_precache_manifest(ctx: BuildContext) -> list[ManifestEntry]:
    """Fingerprint every precached Output Tree file.

    Returns:
        Sorted (url, md5) pairs with URLs relative to the Output Tree.

    """
    settings = ctx.config.service_worker
    dist = ctx.paths.dist
    worker = dist / settings.filename
    manifest: list[ManifestEntry] = []

    for path in glob_files(dist, settings.static_file_globs):
        if path == worker:
            continue
        size = path.stat().st_size
        if size > settings.maximum_file_size:
            logger.warning(
                "Skipping %s (%s): larger than the %s precache limit",
                ctx.relative(path),
                format_size(size),
                format_size(settings.maximum_file_size),
            )
            continue
        manifest.append((path.relative_to(dist).as_posix(), _fingerprint(path)))

    manifest.sort()
    return manifest


def render_service_worker(
    cache_id: str, import_scripts: list[str], manifest: list[ManifestEntry]
) -> str:
    """Render the worker script from the packaged template.

    Args:
        cache_id: Cache identifier, keeps caches of different sites apart.
        import_scripts: Scripts to importScripts, in load order.
        manifest: Precache (url, md5) pairs.

    Returns:
        Service worker source.

    """
    source = files("static_boiler.tasks") / "templates" / TEMPLATE_NAME
    template = Template(source.read_text(encoding="utf-8"), keep_trailing_newline=True)
    return template.render(
        cache_id=cache_id,
        import_scripts=import_scripts,
        precache_config=[list(entry) for entry in manifest],
    )


def write_service_worker(ctx: BuildContext) -> StepReport:
    """Generate dist/<filename> from the current Output Tree."""
    report = StepReport("generate-service-worker")
    manifest = build_precache_manifest(ctx)
    code = render_service_worker(ctx.cache_id, import_script_urls(ctx), manifest)
    report.emit(ctx.paths.dist / ctx.config.service_worker.filename, code)
    logger.info(
        "Service worker precaches %d file%s (cache id %s)",
        len(manifest),
        "" if len(manifest) == 1 else "s",
        ctx.cache_id,
    )
    return report


async def copy_sw_scripts_task(ctx: BuildContext) -> StepReport:
    """Task action for 'copy-sw-scripts'."""
    return await asyncio.to_thread(copy_sw_scripts, ctx)


async def generate_service_worker(ctx: BuildContext) -> StepReport:
    """Task action for 'generate-service-worker'."""
    report = await asyncio.to_thread(write_service_worker, ctx)
    report.log()
    return report
