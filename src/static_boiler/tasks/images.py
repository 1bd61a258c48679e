"""Images step: recompress images with Pillow behind a content-keyed cache.

JPEGs are re-saved optimized (and progressive) keeping their quantization
tables, PNGs and GIFs are re-saved optimized. When recompression does not
shrink a file the original bytes are kept. Anything Pillow does not handle
(SVG, ICO, WebP...) is copied as-is.

Results are cached under .cache/images keyed by the SHA-1 of the options
and the input bytes, so unchanged images are not re-encoded across runs
(the cache survives clean).
"""

import asyncio
import hashlib
import io
import json
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from static_boiler.core.config.models import ImagesConfig
from static_boiler.core.exceptions import AssetInputError
from static_boiler.core.globs import glob_files
from static_boiler.core.io import atomic_write
from static_boiler.tasks.base import BuildContext, StepReport

logger = logging.getLogger(__name__)

IMAGE_PATTERNS = ["images/**/*"]

OPTIMIZABLE_FORMATS: dict[str, str] = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
}


class ImageCache:
    """Persistent content-keyed store of optimized image bytes."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, key: str) -> Path:
        return self.root / key[:2] / key

    def get(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> None:
        atomic_write(self._path(key), data)


def cache_key(data: bytes, suffix: str, settings: ImagesConfig) -> str:
    """Key an image by its bytes and the options that shape the output."""
    digest = hashlib.sha1(usedforsecurity=False)
    options = {"suffix": suffix.lower(), **settings.model_dump(exclude={"cache"})}
    digest.update(json.dumps(options, sort_keys=True).encode("utf-8"))
    digest.update(data)
    return digest.hexdigest()


def optimize_image(data: bytes, path: Path, settings: ImagesConfig) -> bytes:
    """Recompress one image.

    Args:
        data: Original file bytes.
        path: Source path (suffix selects the format; used in errors).
        settings: Image options.

    Returns:
        The smaller of the recompressed and original bytes.

    Raises:
        AssetInputError: If an optimizable image cannot be decoded.

    """
    fmt = OPTIMIZABLE_FORMATS.get(path.suffix.lower())
    if fmt is None:
        return data

    out = io.BytesIO()
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            if getattr(im, "n_frames", 1) > 1:
                # Animated images are left alone: re-encoding drops frame timing
                return data
            extra = {
                key: im.info[key] for key in ("icc_profile", "exif", "dpi") if key in im.info
            }
            if fmt == "JPEG":
                im.save(
                    out,
                    "JPEG",
                    optimize=True,
                    progressive=settings.progressive,
                    quality="keep",
                    **extra,
                )
            elif fmt == "GIF":
                im.save(out, "GIF", optimize=True, interlace=settings.interlaced)
            else:
                im.save(out, "PNG", optimize=True, **extra)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise AssetInputError(path, f"cannot optimize image: {e}") from e

    optimized = out.getvalue()
    return optimized if len(optimized) < len(data) else data


def optimize_images(ctx: BuildContext) -> StepReport:
    """Optimize app/images/** into dist/images.

    Returns:
        StepReport for the images step.

    """
    paths = ctx.paths
    settings = ctx.config.images
    cache = ImageCache(paths.image_cache) if settings.cache else None
    report = StepReport("images")
    saved = 0

    for source in glob_files(paths.source, IMAGE_PATTERNS):
        data = source.read_bytes()
        key = cache_key(data, source.suffix, settings)
        optimized = cache.get(key) if cache else None
        if optimized is None:
            optimized = optimize_image(data, source, settings)
            if cache:
                cache.put(key, optimized)
        else:
            logger.debug("Cache hit for %s", ctx.relative(source))
        saved += len(data) - len(optimized)
        report.emit(paths.dist_images / source.relative_to(paths.source_images), optimized)

    if saved:
        logger.debug("images saved %d bytes", saved)
    return report


async def images(ctx: BuildContext) -> StepReport:
    """Task action for 'images'."""
    report = await asyncio.to_thread(optimize_images, ctx)
    report.log()
    return report
