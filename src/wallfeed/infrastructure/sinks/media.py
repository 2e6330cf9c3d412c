"""Downscale and re-encode images that exceed a sink's upload limits."""

import math
import tempfile
from contextlib import suppress
from pathlib import Path

from PIL import Image

from wallfeed.config.logger_config import logger
from wallfeed.domain.errors import SinkError

MAX_FILE_SIZE_BYTES = 16 * 1024 * 1024
MAX_PIXELS = 8_300_000
START_QUALITY = 85
MIN_QUALITY = 60
QUALITY_STEP = 10


def scaled_size(width: int, height: int, max_pixels: int) -> tuple[int, int]:
    pixels = width * height
    if pixels <= max_pixels:
        return width, height
    factor = math.sqrt(max_pixels / pixels)
    return max(1, int(width * factor)), max(1, int(height * factor))


def ensure_media_compliant(
    path: Path,
    *,
    max_bytes: int = MAX_FILE_SIZE_BYTES,
    max_pixels: int = MAX_PIXELS,
    scratch_dir: Path | None = None,
) -> Path:
    """Return `path` when it already fits, else a new JPEG the caller must delete.

    Blocking; run it in a worker thread.
    """
    path = Path(path)
    try:
        file_size = path.stat().st_size
        with Image.open(path) as probe:
            width, height = probe.size
    except OSError as exc:
        raise SinkError(f"Cannot inspect image {path}: {exc}") from exc

    if file_size <= max_bytes and width * height <= max_pixels:
        return path

    try:
        with Image.open(path) as original:
            image = original.convert("RGB")
    except OSError as exc:
        raise SinkError(f"Cannot decode image {path}: {exc}") from exc

    new_size = scaled_size(width, height, max_pixels)
    if new_size != (width, height):
        image = image.resize(new_size, Image.Resampling.LANCZOS)
        logger.debug("Image downscaled: path={}, from={}x{}, to={}x{}", path, width, height, *new_size)

    fd, tmp_name = tempfile.mkstemp(prefix="compliant-", suffix=".jpg", dir=scratch_dir or path.parent)
    tmp_path = Path(tmp_name)
    try:
        with open(fd, "wb") as fh:
            quality = START_QUALITY
            while quality >= MIN_QUALITY:
                fh.seek(0)
                fh.truncate()
                image.save(fh, format="JPEG", quality=quality)
                fh.flush()
                if fh.tell() <= max_bytes:
                    logger.debug("Image re-encoded: path={}, quality={}, bytes={}", path, quality, fh.tell())
                    return tmp_path
                quality -= QUALITY_STEP
    except OSError as exc:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise SinkError(f"Cannot re-encode image {path}: {exc}") from exc

    with suppress(FileNotFoundError):
        tmp_path.unlink()
    raise SinkError(f"Unable to reduce {path} under {max_bytes} bytes, even after resizing and compression")
