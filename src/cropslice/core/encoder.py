"""Tile extraction and JPEG encoding under a shared concurrency limiter."""

import asyncio
import io
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from PIL import Image

from .exceptions import PIL_ERRORS, ProcessingError
from .logging_config import get_logger
from .models import EncodedTile, TileRect

# Modes the JPEG encoder accepts without conversion
JPEG_MODES = ("RGB", "L", "CMYK")

logger = get_logger("cropslice.encoder")

T = TypeVar("T")


async def run_in_worker(func: Callable[..., T], *args: Any) -> T:
    """
    Run ``func`` in a worker thread.

    A cancelled caller still waits for the thread to return before the
    CancelledError propagates, so a limiter permit held around this call
    covers the thread for its whole lifetime.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        await asyncio.wait({future})
        if not future.cancelled():
            future.exception()
        raise


def _check_pixel_budget(width: int, height: int) -> None:
    limit = Image.MAX_IMAGE_PIXELS
    if limit and width * height > limit:
        raise ProcessingError(
            "Failed to process image cropping. Please ensure the image format and "
            f"dimensions are valid: {width}x{height} exceeds the {limit} pixel limit"
        )


@dataclass(frozen=True)
class SourceImage:
    """A decoded source image, owned by one job."""

    image: Image.Image
    width: int
    height: int
    format: str

    @classmethod
    def load(cls, image_bytes: bytes) -> "SourceImage":
        """
        Decode image bytes.

        Raises:
            ProcessingError: if the bytes are not a decodable image, or the
                image exceeds Pillow's decompression-bomb threshold
        """
        try:
            image = Image.open(io.BytesIO(image_bytes))
            _check_pixel_budget(*image.size)
            image.load()
        except PIL_ERRORS as exc:
            raise ProcessingError(
                "Failed to process image cropping. Please ensure the image "
                f"format and dimensions are valid: {exc}"
            ) from exc

        width, height = image.size
        return cls(image=image, width=width, height=height, format=image.format or "unknown")


class EncodeLimiter:
    """
    Process-wide cap on simultaneous tile encodes.

    One instance is shared by all jobs; each encode holds one permit.
    """

    def __init__(self, limit: int = 2):
        if limit < 1:
            raise ValueError(f"Encode concurrency must be at least 1, got {limit}")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._active = 0
        self.peak = 0

    @property
    def active(self) -> int:
        return self._active

    async def __aenter__(self) -> "EncodeLimiter":
        await self._semaphore.acquire()
        self._active += 1
        self.peak = max(self.peak, self._active)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self._active -= 1
        self._semaphore.release()


class TileEncoder:
    """Crops one rectangle out of a SourceImage and encodes it as JPEG."""

    def __init__(self, limiter: EncodeLimiter, quality: int = 60):
        self._limiter = limiter
        self.quality = quality

    def encode_sync(self, source: SourceImage, rect: TileRect) -> bytes:
        """Blocking encode of one tile; runs in a worker thread."""
        right = rect.origin_x + rect.width
        lower = rect.origin_y + rect.height
        if right > source.width or lower > source.height:
            raise ProcessingError(
                f"Tile {rect.box} lies outside the {source.width}x{source.height} image"
            )

        try:
            tile: Image.Image = source.image.crop(rect.box)
            if tile.mode not in JPEG_MODES:
                tile = tile.convert("RGB")
            buffer = io.BytesIO()
            tile.save(buffer, format="JPEG", quality=self.quality)
        except PIL_ERRORS as exc:
            raise ProcessingError(
                f"Failed to encode tile at ({rect.origin_x}, {rect.origin_y}): {exc}"
            ) from exc
        return buffer.getvalue()

    async def encode(self, source: SourceImage, rect: TileRect) -> EncodedTile:
        """Encode one tile while holding a limiter permit."""
        async with self._limiter:
            logger.debug(f"Encoding tile {rect.origin_x},{rect.origin_y} ({rect.width}x{rect.height})")
            data = await run_in_worker(self.encode_sync, source, rect)
        return EncodedTile(rect=rect, data=data)
