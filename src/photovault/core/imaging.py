"""Image helpers: resize, JPEG compression and decoding (requires Pillow)."""

import io
import logging
from typing import Optional, Union

from PIL import Image, ImageOps

from ..config import MAX_DIMENSION, MIN_QUALITY, QUALITY_STEP, TARGET_BYTES, PhotoVaultConfig
from .exceptions import CompressionFailedError, ImageTooLargeError, InvalidImageDataError

logger = logging.getLogger(__name__)

ImageInput = Union[Image.Image, bytes, bytearray, memoryview]


def open_image(data: bytes, max_pixels: Optional[int] = None) -> Image.Image:
    """Decode encoded image bytes into a fully loaded Pillow image.

    The pixel ceiling is checked from the header before any pixel data is
    decoded.
    """
    try:
        img = Image.open(io.BytesIO(bytes(data)))
        if max_pixels is not None and img.width * img.height > max_pixels:
            raise ImageTooLargeError(
                f"image has {img.width}x{img.height} pixels, limit is {max_pixels}"
            )
        img.load()
    except ImageTooLargeError:
        raise
    except Image.DecompressionBombError as e:
        raise ImageTooLargeError(f"image rejected as decompression bomb: {e}") from e
    except (OSError, ValueError, SyntaxError) as e:
        raise InvalidImageDataError(f"cannot decode image: {e}") from e
    return img


def decode_image(data: bytes) -> Image.Image:
    """Decode decrypted photo bytes; failures raise InvalidImageDataError."""
    try:
        return open_image(data)
    except ImageTooLargeError as e:
        raise InvalidImageDataError(str(e)) from e


def resize_image(image: Image.Image, max_dimension: int = MAX_DIMENSION) -> Image.Image:
    """Downscale so neither side exceeds ``max_dimension``, keeping aspect ratio.

    Returns ``image`` itself when it already fits.
    """
    width, height = image.size
    if width <= max_dimension and height <= max_dimension:
        return image

    ratio = min(max_dimension / width, max_dimension / height)
    new_size = (max(1, round(width * ratio)), max(1, round(height * ratio)))
    try:
        return image.resize(new_size, Image.Resampling.LANCZOS)
    except (OSError, ValueError) as e:
        raise CompressionFailedError(f"resize failed: {e}") from e


def _to_jpeg_mode(image: Image.Image) -> Image.Image:
    if image.mode in ("RGB", "L"):
        return image
    return image.convert("RGB")


def _encode_jpeg(image: Image.Image, quality_percent: int) -> bytes:
    buf = io.BytesIO()
    try:
        image.save(buf, format="JPEG", quality=max(1, min(100, quality_percent)))
    except (OSError, ValueError, KeyError) as e:
        raise CompressionFailedError(f"JPEG encoding failed: {e}") from e
    return buf.getvalue()


def compress_image(
    image: Image.Image,
    target_bytes: int = TARGET_BYTES,
    min_quality: float = MIN_QUALITY,
    quality_step: float = QUALITY_STEP,
) -> bytes:
    """
    Encode ``image`` as JPEG, lowering quality until it fits ``target_bytes``.

    Quality starts at 1.0 and drops by ``quality_step`` down to ``min_quality``.
    If even the floor is too large, the floor-quality output is accepted, so
    the loop runs a bounded number of encodings.
    """
    try:
        rgb = _to_jpeg_mode(image)
    except (OSError, ValueError) as e:
        raise CompressionFailedError(f"cannot convert image for JPEG: {e}") from e

    # work in whole percent to avoid float drift
    floor = max(1, round(min_quality * 100))
    step = max(1, round(quality_step * 100))
    quality = 100

    data = _encode_jpeg(rgb, quality)
    while len(data) > target_bytes and quality > floor:
        quality = max(floor, quality - step)
        data = _encode_jpeg(rgb, quality)

    if len(data) > target_bytes:
        logger.info(
            "Compression floor reached: %d bytes at quality %.2f (target %d)",
            len(data), quality / 100, target_bytes,
        )
    return data


class ImageProcessor:
    """Turns caller input into compressed JPEG bytes ready for encryption."""

    def __init__(self, config: Optional[PhotoVaultConfig] = None):
        self.config = config or PhotoVaultConfig()

    def load_input(self, image: ImageInput) -> Image.Image:
        if isinstance(image, Image.Image):
            if image.width * image.height > self.config.max_input_pixels:
                raise ImageTooLargeError(
                    f"image has {image.width}x{image.height} pixels, limit is {self.config.max_input_pixels}"
                )
            # lazily opened images decode here, not later inside resize or save
            try:
                image.load()
            except (OSError, ValueError, SyntaxError) as e:
                raise InvalidImageDataError(f"cannot decode image: {e}") from e
            return image
        if isinstance(image, (bytes, bytearray, memoryview)):
            if len(image) > self.config.max_input_bytes:
                raise ImageTooLargeError(
                    f"input is {len(image)} bytes, limit is {self.config.max_input_bytes}"
                )
            img = open_image(image, max_pixels=self.config.max_input_pixels)
            # camera photos carry their rotation in EXIF
            try:
                return ImageOps.exif_transpose(img)
            except (OSError, ValueError, SyntaxError) as e:
                logger.debug("Ignoring unreadable EXIF orientation: %s", e)
                return img
        raise InvalidImageDataError(f"unsupported image input type: {type(image).__name__}")

    def prepare(self, image: ImageInput) -> bytes:
        """Resize then compress; returns the encoded bytes."""
        img = self.load_input(image)
        resized = resize_image(img, self.config.max_dimension)
        return compress_image(
            resized,
            target_bytes=self.config.target_bytes,
            min_quality=self.config.min_quality,
            quality_step=self.config.quality_step,
        )
