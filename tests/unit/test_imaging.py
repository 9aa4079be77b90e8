"""Unit tests for resize / compress / decode helpers."""

import io
import os

import pytest
from PIL import Image

from photovault.config import PhotoVaultConfig
from photovault.core import imaging
from photovault.core.exceptions import CompressionFailedError, ImageTooLargeError, InvalidImageDataError
from photovault.core.imaging import ImageProcessor, compress_image, decode_image, resize_image


def _noise_image(width, height, mode="RGB"):
    """Random pixels compress badly, which makes size targets meaningful."""
    channels = len(mode)
    return Image.frombytes(mode, (width, height), os.urandom(width * height * channels))


def _png_bytes(image):
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


# ==============================================================================
# Tests: resize_image
# ==============================================================================

def test_resize_noop_within_bounds():
    img = Image.new("RGB", (800, 600))
    assert resize_image(img, 1920) is img


def test_resize_landscape_keeps_aspect():
    img = Image.new("RGB", (4000, 3000))
    out = resize_image(img, 1920)
    assert out.size == (1920, 1440)


def test_resize_portrait_caps_height():
    img = Image.new("RGB", (1000, 5000))
    out = resize_image(img, 1920)
    assert out.size == (384, 1920)


def test_resize_extreme_ratio_keeps_one_pixel():
    img = Image.new("RGB", (10000, 2))
    out = resize_image(img, 100)
    assert out.size == (100, 1)


# ==============================================================================
# Tests: compress_image
# ==============================================================================

def test_compress_small_image_first_try(monkeypatch):
    calls = []
    real_encode = imaging._encode_jpeg

    def counting(image, quality):
        calls.append(quality)
        return real_encode(image, quality)

    monkeypatch.setattr(imaging, "_encode_jpeg", counting)
    data = compress_image(Image.new("RGB", (64, 64), "white"), target_bytes=1024 * 1024)
    assert calls == [100]
    assert data[:2] == b"\xff\xd8"


def test_compress_lowers_quality_until_target(monkeypatch):
    calls = []
    real_encode = imaging._encode_jpeg

    def counting(image, quality):
        calls.append(quality)
        return real_encode(image, quality)

    monkeypatch.setattr(imaging, "_encode_jpeg", counting)
    img = _noise_image(256, 256)
    at_full = len(real_encode(img, 100))
    data = compress_image(img, target_bytes=at_full - 1)
    assert len(calls) >= 2
    assert calls == sorted(calls, reverse=True)
    assert len(data) < at_full


def test_compress_accepts_floor_output(monkeypatch):
    """An unreachable target still terminates, at the quality floor."""
    calls = []
    real_encode = imaging._encode_jpeg

    def counting(image, quality):
        calls.append(quality)
        return real_encode(image, quality)

    monkeypatch.setattr(imaging, "_encode_jpeg", counting)
    data = compress_image(_noise_image(128, 128), target_bytes=10)
    assert calls == [100, 90, 80, 70, 60, 50, 40, 30, 20, 10]
    assert len(data) > 10
    assert decode_image(data).size == (128, 128)


def test_compress_converts_rgba():
    img = _noise_image(32, 32, mode="RGBA")
    data = compress_image(img)
    assert decode_image(data).mode == "RGB"


def test_compress_encoder_failure(monkeypatch):
    img = Image.new("RGB", (8, 8))

    def boom(*args, **kwargs):
        raise OSError("encoder error")

    monkeypatch.setattr(img, "save", boom)
    with pytest.raises(CompressionFailedError):
        compress_image(img)


# ==============================================================================
# Tests: decode_image
# ==============================================================================

def test_decode_garbage_raises():
    with pytest.raises(InvalidImageDataError):
        decode_image(b"definitely not an image")


def test_decode_truncated_jpeg_raises():
    data = compress_image(_noise_image(64, 64))
    with pytest.raises(InvalidImageDataError):
        decode_image(data[: len(data) // 2])


# ==============================================================================
# Tests: ImageProcessor
# ==============================================================================

def test_processor_accepts_encoded_bytes():
    processor = ImageProcessor(PhotoVaultConfig(max_dimension=100))
    data = processor.prepare(_png_bytes(Image.new("RGB", (400, 200), "red")))
    assert decode_image(data).size == (100, 50)


def test_processor_rejects_oversized_bytes():
    processor = ImageProcessor(PhotoVaultConfig(max_input_bytes=100))
    with pytest.raises(ImageTooLargeError):
        processor.prepare(b"\x00" * 101)


def test_processor_rejects_too_many_pixels():
    processor = ImageProcessor(PhotoVaultConfig(max_input_pixels=100))
    with pytest.raises(ImageTooLargeError):
        processor.prepare(_png_bytes(Image.new("RGB", (20, 20))))
    with pytest.raises(ImageTooLargeError):
        processor.prepare(Image.new("RGB", (20, 20)))


def test_processor_rejects_unknown_input_type():
    with pytest.raises(InvalidImageDataError):
        ImageProcessor().prepare("photo.jpg")


def test_processor_rejects_undecodable_bytes():
    with pytest.raises(InvalidImageDataError):
        ImageProcessor().prepare(b"garbage bytes")


def test_too_large_is_a_compression_failure():
    assert issubclass(ImageTooLargeError, CompressionFailedError)


def test_processor_truncated_lazy_image_is_invalid():
    """A lazily opened image whose data is cut short fails with a typed error."""
    data = _png_bytes(_noise_image(128, 128))
    img = Image.open(io.BytesIO(data[:2000]))
    with pytest.raises(InvalidImageDataError):
        ImageProcessor().prepare(img)


def test_resize_failure_is_compression_failure(monkeypatch):
    img = Image.new("RGB", (400, 400))

    def boom(*args, **kwargs):
        raise OSError("resampling failed")

    monkeypatch.setattr(img, "resize", boom)
    with pytest.raises(CompressionFailedError, match="resize failed"):
        resize_image(img, 100)
