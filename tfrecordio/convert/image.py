"""Image features.

An image feature is a BytesList holding one image payload: a serialized
``Summary.Image`` message with the height, width, colorspace and encoded
image bytes (PNG by default). Decoding checks the encoded bytes start with a
known image header before handing them to Pillow.
"""

from __future__ import annotations

import io
from enum import IntEnum
from typing import Any

import numpy as np
from PIL import Image

from tfrecordio.errors import (
    ShapeMismatchError,
    SizeOverflowError,
    UnsupportedElementTypeError,
    UnsupportedImageFormatError,
)
from tfrecordio.example.codec import MessageCodec
from tfrecordio.example.features import BytesList, Feature
from tfrecordio.example.proto import default_codec

INT32_MAX = 2**31 - 1

# Header magic -> Pillow format name
_MAGIC = (
    (b"\x89PNG\r\n\x1a\n", "PNG"),
    (b"\xff\xd8\xff", "JPEG"),
    (b"GIF87a", "GIF"),
    (b"GIF89a", "GIF"),
    (b"BM", "BMP"),
    (b"II*\x00", "TIFF"),
    (b"MM\x00*", "TIFF"),
)


class ColorSpace(IntEnum):
    """Colorspace codes stored in the image payload."""

    LUMA = 1
    LUMA_ALPHA = 2
    RGB = 3
    RGBA = 4
    DIGITAL_YUV = 5
    BGRA = 6

    @property
    def num_channels(self) -> int:
        return _CHANNELS[self]

    @property
    def pil_mode(self) -> str:
        return _PIL_MODES[self]

    @classmethod
    def from_channels(cls, channels: int) -> ColorSpace:
        """Default colorspace for a channel count (1, 2, 3 or 4)."""
        try:
            return _DEFAULT_FOR_CHANNELS[channels]
        except KeyError:
            raise ShapeMismatchError(
                (channels,), channels, f"No colorspace has {channels} channels"
            ) from None


_CHANNELS = {
    ColorSpace.LUMA: 1,
    ColorSpace.LUMA_ALPHA: 2,
    ColorSpace.RGB: 3,
    ColorSpace.RGBA: 4,
    ColorSpace.DIGITAL_YUV: 3,
    ColorSpace.BGRA: 4,
}

# BGRA is stored as RGBA with the color channels swapped
_PIL_MODES = {
    ColorSpace.LUMA: "L",
    ColorSpace.LUMA_ALPHA: "LA",
    ColorSpace.RGB: "RGB",
    ColorSpace.RGBA: "RGBA",
    ColorSpace.DIGITAL_YUV: "YCbCr",
    ColorSpace.BGRA: "RGBA",
}

_DEFAULT_FOR_CHANNELS = {
    1: ColorSpace.LUMA,
    2: ColorSpace.LUMA_ALPHA,
    3: ColorSpace.RGB,
    4: ColorSpace.RGBA,
}

_BGRA_ORDER = [2, 1, 0, 3]


def detect_image_format(data: bytes) -> str:
    """Name of the image format ``data`` starts with.

    Raises:
        UnsupportedImageFormatError: If no known header matches.
    """
    for magic, name in _MAGIC:
        if data.startswith(magic):
            return name
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "WEBP"
    raise UnsupportedImageFormatError(
        f"Unrecognized image header {bytes(data[:12]).hex() or '(empty)'}"
    )


def normalize_pixels(pixels: np.ndarray) -> np.ndarray:
    """Map pixel values to uint8.

    uint8 passes through. Float arrays are scaled by their finite range:
    non-negative data to [0, 255] by the maximum, signed data around 128 by
    the largest magnitude. Non-finite values are clamped.
    """
    if pixels.dtype == np.uint8:
        return pixels
    if pixels.dtype.kind != "f":
        raise UnsupportedElementTypeError(pixels.dtype)

    finite = pixels[np.isfinite(pixels)]
    if finite.size == 0:
        return np.zeros(pixels.shape, dtype=np.uint8)

    low, high = float(finite.min()), float(finite.max())
    if low >= 0.0:
        scale = 255.0 / high if high > 0.0 else 0.0
        offset = 0.0
    else:
        scale = 127.0 / max(high, -low)
        offset = 128.0

    scaled = np.nan_to_num(pixels.astype(np.float64) * scale + offset, nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def _as_hwc(pixels: Any) -> np.ndarray:
    array = np.asarray(pixels.numpy() if hasattr(pixels, "numpy") else pixels)
    if array.ndim == 2:
        array = array[..., np.newaxis]
    if array.ndim != 3:
        raise ShapeMismatchError(
            array.shape, array.size, f"Image pixels must be (H, W) or (H, W, C), got {array.shape}"
        )
    return array


def encode_pixels(pixels: Any, color_space: ColorSpace | int | None = None, image_format: str = "PNG") -> bytes:
    """Encode a pixel array with Pillow and return the encoded image bytes."""
    array = normalize_pixels(_as_hwc(pixels))
    height, width, channels = array.shape
    space = ColorSpace(color_space) if color_space is not None else ColorSpace.from_channels(channels)
    if space.num_channels != channels:
        raise ShapeMismatchError(
            (height, width, space.num_channels),
            array.shape,
            f"{space.name} needs {space.num_channels} channels, got {channels}",
        )
    if height == 0 or width == 0:
        raise ShapeMismatchError((height, width), array.shape, "Cannot encode an empty image")

    if space is ColorSpace.BGRA:
        array = array[..., _BGRA_ORDER]
    image = Image.frombytes(space.pil_mode, (width, height), np.ascontiguousarray(array).tobytes())

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=image_format)
    except (KeyError, OSError, ValueError) as error:
        raise UnsupportedImageFormatError(
            f"Cannot encode {space.name} pixels as {image_format}: {error}"
        ) from error
    return buffer.getvalue()


def decode_pixels(data: bytes, color_space: ColorSpace | int | None = None) -> np.ndarray:
    """Decode encoded image bytes into an (H, W, C) array.

    Args:
        data: Encoded image (PNG, JPEG, GIF, BMP, TIFF or WEBP).
        color_space: Convert to this colorspace; by default luma, luma+alpha,
            RGB and RGBA are kept and other modes become RGB or RGBA.

    Raises:
        UnsupportedImageFormatError: If the header is not recognized or
            Pillow cannot decode the data.
    """
    detect_image_format(data)
    space = ColorSpace(color_space) if color_space is not None else None

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if space is not None:
                target = space.pil_mode
            elif image.mode in ("L", "LA", "RGB", "RGBA", "I", "I;16", "F"):
                target = image.mode
            elif image.mode == "1":
                target = "L"
            else:
                target = "RGBA" if "A" in image.getbands() or "transparency" in image.info else "RGB"
            converted = image if image.mode == target else image.convert(target)
            array = np.asarray(converted)
    except (OSError, ValueError) as error:
        raise UnsupportedImageFormatError(f"Cannot decode image: {error}") from error

    if array.ndim == 2:
        array = array[..., np.newaxis]
    if space is ColorSpace.BGRA:
        array = array[..., _BGRA_ORDER]
    return np.ascontiguousarray(array)


def encode_image(
    pixels: Any,
    color_space: ColorSpace | int | None = None,
    image_format: str = "PNG",
    codec: MessageCodec | None = None,
) -> bytes:
    """Build an image payload: dimensions, colorspace and encoded bytes.

    Args:
        pixels: (H, W) or (H, W, C) array, uint8 or float.
        color_space: Colorspace of the pixels; inferred from C by default.
        image_format: Pillow format name used for the encoded bytes.
        codec: Message codec; the protobuf codec by default.
    """
    codec = codec or default_codec
    array = _as_hwc(pixels)
    height, width, channels = array.shape
    if height > INT32_MAX or width > INT32_MAX:
        raise SizeOverflowError(f"Image dimensions {height}x{width} exceed int32")

    space = ColorSpace(color_space) if color_space is not None else ColorSpace.from_channels(channels)
    encoded = encode_pixels(array, space, image_format)
    return codec.encode_message(
        "Image",
        {
            "height": height,
            "width": width,
            "colorspace": int(space),
            "encoded_image_string": encoded,
        },
    )


def decode_image(payload: bytes, codec: MessageCodec | None = None) -> np.ndarray:
    """Decode an image payload into an (H, W, C) pixel array.

    Raises:
        UnsupportedImageFormatError: If the encoded bytes have no known header.
        ShapeMismatchError: If the decoded size differs from the recorded size.
    """
    codec = codec or default_codec
    fields = codec.decode_message("Image", payload)
    encoded = fields.get("encoded_image_string", b"")
    try:
        space: ColorSpace | None = ColorSpace(fields.get("colorspace", 0))
    except ValueError:
        # Unknown or unset colorspace: keep what the encoded image holds
        space = None

    pixels = decode_pixels(encoded, space)

    height, width = fields.get("height", 0), fields.get("width", 0)
    if (height, width) != pixels.shape[:2]:
        raise ShapeMismatchError(
            (height, width),
            pixels.shape,
            f"Image payload records {height}x{width}, decoded {pixels.shape[0]}x{pixels.shape[1]}",
        )
    return pixels


def image_to_feature(
    pixels: Any,
    color_space: ColorSpace | int | None = None,
    image_format: str = "PNG",
    codec: MessageCodec | None = None,
) -> BytesList:
    """Wrap a pixel array as a single-payload BytesList."""
    return BytesList((encode_image(pixels, color_space, image_format, codec),))


def feature_to_image(feature: Feature, codec: MessageCodec | None = None) -> np.ndarray:
    """Decode a single-payload BytesList into an (H, W, C) pixel array."""
    if not isinstance(feature, BytesList):
        raise UnsupportedElementTypeError(type(feature).__name__)
    if len(feature) != 1:
        raise ShapeMismatchError(
            (1,), len(feature), f"Image features hold exactly one payload, got {len(feature)}"
        )
    return decode_image(feature.value[0], codec)
