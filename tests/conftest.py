from __future__ import annotations

import io
import zlib
from typing import Any, Callable

import pytest
from PIL import Image

from imagebridge.core.xref import ImageStreamObject, XRefTable


@pytest.fixture()
def xref() -> XRefTable:
    return XRefTable()


@pytest.fixture()
def image_stream() -> Callable[..., ImageStreamObject]:
    """Build a Flate-encoded image XObject from unencoded sample bytes."""

    def _create(width: int, height: int, color_space: Any, bpc: int, data: bytes,
                **entries: Any) -> ImageStreamObject:
        dictionary = {
            "Type": "XObject",
            "Subtype": "Image",
            "Width": width,
            "Height": height,
            "ColorSpace": color_space,
            "BitsPerComponent": bpc,
            "Filter": "FlateDecode",
        }
        dictionary.update(entries)
        return ImageStreamObject(dictionary, zlib.compress(data))

    return _create


@pytest.fixture()
def gradient() -> Callable[[int, int, int], bytes]:
    """Deterministic 8-bit samples that exercise every PNG row filter."""

    def _create(width: int, height: int, channels: int) -> bytes:
        out = bytearray()
        for y in range(height):
            for x in range(width):
                for c in range(channels):
                    out.append((x * 7 + y * 13 + c * 61 + (x * y) % 5) & 0xFF)
        return bytes(out)

    return _create


def pillow_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def pillow_bytes(img: Image.Image, fmt: str, **options: Any) -> bytes:
    out = io.BytesIO()
    img.save(out, format=fmt, **options)
    return out.getvalue()
