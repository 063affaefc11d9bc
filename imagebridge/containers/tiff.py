# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
TIFF Container Codec

Reads the first image of a TIFF file and writes single-image TIFF files.

Reading goes through Pillow. The IFD is checked first with Pillow's tag
directory so structural problems surface as typed errors (bad header,
missing tag, unsupported compression or photometric), then the image is
decoded with ``Image.open`` and taken apart by Pillow mode. Compression
none, LZW, PackBits and Deflate; photometric WhiteIsZero, BlackIsZero,
RGB, Palette and Separated (CMYK).

Writing: one IFD holding one Deflate-compressed strip of 8-bit samples, in
a single byte order. Photometric 5 with InkSet 1 for CMYK, 1 and 2 for gray
and RGB, 3 for palette rasters; alpha becomes an unassociated extra sample.
"""

from __future__ import annotations

import io
import logging
import struct
import zlib

import numpy as np
from PIL import Image, TiffImagePlugin

from ..core import constants
from ..core.error import (
    CorruptStream,
    DimensionMismatch,
    ImageTooLarge,
    InvalidTIFFHeader,
    MissingRequiredTag,
    UnsupportedColorSpace,
    UnsupportedTIFFCompression,
)
from ..core.raster import RasterImage, check_image_size
from ..core.sample_transform import clamp_indices, pack_values, scale_to_8bit

logger = logging.getLogger(__name__)

# Tag numbers
IMAGE_WIDTH = 256
IMAGE_LENGTH = 257
BITS_PER_SAMPLE = 258
COMPRESSION = 259
PHOTOMETRIC = 262
STRIP_OFFSETS = 273
SAMPLES_PER_PIXEL = 277
ROWS_PER_STRIP = 278
STRIP_BYTE_COUNTS = 279
PLANAR_CONFIGURATION = 284
PREDICTOR = 317
COLOR_MAP = 320
INK_SET = 332
EXTRA_SAMPLES = 338

TAG_NAMES = {
    IMAGE_WIDTH: "ImageWidth",
    IMAGE_LENGTH: "ImageLength",
    PHOTOMETRIC: "PhotometricInterpretation",
    STRIP_OFFSETS: "StripOffsets",
    STRIP_BYTE_COUNTS: "StripByteCounts",
    COLOR_MAP: "ColorMap",
}

# Field types
SHORT = 3
LONG = 4

# Compression
COMPRESSION_NONE = 1
COMPRESSION_LZW = 5
COMPRESSION_DEFLATE = 8
COMPRESSION_PACKBITS = 32773
COMPRESSION_DEFLATE_OLD = 32946

SUPPORTED_COMPRESSIONS = frozenset({COMPRESSION_NONE, COMPRESSION_LZW, COMPRESSION_DEFLATE,
                                    COMPRESSION_PACKBITS, COMPRESSION_DEFLATE_OLD})

# PhotometricInterpretation
WHITE_IS_ZERO = 0
BLACK_IS_ZERO = 1
PHOTOMETRIC_RGB = 2
PHOTOMETRIC_PALETTE = 3
SEPARATED = 5

_COLOR_CHANNELS = {WHITE_IS_ZERO: 1, BLACK_IS_ZERO: 1, PHOTOMETRIC_RGB: 3,
                   PHOTOMETRIC_PALETTE: 1, SEPARATED: 4}

# Pillow mode -> color channels, once alpha is split off
_MODE_CHANNELS = {"L": 1, "RGB": 3, "CMYK": 4}

_HEADERS = (b"II*\x00", b"MM\x00*")


def _values(value) -> tuple:
    return value if isinstance(value, tuple) else (value,)


def _required(tags, tag: int) -> tuple:
    value = tags.get(tag)
    if value is None or value == ():
        raise MissingRequiredTag(tag, TAG_NAMES.get(tag, str(tag)))
    return _values(value)


def _read_tags(data: bytes) -> TiffImagePlugin.ImageFileDirectory_v2:
    """First IFD of ``data``, parsed by Pillow's tag directory."""
    if len(data) < 8:
        raise InvalidTIFFHeader("file too short for a TIFF header")
    if data[:2] not in (b"II", b"MM"):
        raise InvalidTIFFHeader(f"unknown byte-order marker {data[:2]!r}")
    # Pillow also accepts BigTIFF; only classic TIFF is read here
    if data[:4] not in _HEADERS:
        raise InvalidTIFFHeader(f"header {data[:4]!r} is not a classic TIFF header")

    tags = TiffImagePlugin.ImageFileDirectory_v2(data[:8])
    if tags.next < 8 or tags.next + 2 > len(data):
        raise InvalidTIFFHeader(f"IFD offset {tags.next} outside the file")
    fp = io.BytesIO(data)
    fp.seek(tags.next)
    tags.load(fp)
    return tags


def _check_tags(tags) -> tuple[int, int, int]:
    """Validate the IFD before decoding; returns (width, height, depth)."""
    width = _required(tags, IMAGE_WIDTH)[0]
    height = _required(tags, IMAGE_LENGTH)[0]
    photometric = _required(tags, PHOTOMETRIC)[0]
    _required(tags, STRIP_OFFSETS)
    _required(tags, STRIP_BYTE_COUNTS)
    check_image_size(width, height)
    if width == 0 or height == 0:
        raise DimensionMismatch(f"invalid TIFF size {width}x{height}")

    compression = _values(tags.get(COMPRESSION, COMPRESSION_NONE))[0]
    if compression not in SUPPORTED_COMPRESSIONS:
        raise UnsupportedTIFFCompression(f"TIFF compression {compression} is not supported")

    depths = set(_values(tags.get(BITS_PER_SAMPLE, 1)))
    if len(depths) != 1:
        raise DimensionMismatch(f"mixed BitsPerSample {sorted(depths)}")
    depth = depths.pop()
    if depth not in constants.VALID_BITS_PER_COMPONENT:
        raise DimensionMismatch(f"BitsPerSample {depth} is not supported")

    color_channels = _COLOR_CHANNELS.get(photometric)
    if color_channels is None:
        raise UnsupportedColorSpace(f"PhotometricInterpretation {photometric} is not supported")
    if photometric == PHOTOMETRIC_PALETTE:
        if depth > 8:
            raise UnsupportedColorSpace(f"{depth}-bit palette TIFF is not supported")
        _required(tags, COLOR_MAP)
    if photometric == SEPARATED:
        if _values(tags.get(INK_SET, 1))[0] != 1:
            raise UnsupportedColorSpace("separated TIFF with a non-CMYK InkSet")
        extra = _values(tags.get(EXTRA_SAMPLES, ()))
        if extra and extra[0] in (1, 2):
            raise UnsupportedColorSpace("CMYK TIFF with an alpha sample is not supported")

    samples_per_pixel = _values(tags.get(SAMPLES_PER_PIXEL, 1))[0]
    if samples_per_pixel < color_channels:
        raise DimensionMismatch(
            f"{samples_per_pixel} samples per pixel for photometric {photometric}")
    return width, height, depth


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data), formats=["TIFF"])
        img.load()
    except Image.DecompressionBombError as e:
        raise ImageTooLarge(str(e)) from e
    except (OSError, ValueError, SyntaxError) as e:
        raise CorruptStream(f"TIFF image data could not be decoded: {e}") from e
    return img


def read_tiff(data: bytes) -> RasterImage:
    """Decode the first image of a TIFF file into a RasterImage."""
    width, height, depth = _check_tags(_read_tags(data))
    img = _open(data)
    if img.size != (width, height):
        raise DimensionMismatch(f"TIFF decoded as {img.size}, IFD says {width}x{height}")
    logger.debug("TIFF %dx%d opened as Pillow mode %s", width, height, img.mode)

    mode = img.mode
    if mode in ("P", "PA"):
        return _palette_raster(img, depth)
    if mode.startswith("I;16"):
        # 16-bit gray: keep the high byte of each sample
        dtype = ">u2" if mode.endswith("B") else "<u2"
        values = np.frombuffer(img.tobytes(), dtype=dtype)
        return RasterImage(width, height, 1, scale_to_8bit(values, 16).tobytes(),
                           bits_per_component=16)

    if mode == "1":
        img = img.convert("L")
    elif mode == "RGBX":
        img = img.convert("RGB")

    alpha = None
    if img.mode in ("LA", "RGBA"):
        alpha = img.getchannel("A").tobytes()
        img = img.convert(img.mode[:-1])

    channels = _MODE_CHANNELS.get(img.mode)
    if channels is None:
        raise UnsupportedColorSpace(f"TIFF opened as unsupported Pillow mode {mode}")
    return RasterImage(width, height, channels, img.tobytes(), alpha, bits_per_component=depth)


def _palette_raster(img: Image.Image, depth: int) -> RasterImage:
    palette = bytes(img.getpalette())
    alpha = img.getchannel("A").tobytes() if img.mode == "PA" else None
    indices = np.frombuffer(img.getchannel(0).tobytes(), dtype=np.uint8)
    idx = clamp_indices(indices, len(palette) // 3 - 1)
    return RasterImage(img.width, img.height, 1, idx.tobytes(), alpha, palette,
                       bits_per_component=depth)


def write_tiff(raster: RasterImage, byte_order: str | None = None,
               level: int | None = None) -> bytes:
    """Encode a RasterImage as a single-strip, Deflate-compressed TIFF."""
    if byte_order is None:
        byte_order = constants.TIFF_BYTE_ORDER
    if byte_order not in ("<", ">"):
        raise ValueError(f"byte order must be '<' or '>', got {byte_order!r}")
    if level is None:
        level = constants.FLATE_LEVEL

    if raster.palette is not None and raster.alpha is not None:
        # No per-index alpha in TIFF: expand to RGB + alpha
        table = np.frombuffer(raster.palette, dtype=np.uint8).reshape(-1, 3)
        idx = np.minimum(np.frombuffer(raster.samples, dtype=np.uint8), len(table) - 1)
        raster = RasterImage(raster.width, raster.height, 3, table[idx].tobytes(), raster.alpha)

    if raster.palette is not None:
        photometric = PHOTOMETRIC_PALETTE
    else:
        photometric = {1: BLACK_IS_ZERO, 3: PHOTOMETRIC_RGB, 4: SEPARATED}[raster.channels]

    samples_per_pixel = raster.channels + (1 if raster.alpha is not None else 0)
    pixels = np.frombuffer(raster.samples, dtype=np.uint8).reshape(-1, raster.channels)
    if raster.alpha is not None:
        alpha = np.frombuffer(raster.alpha, dtype=np.uint8).reshape(-1, 1)
        pixels = np.hstack([pixels, alpha])
    strip = zlib.compress(pack_values(pixels, raster.width, raster.height, 8, samples_per_pixel),
                          level)

    # Tag format: (tag_id, type, values)
    tags = [
        (IMAGE_WIDTH, LONG, (raster.width,)),
        (IMAGE_LENGTH, LONG, (raster.height,)),
        (BITS_PER_SAMPLE, SHORT, (8,) * samples_per_pixel),
        (COMPRESSION, SHORT, (COMPRESSION_DEFLATE,)),
        (PHOTOMETRIC, SHORT, (photometric,)),
        (STRIP_OFFSETS, LONG, (0,)),
        (SAMPLES_PER_PIXEL, SHORT, (samples_per_pixel,)),
        (ROWS_PER_STRIP, LONG, (raster.height,)),
        (STRIP_BYTE_COUNTS, LONG, (len(strip),)),
        (PLANAR_CONFIGURATION, SHORT, (1,)),
    ]
    if photometric == PHOTOMETRIC_PALETTE:
        table = np.zeros((256, 3), dtype=np.uint16)
        palette = np.frombuffer(raster.palette, dtype=np.uint8).reshape(-1, 3)
        table[:len(palette)] = palette.astype(np.uint16) * 257
        tags.append((COLOR_MAP, SHORT, tuple(int(v) for v in table.T.reshape(-1))))
    if photometric == SEPARATED:
        tags.append((INK_SET, SHORT, (1,)))
    if raster.alpha is not None:
        tags.append((EXTRA_SAMPLES, SHORT, (2,)))  # unassociated alpha

    # TIFF requires sorted IFD entries
    tags.sort(key=lambda t: t[0])

    # Header (8) + IFD: count (2) + entries (12 each) + next IFD (4), then
    # out-of-line values (word aligned), then the strip
    ifd_offset = 8
    extra_offset = ifd_offset + 2 + len(tags) * 12 + 4
    extra = bytearray()
    entries = []
    for tag_id, tag_type, values in tags:
        code = "H" if tag_type == SHORT else "I"
        packed = struct.pack(byte_order + code * len(values), *values)
        if len(packed) > 4:
            entries.append((tag_id, tag_type, len(values), None, bytes(packed)))
            extra += packed
            if len(extra) % 2:
                extra.append(0)
        else:
            entries.append((tag_id, tag_type, len(values), packed.ljust(4, b"\x00"), None))

    strip_offset = extra_offset + len(extra)
    strip_offset += strip_offset % 2

    buf = bytearray()
    buf += (b"II" if byte_order == "<" else b"MM")
    buf += struct.pack(byte_order + "HI", 42, ifd_offset)
    buf += struct.pack(byte_order + "H", len(entries))

    out_of_line = extra_offset
    for tag_id, tag_type, count, inline, packed in entries:
        buf += struct.pack(byte_order + "HHI", tag_id, tag_type, count)
        if tag_id == STRIP_OFFSETS:
            buf += struct.pack(byte_order + "I", strip_offset)
        elif inline is not None:
            buf += inline
        else:
            buf += struct.pack(byte_order + "I", out_of_line)
            out_of_line += len(packed) + len(packed) % 2

    buf += struct.pack(byte_order + "I", 0)  # no next IFD
    buf += extra
    buf += bytes(strip_offset - len(buf))
    buf += strip

    logger.debug("TIFF %dx%d photometric %d, %d samples/pixel", raster.width, raster.height,
                 photometric, samples_per_pixel)
    return bytes(buf)
