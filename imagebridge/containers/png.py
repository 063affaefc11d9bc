# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PNG Container Codec

Reads and writes single-image, non-interlaced PNG files.

Reading accepts every color type / bit depth combination PNG allows,
including palette and color-key transparency from tRNS. Writing is
deterministic: the same RasterImage always yields the same bytes (one IDAT,
fixed zlib level, fixed row-filter choice, no ancillary chunks), so a file
written here survives a read and rewrite unchanged.
"""

from __future__ import annotations

import logging
import struct
import zlib

import numpy as np

from ..core import constants
from ..core.error import (
    CorruptChunk,
    InvalidPNGSignature,
    UnsupportedColorSpace,
    UnsupportedPNGColorType,
    UnsupportedPNGInterlace,
)
from ..core.raster import RasterImage, check_image_size
from ..core.sample_transform import clamp_indices, pack, pack_values, representable, scale_to_8bit, unpack_samples
from ..filters.filter_compression import FlateFilter
from ..filters.predictor import png_filter, png_unfilter, row_geometry

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# PNG color types
GRAY = 0
RGB = 2
PALETTE = 3
GRAY_ALPHA = 4
RGB_ALPHA = 6

# Samples per pixel and allowed bit depths per color type
_CHANNELS = {GRAY: 1, RGB: 3, PALETTE: 1, GRAY_ALPHA: 2, RGB_ALPHA: 4}
_DEPTHS = {
    GRAY: (1, 2, 4, 8, 16),
    RGB: (8, 16),
    PALETTE: (1, 2, 4, 8),
    GRAY_ALPHA: (8, 16),
    RGB_ALPHA: (8, 16),
}


def _iter_chunks(data: bytes):
    """Yield (type, payload) for every chunk, checking length and CRC."""
    offset = len(PNG_SIGNATURE)
    while offset < len(data):
        if offset + 8 > len(data):
            raise CorruptChunk(f"truncated chunk header at offset {offset}")
        length, chunk_type = struct.unpack(">I4s", data[offset:offset + 8])
        end = offset + 8 + length
        if length > 0x7FFFFFFF or end + 4 > len(data):
            raise CorruptChunk(f"chunk {chunk_type!r} at offset {offset} runs past end of data")

        payload = data[offset + 8:end]
        (crc,) = struct.unpack(">I", data[end:end + 4])
        if zlib.crc32(chunk_type + payload) != crc:
            raise CorruptChunk(f"bad CRC in {chunk_type!r} chunk at offset {offset}")

        yield chunk_type, payload
        offset = end + 4


def read_png(data: bytes) -> RasterImage:
    """Decode a PNG file into a RasterImage."""
    if not data.startswith(PNG_SIGNATURE):
        raise InvalidPNGSignature("data does not start with the PNG signature")

    header = None
    palette = None
    transparency = None
    idat = []
    seen_end = False

    for chunk_type, payload in _iter_chunks(data):
        if header is None and chunk_type != b"IHDR":
            raise CorruptChunk(f"first chunk is {chunk_type!r}, not IHDR")

        if chunk_type == b"IHDR":
            header = _parse_ihdr(payload)
        elif chunk_type == b"PLTE":
            if len(payload) % 3 or not 3 <= len(payload) <= 768:
                raise CorruptChunk(f"PLTE length {len(payload)} is invalid")
            palette = payload
        elif chunk_type == b"tRNS":
            transparency = payload
        elif chunk_type == b"IDAT":
            idat.append(payload)
        elif chunk_type == b"IEND":
            seen_end = True
            break
        else:
            # Ancillary chunks carry nothing the bridge needs
            logger.debug("skipping %r chunk", chunk_type)

    if header is None:
        raise CorruptChunk("no IHDR chunk")
    if not seen_end:
        raise CorruptChunk("no IEND chunk")
    if not idat:
        raise CorruptChunk("no IDAT chunk")

    width, height, depth, color_type = header
    if color_type == PALETTE and palette is None:
        raise CorruptChunk("palette image without PLTE chunk")

    channels = _CHANNELS[color_type]
    row_bytes, bpp = row_geometry(width, channels, depth)
    inflated = FlateFilter().decode(b"".join(idat))
    raw = png_unfilter(inflated, row_bytes, bpp)
    values = unpack_samples(raw, width, height, depth, channels)

    if color_type == PALETTE:
        return _palette_raster(values, width, height, depth, palette, transparency)

    values = values.reshape(width * height, channels)
    alpha = None
    if color_type in (GRAY_ALPHA, RGB_ALPHA):
        alpha = scale_to_8bit(values[:, -1], depth).tobytes()
        values = values[:, :-1]
    elif transparency is not None:
        alpha = _color_key_alpha(values, transparency, channels)

    samples = scale_to_8bit(values, depth)
    return RasterImage(width, height, samples.shape[1], samples.tobytes(), alpha,
                       bits_per_component=depth)


def _parse_ihdr(payload: bytes) -> tuple[int, int, int, int]:
    if len(payload) != 13:
        raise CorruptChunk(f"IHDR length {len(payload)}, expected 13")
    width, height, depth, color_type, compression, filter_method, interlace = struct.unpack(
        ">IIBBBBB", payload)

    if width == 0 or height == 0:
        raise CorruptChunk(f"invalid PNG size {width}x{height}")
    if color_type not in _DEPTHS or depth not in _DEPTHS[color_type]:
        raise UnsupportedPNGColorType(f"color type {color_type} with bit depth {depth}")
    if compression != 0 or filter_method != 0:
        raise CorruptChunk(f"unknown compression/filter method {compression}/{filter_method}")
    if interlace == 1:
        raise UnsupportedPNGInterlace("Adam7 interlaced PNG images are not supported")
    if interlace != 0:
        raise CorruptChunk(f"unknown interlace method {interlace}")

    check_image_size(width, height)
    return width, height, depth, color_type


def _palette_raster(values, width, height, depth, palette, transparency) -> RasterImage:
    entries = len(palette) // 3
    indices = clamp_indices(values.reshape(-1).astype(np.uint8), entries - 1)

    alpha = None
    if transparency is not None:
        table = np.full(256, 255, dtype=np.uint8)
        trns = np.frombuffer(transparency[:entries], dtype=np.uint8)
        table[:len(trns)] = trns
        alpha = table[indices].tobytes()

    return RasterImage(width, height, 1, indices.tobytes(), alpha, bytes(palette),
                       bits_per_component=depth)


def _color_key_alpha(values: np.ndarray, transparency: bytes, channels: int) -> bytes | None:
    """Alpha from a gray or RGB tRNS key: 0 where the pixel equals the key."""
    if len(transparency) < 2 * channels:
        logger.warning("tRNS chunk of %d bytes ignored", len(transparency))
        return None
    key = np.array(struct.unpack(f">{channels}H", transparency[:2 * channels]))
    transparent = np.all(values == key, axis=1)
    return np.where(transparent, 0, 255).astype(np.uint8).tobytes()


def _chunk(chunk_type: bytes, payload: bytes) -> bytes:
    return (struct.pack(">I", len(payload)) + chunk_type + payload +
            struct.pack(">I", zlib.crc32(chunk_type + payload)))


def _palette_transparency(raster: RasterImage) -> bytes | None:
    """tRNS table when every pixel of an index has the same alpha, else None."""
    indices = np.frombuffer(raster.samples, dtype=np.uint8)
    alpha = np.frombuffer(raster.alpha, dtype=np.uint8)

    low = np.full(256, 255, dtype=np.uint8)
    high = np.zeros(256, dtype=np.uint8)
    np.minimum.at(low, indices, alpha)
    np.maximum.at(high, indices, alpha)
    used = np.zeros(256, dtype=bool)
    used[indices] = True
    if np.any(low[used] != high[used]):
        return None

    low[~used] = 255
    return low[:int(indices.max()) + 1].tobytes()


def _color_key(raster: RasterImage) -> bytes | None:
    """tRNS key when alpha is binary and exactly one color is transparent."""
    alpha = np.frombuffer(raster.alpha, dtype=np.uint8)
    transparent = alpha == 0
    if not np.any(transparent) or np.any((alpha != 0) & (alpha != 255)):
        return None

    pixels = np.frombuffer(raster.samples, dtype=np.uint8).reshape(-1, raster.channels)
    key = pixels[np.argmax(transparent)]
    matches = np.all(pixels == key, axis=1)
    if np.any(matches != transparent):
        return None
    return struct.pack(f">{raster.channels}H", *(int(v) for v in key))


def _expand_palette(raster: RasterImage) -> RasterImage:
    table = np.frombuffer(raster.palette, dtype=np.uint8).reshape(-1, 3)
    idx = np.minimum(np.frombuffer(raster.samples, dtype=np.uint8), len(table) - 1)
    return RasterImage(raster.width, raster.height, 3, table[idx].tobytes(), raster.alpha)


def _native_depth(raster: RasterImage) -> int:
    """Depth a gray or palette raster is written at."""
    depth = raster.bits_per_component
    if depth not in (1, 2, 4, 8):
        return 8
    if raster.palette is not None:
        if raster.samples and max(raster.samples) >= 1 << depth:
            return 8
        return depth
    return depth if representable(raster.samples, depth) else 8


def write_png(raster: RasterImage, filter_strategy: str | None = None,
              level: int | None = None) -> bytes:
    """Encode a RasterImage as PNG bytes."""
    if filter_strategy is None:
        filter_strategy = constants.PNG_FILTER_STRATEGY
    if level is None:
        level = constants.FLATE_LEVEL
    if raster.channels not in (1, 3):
        raise UnsupportedColorSpace(f"PNG cannot hold {raster.channels}-channel images")

    transparency = None
    if raster.palette is not None and raster.alpha is not None:
        transparency = _palette_transparency(raster)
        if transparency is None:
            logger.debug("palette alpha varies per index, writing RGBA")
            raster = _expand_palette(raster)

    if raster.palette is not None:
        color_type = PALETTE
        depth = _native_depth(raster)
        rows, _ = pack(raster.without_alpha(), depth)
    elif raster.alpha is None:
        color_type = GRAY if raster.channels == 1 else RGB
        depth = _native_depth(raster) if raster.channels == 1 else 8
        rows, _ = pack(raster, depth)
    else:
        transparency = _color_key(raster)
        depth = 8
        if transparency is not None:
            color_type = GRAY if raster.channels == 1 else RGB
            rows, _ = pack(raster.without_alpha(), 8)
        else:
            color_type = GRAY_ALPHA if raster.channels == 1 else RGB_ALPHA
            color = np.frombuffer(raster.samples, dtype=np.uint8).reshape(-1, raster.channels)
            alpha = np.frombuffer(raster.alpha, dtype=np.uint8).reshape(-1, 1)
            rows = pack_values(np.hstack([color, alpha]), raster.width, raster.height,
                               8, raster.channels + 1)

    channels = _CHANNELS[color_type]
    row_bytes, bpp = row_geometry(raster.width, channels, depth)
    adaptive = filter_strategy == "adaptive" and depth == 8 and color_type != PALETTE
    filtered = png_filter(rows, row_bytes, bpp, 15 if adaptive else 10)

    out = [PNG_SIGNATURE,
           _chunk(b"IHDR", struct.pack(">IIBBBBB", raster.width, raster.height,
                                       depth, color_type, 0, 0, 0))]
    if color_type == PALETTE:
        # PLTE and tRNS may not hold more entries than the bit depth can index
        entries = 1 << depth
        out.append(_chunk(b"PLTE", raster.palette[:3 * entries]))
        if transparency is not None:
            transparency = transparency[:entries]
    if transparency is not None:
        out.append(_chunk(b"tRNS", transparency))
    out.append(_chunk(b"IDAT", zlib.compress(filtered, level)))
    out.append(_chunk(b"IEND", b""))

    logger.debug("PNG %dx%d color type %d depth %d", raster.width, raster.height,
                 color_type, depth)
    return b"".join(out)
