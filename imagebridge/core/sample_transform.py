# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Sample Transform

Converts between packed PDF image samples and 8-bit RasterImage samples.

PDF image rows start on a byte boundary; sub-byte samples are packed
high-order bit first. A Decode array maps each raw value v in
[0, 2**bpc - 1] linearly onto [Dmin, Dmax] before it is scaled to 0..255.
16-bit samples are big-endian and only their high byte is kept.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np

from . import constants
from .error import DimensionMismatch, PaletteIndexOutOfRange
from .raster import RasterImage, check_image_size

logger = logging.getLogger(__name__)


def row_stride(width: int, bits_per_component: int, channels: int) -> int:
    """Bytes per packed row, padded to a byte boundary."""
    return (width * bits_per_component * channels + 7) // 8


def _check_depth(bits_per_component: int) -> None:
    if bits_per_component not in constants.VALID_BITS_PER_COMPONENT:
        raise DimensionMismatch(f"BitsPerComponent {bits_per_component} is not 1, 2, 4, 8 or 16")


def unpack_samples(raw: bytes, width: int, height: int, bits_per_component: int,
                   channels: int) -> np.ndarray:
    """Raw sample values as a (height, width * channels) array.

    Surplus bytes after the last row are ignored; short data raises
    DimensionMismatch.
    """
    _check_depth(bits_per_component)
    check_image_size(width, height)

    stride = row_stride(width, bits_per_component, channels)
    needed = stride * height
    if len(raw) < needed:
        raise DimensionMismatch(
            f"{width}x{height} {channels}ch {bits_per_component}bpc needs {needed} bytes, "
            f"got {len(raw)}")
    if len(raw) > needed:
        logger.debug("ignoring %d surplus bytes after image data", len(raw) - needed)

    count = width * channels
    if bits_per_component == 16:
        return np.frombuffer(raw, dtype='>u2', count=count * height).reshape(height, count)

    rows = np.frombuffer(raw, dtype=np.uint8, count=needed).reshape(height, stride)
    if bits_per_component == 8:
        return rows[:, :count]

    # Sub-byte: unpack to bits, then weight each group of bpc bits MSB first
    bits = np.unpackbits(rows, axis=1)[:, :count * bits_per_component]
    bits = bits.reshape(height, count, bits_per_component).astype(np.uint8)
    weights = (1 << np.arange(bits_per_component - 1, -1, -1)).astype(np.uint8)
    return (bits * weights).sum(axis=2, dtype=np.uint8)


def _to_8bit_depth(values: np.ndarray, bits_per_component: int) -> tuple[np.ndarray, int]:
    """16-bit values keep their high byte; other depths are unchanged."""
    if bits_per_component == 16:
        return (values >> 8).astype(np.uint8), 8
    return values, bits_per_component


def _build_decode_lut(d_min: float, d_max: float, bits_per_component: int) -> np.ndarray:
    """LUT from raw value to 8-bit sample for one Decode pair."""
    max_value = (1 << bits_per_component) - 1
    v = np.arange(max_value + 1, dtype=np.float64)
    decoded = d_min + v * (d_max - d_min) / max_value
    return np.clip(np.floor(decoded * 255 + 0.5), 0, 255).astype(np.uint8)


def scale_to_8bit(values: np.ndarray, bits_per_component: int) -> np.ndarray:
    """Identity-decode raw values of any depth to 8-bit samples."""
    values, depth = _to_8bit_depth(values, bits_per_component)
    if depth == 8:
        return values.astype(np.uint8)
    return _build_decode_lut(0.0, 1.0, depth)[values]


def _is_identity_decode(decode: list[float] | None, components: int) -> bool:
    """Check if decode array is the identity mapping [0,1] repeated per component."""
    if decode is None:
        return True
    return list(decode) == [0, 1] * components


def _decode_pairs(decode: list[float] | None, channels: int, default: list[float]) -> list[tuple[float, float]]:
    if decode is None:
        decode = default
    if len(decode) < 2 * channels:
        raise DimensionMismatch(
            f"Decode array has {len(decode)} entries, {2 * channels} needed")
    return [(float(decode[2 * c]), float(decode[2 * c + 1])) for c in range(channels)]


def unpack_indices(raw: bytes, width: int, height: int, bits_per_component: int,
                   decode: list[float] | None = None) -> bytes:
    """Palette indices (one byte per pixel) of an Indexed image.

    A Decode array other than [0, 2**bpc - 1] is applied in index space.
    """
    values = unpack_samples(raw, width, height, bits_per_component, 1)
    if bits_per_component == 16:
        values = values >> 8
        bits_per_component = 8

    max_value = (1 << bits_per_component) - 1
    if decode is not None and list(decode[:2]) != [0, max_value]:
        d_min, d_max = _decode_pairs(decode, 1, [0, max_value])[0]
        mapped = d_min + values.astype(np.float64) * (d_max - d_min) / max_value
        values = np.clip(np.floor(mapped + 0.5), 0, 255)

    return values.astype(np.uint8).tobytes()


def clamp_indices(idx: np.ndarray, hival: int) -> np.ndarray:
    """Clamp palette indices above hival, warning with PaletteIndexOutOfRange."""
    overflow = int(np.count_nonzero(idx > hival))
    if overflow:
        warnings.warn(
            f"{overflow} palette indices above hival {hival} clamped",
            PaletteIndexOutOfRange, stacklevel=3)
        idx = np.minimum(idx, hival)
    return idx


def resolve_palette(indices: bytes, lookup: bytes, components: int, hival: int) -> bytes:
    """Replace each index by its lookup-table entry.

    Indices above hival are clamped to hival and a PaletteIndexOutOfRange
    warning is issued.
    """
    idx = clamp_indices(np.frombuffer(indices, dtype=np.uint8), hival)
    table = np.frombuffer(lookup, dtype=np.uint8, count=(hival + 1) * components)
    return table.reshape(hival + 1, components)[idx].tobytes()


def unpack(raw: bytes, width: int, height: int, bits_per_component: int, channels: int,
           decode: list[float] | None = None, indexed=None) -> RasterImage:
    """Normalize packed PDF samples to an 8-bit RasterImage.

    ``indexed`` is an IndexedColorSpace; when given the image data holds
    palette indices (``channels`` must be 1) and the result holds the
    resolved colors with the base space's channel count.
    """
    if indexed is not None:
        from .color_space import component_count

        indices = unpack_indices(raw, width, height, bits_per_component, decode)
        base_channels = component_count(indexed.base)
        samples = resolve_palette(indices, indexed.lookup, base_channels, indexed.hival)
        return RasterImage(width, height, base_channels, samples)

    values = unpack_samples(raw, width, height, bits_per_component, channels)
    values, depth = _to_8bit_depth(values, bits_per_component)

    if _is_identity_decode(decode, channels) and depth == 8:
        samples = np.ascontiguousarray(values, dtype=np.uint8)
    else:
        pairs = _decode_pairs(decode, channels, [0, 1] * channels)
        planes = values.reshape(height, width, channels)
        out = np.empty(planes.shape, dtype=np.uint8)
        for c, (d_min, d_max) in enumerate(pairs):
            out[:, :, c] = _build_decode_lut(d_min, d_max, depth)[planes[:, :, c]]
        samples = out

    return RasterImage(width, height, channels, samples.tobytes(),
                       bits_per_component=bits_per_component)


def representable(samples: bytes, bits_per_component: int) -> bool:
    """True when every 8-bit sample survives a trip through that depth."""
    if bits_per_component >= 8:
        return True
    step = 255 // ((1 << bits_per_component) - 1)
    return not bool(np.any(np.frombuffer(samples, dtype=np.uint8) % step))


def pack_values(values: np.ndarray, width: int, height: int, bits_per_component: int,
                channels: int) -> bytes:
    """Pack raw values (0 .. 2**bpc - 1) into byte-aligned PDF rows."""
    values = values.reshape(height, width * channels)
    if bits_per_component == 16:
        return values.astype('>u2').tobytes()
    if bits_per_component == 8:
        return values.astype(np.uint8).tobytes()

    shifts = np.arange(bits_per_component - 1, -1, -1, dtype=np.uint8)
    bits = (values.astype(np.uint8)[:, :, None] >> shifts) & 1
    bits = bits.reshape(height, width * channels * bits_per_component)
    # packbits pads each row to a whole byte with zero bits
    return np.packbits(bits, axis=1).tobytes()


def pack(raster: RasterImage, bits_per_component: int) -> tuple[bytes, list[float]]:
    """Inverse of unpack: packed samples plus an identity Decode array.

    Palette rasters pack their indices unchanged. Other rasters rescale
    each 8-bit sample to the target depth (16-bit repeats the byte).
    """
    _check_depth(bits_per_component)
    samples = np.frombuffer(raster.samples, dtype=np.uint8)
    max_value = (1 << bits_per_component) - 1

    if raster.palette is not None:
        if bits_per_component == 16:
            raise DimensionMismatch("palette indices cannot be packed at 16 bits")
        if samples.size and int(samples.max()) > max_value:
            raise DimensionMismatch(
                f"palette index {int(samples.max())} does not fit in {bits_per_component} bits")
        data = pack_values(samples, raster.width, raster.height, bits_per_component, 1)
        return data, [0.0, float(max_value)]

    if bits_per_component == 16:
        values = samples.astype(np.uint16) * 257
    elif bits_per_component == 8:
        values = samples
    else:
        values = np.floor(samples.astype(np.float64) * max_value / 255 + 0.5).astype(np.uint8)

    data = pack_values(values, raster.width, raster.height, bits_per_component, raster.channels)
    return data, [0.0, 1.0] * raster.channels
