# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Row predictors shared by the Flate/LZW codecs and the PNG/TIFF containers.

PNG predictors prefix each row with a filter-type byte (0-4); TIFF
predictor 2 stores horizontal differences between same-channel samples.
Rows are always whole bytes: ``row_bytes = ceil(columns * colors * bpc / 8)``.
"""

from __future__ import annotations

import logging

import numpy as np

from ..core.error import CorruptStream

logger = logging.getLogger(__name__)

PNG_NONE = 0
PNG_SUB = 1
PNG_UP = 2
PNG_AVERAGE = 3
PNG_PAETH = 4

# PDF Predictor values 10-14 force one PNG filter for every row, 15 = optimum
_FORCED_PNG_FILTER = {10: PNG_NONE, 11: PNG_SUB, 12: PNG_UP, 13: PNG_AVERAGE, 14: PNG_PAETH}


def row_geometry(columns: int, colors: int, bits_per_component: int) -> tuple[int, int]:
    """Return (row_bytes, bytes_per_pixel) for a predictor row."""
    row_bytes = (columns * colors * bits_per_component + 7) // 8
    bpp = max(1, (colors * bits_per_component + 7) // 8)
    return row_bytes, bpp


def _paeth_predictor(a: int, b: int, c: int) -> int:
    """PNG Paeth predictor function."""
    p = a + b - c
    pa = abs(p - a)
    pb = abs(p - b)
    pc = abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    elif pb <= pc:
        return b
    else:
        return c


def _unfilter_row(filter_type: int, filtered: bytes, prev: bytearray, bpp: int) -> bytearray:
    row_width = len(filtered)

    if filter_type == PNG_NONE:
        return bytearray(filtered)

    if filter_type == PNG_SUB:
        # Recon[i] = Filt[i] + Recon[i - bpp]: a running sum per byte lane
        lanes = np.frombuffer(filtered, dtype=np.uint8)
        row = np.empty(row_width, dtype=np.uint8)
        for lane in range(min(bpp, row_width)):
            row[lane::bpp] = np.cumsum(lanes[lane::bpp], dtype=np.uint64) & 0xFF
        return bytearray(row.tobytes())

    if filter_type == PNG_UP:
        cur = np.frombuffer(filtered, dtype=np.uint8).astype(np.uint16)
        above = np.frombuffer(bytes(prev), dtype=np.uint8).astype(np.uint16)
        return bytearray(((cur + above) & 0xFF).astype(np.uint8).tobytes())

    row = bytearray(row_width)
    if filter_type == PNG_AVERAGE:
        # Recon[i] = Filt[i] + floor((Recon[i-bpp] + Prior[i]) / 2)
        for i in range(row_width):
            left = row[i - bpp] if i >= bpp else 0
            row[i] = (filtered[i] + ((left + prev[i]) >> 1)) & 0xFF
    elif filter_type == PNG_PAETH:
        for i in range(row_width):
            a = row[i - bpp] if i >= bpp else 0
            b = prev[i]
            c = prev[i - bpp] if i >= bpp else 0
            row[i] = (filtered[i] + _paeth_predictor(a, b, c)) & 0xFF
    else:
        # Unknown filter type: take the row as-is
        logger.warning("unknown PNG row filter %d, row used unfiltered", filter_type)
        row[:] = filtered
    return row


def png_unfilter(data: bytes, row_bytes: int, bpp: int) -> bytes:
    """Undo PNG row filters. A trailing partial row is passed through as-is."""
    stride = row_bytes + 1
    full_rows = len(data) // stride
    out = bytearray()
    prev = bytearray(row_bytes)  # zeros initially

    for r in range(full_rows):
        start = r * stride
        row = _unfilter_row(data[start], data[start + 1:start + stride], prev, bpp)
        out.extend(row)
        prev = row

    tail = data[full_rows * stride:]
    if tail:
        logger.debug("predictor: %d trailing bytes outside a full row", len(tail))
        out.extend(tail[1:])
    return bytes(out)


def _shift_right(row: np.ndarray, bpp: int) -> np.ndarray:
    shifted = np.zeros_like(row)
    if bpp < len(row):
        shifted[bpp:] = row[:-bpp]
    return shifted


def _filter_candidates(row: np.ndarray, prev: np.ndarray, bpp: int) -> list[np.ndarray]:
    """All five filtered versions of one row (int16 in, values 0..255 out)."""
    left = _shift_right(row, bpp)
    upleft = _shift_right(prev, bpp)

    p = left + prev - upleft
    pa = np.abs(p - left)
    pb = np.abs(p - prev)
    pc = np.abs(p - upleft)
    paeth = np.where((pa <= pb) & (pa <= pc), left, np.where(pb <= pc, prev, upleft))

    return [
        row & 0xFF,
        (row - left) & 0xFF,
        (row - prev) & 0xFF,
        (row - ((left + prev) >> 1)) & 0xFF,
        (row - paeth) & 0xFF,
    ]


def png_filter(data: bytes, row_bytes: int, bpp: int, predictor: int = 15) -> bytes:
    """Apply PNG row filters; ``predictor`` follows the PDF numbering (10-15).

    With 15 every row gets the filter whose output has the smallest sum of
    absolute values (as signed bytes), ties going to the lower filter type.
    """
    if row_bytes == 0:
        return b""
    rows = len(data) // row_bytes
    pixels = np.frombuffer(data[:rows * row_bytes], dtype=np.uint8)
    pixels = pixels.reshape(rows, row_bytes).astype(np.int16)
    forced = _FORCED_PNG_FILTER.get(predictor)

    out = bytearray()
    prev = np.zeros(row_bytes, dtype=np.int16)
    for r in range(rows):
        row = pixels[r]
        if forced == PNG_NONE:
            filter_type, filtered = PNG_NONE, row
        else:
            candidates = _filter_candidates(row, prev, bpp)
            if forced is not None:
                filter_type = forced
            else:
                scores = [int(np.minimum(c, 256 - c).sum()) for c in candidates]
                filter_type = scores.index(min(scores))
            filtered = candidates[filter_type]
        out.append(filter_type)
        out.extend(filtered.astype(np.uint8).tobytes())
        prev = row

    tail = data[rows * row_bytes:]
    if tail:
        # Pad partial row to row_bytes with zeros
        padded = bytes(tail) + bytes(row_bytes - len(tail))
        out.append(PNG_NONE)
        out.extend(padded)
    return bytes(out)


def tiff_undifference(data: bytes, row_bytes: int, colors: int, bits_per_component: int) -> bytes:
    """Decode TIFF Predictor 2 (horizontal differencing), big-endian 16-bit."""
    if bits_per_component not in (8, 16):
        # Sub-byte differencing is not used by real producers
        logger.debug("TIFF predictor with %d bpc passed through", bits_per_component)
        return data
    rows = len(data) // row_bytes if row_bytes else 0
    if rows == 0:
        return data
    body = data[:rows * row_bytes]
    if bits_per_component == 8:
        samples = np.frombuffer(body, dtype=np.uint8).reshape(rows, -1, colors)
        decoded = (np.cumsum(samples, axis=1, dtype=np.uint64) & 0xFF).astype(np.uint8)
    else:
        samples = np.frombuffer(body, dtype=">u2").reshape(rows, -1, colors)
        decoded = (np.cumsum(samples, axis=1, dtype=np.uint64) & 0xFFFF).astype(">u2")
    return decoded.tobytes() + data[rows * row_bytes:]


def tiff_difference(data: bytes, row_bytes: int, colors: int, bits_per_component: int) -> bytes:
    """Encode TIFF Predictor 2 (horizontal differencing)."""
    if bits_per_component not in (8, 16):
        return data
    rows = len(data) // row_bytes if row_bytes else 0
    if rows == 0:
        return data
    body = data[:rows * row_bytes]
    if bits_per_component == 8:
        samples = np.frombuffer(body, dtype=np.uint8).reshape(rows, -1, colors).astype(np.int32)
        diffs = np.diff(samples, axis=1, prepend=0) & 0xFF
        encoded = diffs.astype(np.uint8)
    else:
        samples = np.frombuffer(body, dtype=">u2").reshape(rows, -1, colors).astype(np.int64)
        diffs = np.diff(samples, axis=1, prepend=0) & 0xFFFF
        encoded = diffs.astype(">u2")
    return encoded.tobytes() + data[rows * row_bytes:]


def decode_predictor(data: bytes, predictor: int, colors: int = 1,
                     bits_per_component: int = 8, columns: int = 1) -> bytes:
    """Undo a PDF ``/Predictor`` applied on top of Flate or LZW data."""
    if predictor <= 1:
        return data
    row_bytes, bpp = row_geometry(columns, colors, bits_per_component)
    if predictor >= 10:
        return png_unfilter(data, row_bytes, bpp)
    if predictor == 2:
        return tiff_undifference(data, row_bytes, colors, bits_per_component)
    raise CorruptStream(f"unknown predictor {predictor}")


def encode_predictor(data: bytes, predictor: int, colors: int = 1,
                     bits_per_component: int = 8, columns: int = 1) -> bytes:
    """Apply a PDF ``/Predictor`` before Flate or LZW compression."""
    if predictor <= 1:
        return data
    row_bytes, bpp = row_geometry(columns, colors, bits_per_component)
    if predictor >= 10:
        return png_filter(data, row_bytes, bpp, predictor)
    if predictor == 2:
        return tiff_difference(data, row_bytes, colors, bits_per_component)
    raise CorruptStream(f"unknown predictor {predictor}")
