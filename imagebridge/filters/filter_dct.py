# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

# JPEG/DCT Filters
#
# DCTDecode and its encoder, both through Pillow's JPEG plugin.

from __future__ import annotations

import io

from PIL import Image

from ..core import constants
from ..core.error import CorruptStream, UnsupportedColorSpace
from .filter import FilterBase

# Component count <-> Pillow mode
_MODES = {1: 'L', 3: 'RGB', 4: 'CMYK'}
_COLORS = {'L': 1, 'RGB': 3, 'CMYK': 4}


class DCTFilter(FilterBase):
    """DCTDecode filter - baseline and progressive JPEG"""

    name = 'DCTDecode'

    def decode(self, data: bytes) -> bytes:
        """Decode JPEG data to interleaved 8-bit samples"""
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (OSError, ValueError, SyntaxError) as e:
            raise CorruptStream(f"DCTDecode: {e}") from e

        if img.mode not in _COLORS:
            # e.g. 'I;16' or 'P' from unusual producers
            img = img.convert('RGB')
        return img.tobytes()

    def encode(self, data: bytes) -> bytes:
        """Encode interleaved 8-bit samples; needs Columns, Rows and Colors"""
        columns = self.int_param('Columns', 0)
        rows = self.int_param('Rows', 0)
        colors = self.int_param('Colors', 3)
        quality = self.int_param('Quality', constants.JPEG_QUALITY)

        mode = _MODES.get(colors)
        if mode is None:
            raise UnsupportedColorSpace(f"DCTEncode: {colors} colors")
        if columns <= 0 or rows <= 0:
            raise CorruptStream("DCTEncode: Columns and Rows are required")
        if len(data) < columns * rows * colors:
            raise CorruptStream(
                f"DCTEncode: {len(data)} bytes for {columns}x{rows}x{colors} samples")

        img = Image.frombytes(mode, (columns, rows), bytes(data[:columns * rows * colors]))
        out = io.BytesIO()
        img.save(out, format='JPEG', quality=quality)
        return out.getvalue()


def jpeg_info(data: bytes) -> tuple[int, int, int]:
    """Return (width, height, colors) of a JPEG without decoding it."""
    try:
        img = Image.open(io.BytesIO(data))
    except (OSError, ValueError, SyntaxError) as e:
        raise CorruptStream(f"DCTDecode: {e}") from e
    if img.format != 'JPEG':
        raise CorruptStream(f"DCTDecode: not a JPEG ({img.format})")
    colors = _COLORS.get(img.mode)
    if colors is None:
        raise UnsupportedColorSpace(f"JPEG mode {img.mode}")
    return img.width, img.height, colors
