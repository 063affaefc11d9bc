# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

# CCITTFax Decode Filter
#
# Fax data is handed to Pillow's libtiff backend inside a one-strip TIFF.
# Encoding is not provided: fax data is only ever read from existing PDFs.

from __future__ import annotations

import io
import logging
import struct

from PIL import Image

from ..core.error import CorruptStream
from .filter import FilterBase

logger = logging.getLogger(__name__)

# TIFF compression for each K sign: Group 4, Modified Huffman, T.4
_COMPRESSION_FOR_K = {-1: 4, 0: 2, 1: 3}

# Row guess cap when /Rows is absent
_MAX_ESTIMATED_ROWS = 100000


class CCITTFaxFilter(FilterBase):
    """CCITTFaxDecode - Group 3 (1-D, 2-D) and Group 4 fax data.

    Parameters: K (<0 Group 4, 0 Group 3 1-D, >0 Group 3 2-D), Columns
    (default 1728), Rows (0 = unknown), EncodedByteAlign, BlackIs1.
    """

    name = 'CCITTFaxDecode'

    def decode(self, data: bytes) -> bytes:
        """Return packed 1-bit rows, 0 = black unless BlackIs1 is set."""
        if not data:
            return b''

        k = self.int_param('K', 0)
        columns = self.int_param('Columns', 1728)
        rows = self.int_param('Rows', 0)
        compression = _COMPRESSION_FOR_K[(k > 0) - (k < 0)]

        if rows > 0:
            attempts = [rows]
        else:
            guess = self._guess_rows(len(data), columns)
            attempts = [guess] + [max(1, guess // d) for d in (2, 4, 8)]

        failure = None
        for height in attempts:
            wrapped = self._wrap(data, columns, height, compression, k)
            try:
                img = Image.open(io.BytesIO(wrapped))
                img.load()
            except (OSError, ValueError) as e:
                logger.debug("CCITTFaxDecode: %d rows failed: %s", height, e)
                failure = e
                continue
            return self._packed_rows(img)

        raise CorruptStream(f"CCITTFaxDecode: {failure}") from failure

    def _packed_rows(self, img: Image.Image) -> bytes:
        # With WhiteIsZero wrapping Pillow's '1' mode packs white as 1,
        # which is already the BlackIs1=false polarity
        if img.mode != '1':
            img = img.convert('1')
        packed = img.tobytes()
        if self.param('BlackIs1', False) is True:
            packed = bytes(b ^ 0xFF for b in packed)
        return packed

    @staticmethod
    def _guess_rows(length: int, columns: int) -> int:
        """Height for unknown /Rows, assuming roughly 5:1 compression.

        libtiff stops at the end of the coded data, so overshooting is safe.
        """
        rows = length * 8 * 5 // max(1, columns)
        return min(max(1, rows), _MAX_ESTIMATED_ROWS)

    def _wrap(self, data: bytes, columns: int, rows: int, compression: int, k: int) -> bytes:
        """Single-IFD little-endian TIFF holding ``data`` as its only strip."""
        SHORT, LONG = 3, 4
        entries = {
            256: (LONG, columns),       # ImageWidth
            257: (LONG, rows),          # ImageLength
            258: (SHORT, 1),            # BitsPerSample
            259: (SHORT, compression),  # Compression
            262: (SHORT, 0),            # PhotometricInterpretation: WhiteIsZero
            266: (SHORT, 1),            # FillOrder
            277: (SHORT, 1),            # SamplesPerPixel
            278: (LONG, rows),          # RowsPerStrip
            279: (LONG, len(data)),     # StripByteCounts
        }
        if compression == 3:
            # T4Options bit 0: 2-D coding; bit 2: fill bits before EOL
            options = 1 if k > 0 else 0
            if self.param('EncodedByteAlign', False) is True:
                options |= 4
            entries[292] = (LONG, options)
        elif compression == 4:
            entries[293] = (LONG, 0)    # T6Options

        # StripOffsets points just past the IFD
        entries[273] = (LONG, 8 + 2 + 12 * (len(entries) + 1) + 4)

        ifd = bytearray(struct.pack('<H', len(entries)))
        for tag in sorted(entries):
            field_type, value = entries[tag]
            code = '<HHIH2x' if field_type == SHORT else '<HHII'
            ifd += struct.pack(code, tag, field_type, 1, value)
        ifd += struct.pack('<I', 0)

        return b'II' + struct.pack('<HI', 42, 8) + bytes(ifd) + data
