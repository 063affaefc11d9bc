# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

# Compression Filters - RunLength, LZW and Flate
#
# Whole-buffer versions of the PDF compression filters. Flate and LZW both
# accept the predictor parameters (Predictor, Colors, BitsPerComponent,
# Columns) from the stream's DecodeParms.

import logging
import zlib

from ..core import constants
from ..core.error import CorruptStream
from .filter import FilterBase
from .predictor import decode_predictor, encode_predictor

logger = logging.getLogger(__name__)


class _PredictorMixin:
    """Reads the predictor entries shared by Flate and LZW."""

    def _predictor_args(self) -> tuple[int, dict]:
        predictor = self.int_param('Predictor', 1)
        geometry = {
            'colors': self.int_param('Colors', 1),
            'bits_per_component': self.int_param('BitsPerComponent', 8),
            'columns': self.int_param('Columns', 1),
        }
        return predictor, geometry

    def _undo_predictor(self, data: bytes) -> bytes:
        predictor, geometry = self._predictor_args()
        return decode_predictor(data, predictor, **geometry)

    def _apply_predictor(self, data: bytes) -> bytes:
        predictor, geometry = self._predictor_args()
        return encode_predictor(data, predictor, **geometry)


class RunLengthFilter(FilterBase):
    """RunLengthDecode - byte-oriented run-length compression"""

    name = 'RunLengthDecode'

    def decode(self, data: bytes) -> bytes:
        result = bytearray()
        i = 0
        n = len(data)
        while i < n:
            length_byte = data[i]
            i += 1

            # Length 128 indicates EOD
            if length_byte == 128:
                break

            # Length 0-127 = literal copy (length+1) bytes
            if length_byte <= 127:
                count = length_byte + 1
                result.extend(data[i:i + count])
                i += count

            # Length 129-255 = replicate next byte (257-length) times
            else:
                if i >= n:
                    break
                result.extend(bytes([data[i]]) * (257 - length_byte))
                i += 1

        return bytes(result)

    def encode(self, data: bytes) -> bytes:
        encoded = bytearray()
        i = 0
        n = len(data)

        while i < n:
            # Count consecutive identical bytes (max 128)
            run_length = 1
            current_byte = data[i]
            max_run = min(128, n - i)
            while run_length < max_run and data[i + run_length] == current_byte:
                run_length += 1

            if run_length >= 3:  # Use run-length encoding for 3+ identical bytes
                encoded.extend([257 - run_length, current_byte])
                i += run_length
                continue

            # Collect literal bytes up to the next run of 3+
            literal_start = i
            max_literal = min(128, n - i)
            literal_count = 0
            while literal_count < max_literal:
                j = i + literal_count
                if j + 2 < n and data[j] == data[j + 1] == data[j + 2]:
                    break
                literal_count += 1

            encoded.append(literal_count - 1)
            encoded.extend(data[literal_start:literal_start + literal_count])
            i += literal_count

        encoded.append(128)
        return bytes(encoded)


class LZWFilter(_PredictorMixin, FilterBase):
    """LZWDecode - Lempel-Ziv-Welch, 9 to 12 bit codes, high-order bit first"""

    name = 'LZWDecode'

    CLEAR_CODE = 256
    EOD_CODE = 257
    FIRST_CODE = 258
    MAX_CODE_LENGTH = 12

    @property
    def early_change(self) -> int:
        return 1 if self.int_param('EarlyChange', 1) else 0

    def decode(self, data: bytes) -> bytes:
        return self._undo_predictor(self._decode_codes(data))

    def encode(self, data: bytes) -> bytes:
        return self._encode_codes(self._apply_predictor(data))

    def _decode_codes(self, data: bytes) -> bytes:
        early_change = self.early_change
        result = bytearray()

        table: list[bytes] = [bytes([i]) for i in range(256)] + [b'', b'']
        code_length = 9
        previous: bytes | None = None

        bit_buffer = 0
        bits_available = 0
        pos = 0
        n = len(data)

        while True:
            # Need enough bits for current code length
            while bits_available < code_length and pos < n:
                bit_buffer = (bit_buffer << 8) | data[pos]
                pos += 1
                bits_available += 8
            if bits_available < code_length:
                raise CorruptStream(
                    f"LZWDecode: code stream truncated after {len(result)} bytes, no EOD")

            shift = bits_available - code_length
            code = bit_buffer >> shift
            bit_buffer &= (1 << shift) - 1
            bits_available = shift

            if code == self.CLEAR_CODE:
                del table[self.FIRST_CODE:]
                code_length = 9
                previous = None
                continue
            if code == self.EOD_CODE:
                break

            if code < len(table):
                string = table[code]
            elif code == len(table) and previous is not None:
                # Special case: code refers to the string about to be created
                string = previous + previous[:1]
            else:
                raise CorruptStream(f"LZWDecode: invalid code {code} at byte {pos}")

            result.extend(string)

            if previous is not None and len(table) < 4096:
                table.append(previous + string[:1])
                if (code_length < self.MAX_CODE_LENGTH and
                        len(table) + early_change >= 1 << code_length):
                    code_length += 1
            previous = string

        return bytes(result)

    def _encode_codes(self, data: bytes) -> bytes:
        early_change = self.early_change
        output = bytearray()
        bit_buffer = 0
        bits_used = 0

        def write_code(code: int, length: int) -> None:
            nonlocal bit_buffer, bits_used
            bit_buffer = (bit_buffer << length) | code
            bits_used += length
            while bits_used >= 8:
                bits_used -= 8
                output.append((bit_buffer >> bits_used) & 0xFF)
            bit_buffer &= (1 << bits_used) - 1

        def fresh_table() -> dict[bytes, int]:
            return {bytes([i]): i for i in range(256)}

        table = fresh_table()
        next_code = self.FIRST_CODE
        code_length = 9
        write_code(self.CLEAR_CODE, code_length)

        w = b''
        for byte in data:
            wc = w + bytes([byte])
            if wc in table:
                w = wc
                continue

            write_code(table[w], code_length)
            table[wc] = next_code
            next_code += 1

            # The decoder adds its entry one code later than we do
            if (code_length < self.MAX_CODE_LENGTH and
                    next_code + early_change - 1 >= 1 << code_length):
                code_length += 1

            if next_code >= 4094:
                # Table full - issue clear-table code and reset
                write_code(self.CLEAR_CODE, code_length)
                table = fresh_table()
                next_code = self.FIRST_CODE
                code_length = 9

            w = bytes([byte])

        if w:
            write_code(table[w], code_length)
            next_code += 1
            if (code_length < self.MAX_CODE_LENGTH and
                    next_code + early_change - 1 >= 1 << code_length):
                code_length += 1

        write_code(self.EOD_CODE, code_length)

        # Flush remaining bits (pad with zeros)
        if bits_used > 0:
            output.append((bit_buffer << (8 - bits_used)) & 0xFF)
        return bytes(output)


class FlateFilter(_PredictorMixin, FilterBase):
    """FlateDecode - zlib/deflate compression with optional predictors"""

    name = 'FlateDecode'

    def decode(self, data: bytes) -> bytes:
        decompressor = zlib.decompressobj()
        try:
            inflated = decompressor.decompress(data)
            inflated += decompressor.flush()
        except zlib.error as e:
            raise CorruptStream(f"FlateDecode: {e}") from e

        if not decompressor.eof:
            raise CorruptStream(
                f"FlateDecode: stream truncated after {len(inflated)} bytes")
        if decompressor.unused_data:
            logger.debug("FlateDecode: ignoring %d bytes after end of stream",
                         len(decompressor.unused_data))

        return self._undo_predictor(inflated)

    def encode(self, data: bytes) -> bytes:
        level = self.int_param('Level', constants.FLATE_LEVEL)
        return zlib.compress(self._apply_predictor(data), level)
