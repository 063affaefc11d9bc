# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

# ASCII Encoding/Decoding Filters
#
# ASCIIHex and ASCII85. Whitespace is ignored on decode; both decoders stop
# at their EOD marker (">" and "~>") and tolerate a missing one.

import binascii

from ..core.error import CorruptStream
from .filter import FilterBase

_WHITESPACE = b' \t\n\r\f\x00'
_HEX_DIGITS = frozenset(b'0123456789abcdefABCDEF')


class ASCIIHexFilter(FilterBase):
    """ASCIIHexDecode - two hex digits per byte"""

    name = 'ASCIIHexDecode'

    def decode(self, data: bytes) -> bytes:
        end = data.find(b'>')
        if end >= 0:
            data = data[:end]

        digits = bytearray()
        for char in data:
            if char in _HEX_DIGITS:
                digits.append(char)
            elif char not in _WHITESPACE:
                raise CorruptStream(f"ASCIIHexDecode: invalid character {chr(char)!r}")

        # Odd number of digits: the final digit is followed by an implied 0
        if len(digits) % 2:
            digits.append(ord('0'))
        return binascii.unhexlify(bytes(digits))

    def encode(self, data: bytes) -> bytes:
        encoded = data.hex().upper().encode('ascii')
        lines = [encoded[i:i + 64] for i in range(0, len(encoded), 64)]
        return b'\n'.join(lines) + b'>'


class ASCII85Filter(FilterBase):
    """ASCII85Decode - four bytes per five base-85 digits"""

    name = 'ASCII85Decode'

    def decode(self, data: bytes) -> bytes:
        if data.startswith(b'<~'):
            data = data[2:]
        end = data.find(b'~>')
        if end >= 0:
            data = data[:end]

        result = bytearray()
        group: list[int] = []

        for char in data:
            if char in _WHITESPACE:
                continue

            # 'z' stands for four zero bytes, only between groups
            if char == 122:
                if group:
                    raise CorruptStream("ASCII85Decode: 'z' inside a group")
                result.extend(b'\x00\x00\x00\x00')
                continue

            # Valid digits are '!' (0) through 'u' (84)
            if not 33 <= char <= 117:
                raise CorruptStream(f"ASCII85Decode: invalid character {chr(char)!r}")

            group.append(char - 33)
            if len(group) == 5:
                result.extend(self._decode_group(group))
                group = []

        if group:
            # Partial final group must have at least 2 characters
            if len(group) == 1:
                raise CorruptStream("ASCII85Decode: final group has a single character")
            result.extend(self._decode_group(group))

        return bytes(result)

    @staticmethod
    def _decode_group(values: list[int]) -> bytes:
        """Decode up to five base-85 digits to len(values) - 1 bytes."""
        count = len(values)
        value = 0
        # Pad to 5 values with 84 ('u')
        for digit in values + [84] * (5 - count):
            value = value * 85 + digit

        if value > 0xFFFFFFFF:
            raise CorruptStream(f"ASCII85Decode: group value {value} exceeds 2^32-1")

        return value.to_bytes(4, 'big')[:count - 1]

    def encode(self, data: bytes) -> bytes:
        out = bytearray()
        for start in range(0, len(data), 4):
            chunk = data[start:start + 4]
            count = len(chunk)
            value = int.from_bytes(chunk + bytes(4 - count), 'big')

            if value == 0 and count == 4:
                out.append(122)  # 'z'
                continue

            digits = bytearray(5)
            for i in range(4, -1, -1):
                value, digits[i] = divmod(value, 85)
            out.extend(d + 33 for d in digits[:count + 1])

        lines = [bytes(out[i:i + 72]) for i in range(0, len(out), 72)]
        return b'\n'.join(lines) + b'~>'
