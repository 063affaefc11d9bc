# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

# Filter Implementation Base Class
#
# Every codec works on a whole in-memory buffer: decode() and encode() are
# pure functions of (params, data). The pipeline keeps no state between
# calls, so separate conversions can run on separate threads.

from typing import Any

from ..core.error import UnsupportedFilter


def _extract_param(params: dict | None, key: str, default: Any) -> Any:
    """Extract a parameter value from a DecodeParms dictionary."""
    if not params or key not in params:
        return default
    value = params[key]
    return default if value is None else value


class FilterBase:
    """Base class for all PDF stream filters"""

    name = "Filter"

    def __init__(self, params: dict | None = None) -> None:
        self.params = params or {}

    def param(self, key: str, default: Any) -> Any:
        return _extract_param(self.params, key, default)

    def int_param(self, key: str, default: int) -> int:
        value = self.param(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return int(value)

    def decode(self, data: bytes) -> bytes:
        """Undo this filter"""
        raise UnsupportedFilter(f"{self.name}: decoding is not supported")

    def encode(self, data: bytes) -> bytes:
        """Apply this filter"""
        raise UnsupportedFilter(f"{self.name}: encoding is not supported")
