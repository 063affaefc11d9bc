# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Filter Pipeline Runner

A stream's ``/Filter`` entry names an ordered chain of codecs. Decoding
applies them first to last; encoding applies them last to first, so that
``decode(encode(x)) == x`` for every invertible chain. An empty pipeline
passes the payload through unchanged.

The set of filters is closed: ``FilterName`` lists every name the bridge
recognizes and ``_FILTER_CLASSES`` maps the implemented ones to a codec.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.error import UnsupportedFilter
from .filter import FilterBase
from .filter_ascii import ASCII85Filter, ASCIIHexFilter
from .filter_ccitt import CCITTFaxFilter
from .filter_compression import FlateFilter, LZWFilter, RunLengthFilter
from .filter_dct import DCTFilter

logger = logging.getLogger(__name__)


class FilterName(str, Enum):
    FLATE = "FlateDecode"
    LZW = "LZWDecode"
    RUN_LENGTH = "RunLengthDecode"
    ASCII_HEX = "ASCIIHexDecode"
    ASCII_85 = "ASCII85Decode"
    DCT = "DCTDecode"
    CCITT_FAX = "CCITTFaxDecode"
    JPX = "JPXDecode"
    JBIG2 = "JBIG2Decode"
    CRYPT = "Crypt"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: Any) -> FilterName:
        """Look up a filter by full or abbreviated (inline image) name."""
        if isinstance(name, FilterName):
            return name
        if isinstance(name, str):
            name = _ABBREVIATIONS.get(name, name)
            try:
                return cls(name)
            except ValueError:
                pass
        raise UnsupportedFilter(f"unknown filter {name!r}")


_ABBREVIATIONS = {
    "Fl": "FlateDecode",
    "LZW": "LZWDecode",
    "RL": "RunLengthDecode",
    "AHx": "ASCIIHexDecode",
    "A85": "ASCII85Decode",
    "DCT": "DCTDecode",
    "CCF": "CCITTFaxDecode",
}

_FILTER_CLASSES: dict[FilterName, type[FilterBase]] = {
    FilterName.FLATE: FlateFilter,
    FilterName.LZW: LZWFilter,
    FilterName.RUN_LENGTH: RunLengthFilter,
    FilterName.ASCII_HEX: ASCIIHexFilter,
    FilterName.ASCII_85: ASCII85Filter,
    FilterName.DCT: DCTFilter,
    FilterName.CCITT_FAX: CCITTFaxFilter,
}


def apply_filter(name: FilterName | str, params: dict | None, data: bytes,
                 encode: bool = False) -> bytes:
    """Run one codec over a whole buffer."""
    filter_name = FilterName.parse(name)
    filter_class = _FILTER_CLASSES.get(filter_name)
    if filter_class is None:
        raise UnsupportedFilter(f"{filter_name} is not implemented")
    codec = filter_class(params)
    return codec.encode(data) if encode else codec.decode(data)


@dataclass(frozen=True)
class FilterStep:
    name: FilterName
    params: dict = field(default_factory=dict)


@dataclass(frozen=True)
class FilterPipeline:
    steps: tuple[FilterStep, ...] = ()

    @classmethod
    def of(cls, *names: FilterName | str, params: dict | None = None) -> FilterPipeline:
        """Build a pipeline from names, giving every step the same params."""
        return cls(tuple(FilterStep(FilterName.parse(n), dict(params or {})) for n in names))

    @classmethod
    def from_stream_dict(cls, dictionary: dict, resolver=None) -> FilterPipeline:
        """Read ``/Filter`` and ``/DecodeParms`` (single value or arrays)."""
        from ..core.xref import resolve

        filters = resolve(resolver, dictionary.get("Filter"))
        if filters is None:
            return cls()
        if not isinstance(filters, list):
            filters = [filters]
        filters = [resolve(resolver, f) for f in filters]

        parms = resolve(resolver, dictionary.get("DecodeParms", dictionary.get("DP")))
        if not isinstance(parms, list):
            parms = [parms]

        steps = []
        for i, name in enumerate(filters):
            step_params = resolve(resolver, parms[i]) if i < len(parms) else None
            if not isinstance(step_params, dict):
                step_params = {}
            steps.append(FilterStep(FilterName.parse(name), dict(step_params)))
        return cls(tuple(steps))

    def to_stream_dict_entries(self) -> dict[str, Any]:
        """``/Filter`` and (when any step has params) ``/DecodeParms``."""
        if not self.steps:
            return {}
        names = [step.name.value for step in self.steps]
        entries: dict[str, Any] = {"Filter": names[0] if len(names) == 1 else names}
        if any(step.params for step in self.steps):
            parms = [dict(step.params) if step.params else None for step in self.steps]
            entries["DecodeParms"] = parms[0] if len(parms) == 1 else parms
        return entries

    @property
    def names(self) -> tuple[FilterName, ...]:
        return tuple(step.name for step in self.steps)

    def decode(self, data: bytes) -> bytes:
        for step in self.steps:
            before = len(data)
            data = apply_filter(step.name, step.params, data)
            logger.debug("%s: %d -> %d bytes", step.name, before, len(data))
        return data

    def encode(self, data: bytes) -> bytes:
        for step in reversed(self.steps):
            before = len(data)
            data = apply_filter(step.name, step.params, data, encode=True)
            logger.debug("%s (encode): %d -> %d bytes", step.name, before, len(data))
        return data

    def __len__(self) -> int:
        return len(self.steps)

    def __str__(self) -> str:
        return "[" + " ".join(f"/{name}" for name in self.names) + "]"
