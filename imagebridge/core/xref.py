# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PDF-side object model for image streams.

Objects are held as plain Python values: names are ``str`` without the
leading slash, numbers are ``int``/``float``, arrays are ``list``,
dictionaries are ``dict`` and strings are ``bytes``. Indirect references are
``IndirectRef`` keys into an arena owned by a resolver; they never own the
object they point at, so reference cycles elsewhere in a document are
harmless here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol

from ..filters.pipeline import FilterPipeline
from .error import InvalidImageObject, UnresolvedReference

logger = logging.getLogger(__name__)


class IndirectRef(NamedTuple):
    """Object number / generation pair, e.g. ``12 0 R``."""

    object_number: int
    generation: int = 0

    def __str__(self) -> str:
        return f"{self.object_number} {self.generation} R"


@dataclass
class ImageStreamObject:
    """A stream dictionary plus its still filter-encoded payload.

    Used for image XObjects and their soft masks; ICC profile and palette
    lookup streams referenced from a color space are carried the same way.
    """

    dictionary: dict[str, Any] = field(default_factory=dict)
    raw: bytes = b""

    def _int_entry(self, key: str) -> int:
        value = self.dictionary.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidImageObject(f"/{key} missing or not a number: {value!r}")
        if value != int(value) or value <= 0:
            raise InvalidImageObject(f"/{key} must be a positive integer: {value!r}")
        return int(value)

    @property
    def width(self) -> int:
        return self._int_entry("Width")

    @property
    def height(self) -> int:
        return self._int_entry("Height")

    @property
    def bits_per_component(self) -> int:
        if self.is_image_mask:
            return 1
        return self._int_entry("BitsPerComponent")

    @property
    def is_image_mask(self) -> bool:
        return self.dictionary.get("ImageMask") is True

    @property
    def pipeline(self) -> FilterPipeline:
        return FilterPipeline.from_stream_dict(self.dictionary)

    @property
    def smask_ref(self) -> IndirectRef | None:
        ref = self.dictionary.get("SMask")
        return ref if isinstance(ref, IndirectRef) else None

    def decoded(self) -> bytes:
        """Payload with the whole filter pipeline undone."""
        return self.pipeline.decode(self.raw)

    def __str__(self) -> str:
        entries = " ".join(f"/{k} {_format_value(v)}" for k, v in self.dictionary.items())
        return f"<<{entries}>> stream[{len(self.raw)} bytes]"


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return f"/{value}"
    if isinstance(value, list):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return "<<" + " ".join(f"/{k} {_format_value(v)}" for k, v in value.items()) + ">>"
    if isinstance(value, (bytes, bytearray)):
        return f"<{bytes(value[:16]).hex()}{'...' if len(value) > 16 else ''}>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ObjectResolver(Protocol):
    """Cross-reference collaborator used by the adapter."""

    def dereference(self, ref: IndirectRef) -> Any:
        ...

    def allocate(self, obj: Any) -> IndirectRef:
        ...


class XRefTable:
    """In-memory object arena keyed by IndirectRef.

    Owns every object it hands out a reference for. ``allocate`` always
    returns a fresh object number; generation numbers of new objects are 0.
    """

    def __init__(self, first_object_number: int = 1) -> None:
        self._objects: dict[IndirectRef, Any] = {}
        self._next_number = first_object_number

    def allocate(self, obj: Any) -> IndirectRef:
        ref = IndirectRef(self._next_number, 0)
        self._next_number += 1
        self._objects[ref] = obj
        logger.debug("allocated %s for %s", ref, type(obj).__name__)
        return ref

    def dereference(self, ref: IndirectRef) -> Any:
        try:
            return self._objects[ref]
        except KeyError:
            raise UnresolvedReference(f"no object for {ref}") from None

    def __contains__(self, ref: object) -> bool:
        return ref in self._objects

    def __len__(self) -> int:
        return len(self._objects)


def resolve(resolver: ObjectResolver | None, value: Any) -> Any:
    """Follow ``value`` if it is an IndirectRef, else return it unchanged."""
    if isinstance(value, IndirectRef):
        if resolver is None:
            raise UnresolvedReference(f"{value} cannot be resolved without a resolver")
        return resolver.dereference(value)
    return value
