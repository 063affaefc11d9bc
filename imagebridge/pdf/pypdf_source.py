# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
pypdf-backed object resolver.

Connects the bridge to real PDF files: pypdf objects are converted to the
plain Python values the bridge works on, references are resolved through a
PdfReader, and image streams are written back into a PdfWriter the same way
streams are added elsewhere (raw ``_data`` plus ``writer._add_object``).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Iterator

from pypdf import PdfReader, PdfWriter
from pypdf.generic import (
    ArrayObject,
    BooleanObject,
    ByteStringObject,
    DictionaryObject,
    FloatObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    StreamObject,
    TextStringObject,
)

from ..core.dispatch import write_image
from ..core.error import UnresolvedReference
from ..core.xref import ImageStreamObject, IndirectRef, XRefTable

logger = logging.getLogger(__name__)

# Suppress noisy "Multiple definitions in dictionary" warnings from pypdf
logging.getLogger('pypdf').setLevel(logging.ERROR)


def _name(value: str) -> str:
    return value[1:] if value.startswith('/') else value


def to_python(value: Any) -> Any:
    """Convert a pypdf object to the bridge's plain value model."""
    if isinstance(value, IndirectObject):
        return IndirectRef(value.idnum, value.generation)
    if isinstance(value, StreamObject):
        return image_from_pypdf(value)
    if isinstance(value, DictionaryObject):
        return {_name(k): to_python(v) for k, v in value.items()}
    if isinstance(value, ArrayObject):
        return [to_python(v) for v in value]
    if isinstance(value, BooleanObject):
        return bool(value.value)
    if isinstance(value, NullObject):
        return None
    if isinstance(value, NameObject):
        return _name(value)
    if isinstance(value, ByteStringObject):
        return bytes(value)
    if isinstance(value, TextStringObject):
        # Palette lookups are binary strings that pypdf may have decoded as text
        return bytes(value.original_bytes)
    if isinstance(value, NumberObject):
        return int(value)
    if isinstance(value, FloatObject):
        return float(value)
    return value


def image_from_pypdf(stream: StreamObject) -> ImageStreamObject:
    """Wrap a pypdf stream, keeping its payload still filter-encoded."""
    dictionary = {_name(k): to_python(v) for k, v in stream.items()}
    dictionary.pop('Length', None)
    return ImageStreamObject(dictionary, bytes(stream._data))


class PdfObjectResolver:
    """ObjectResolver over a PdfReader.

    Dereferencing reads from the document; allocations go to an overlay
    arena numbered after the document's last object, so the reader is
    never modified.
    """

    def __init__(self, reader: PdfReader) -> None:
        self.reader = reader
        size = reader.trailer.get('/Size', 1)
        self.overlay = XRefTable(first_object_number=int(size))

    def dereference(self, ref: IndirectRef) -> Any:
        if ref in self.overlay:
            return self.overlay.dereference(ref)
        obj = self.reader.get_object(IndirectObject(ref.object_number, ref.generation, self.reader))
        if obj is None or isinstance(obj, NullObject):
            raise UnresolvedReference(f"no object for {ref}")
        return to_python(obj)

    def allocate(self, obj: Any) -> IndirectRef:
        return self.overlay.allocate(obj)


def iter_page_images(reader: PdfReader) -> Iterator[tuple[int, str, IndirectRef | None, ImageStreamObject]]:
    """Yield (page number, XObject name, reference, image) for every page image."""
    for page_number, page in enumerate(reader.pages, start=1):
        resources = page.get('/Resources')
        resources = resources.get_object() if resources is not None else None
        if not resources or '/XObject' not in resources:
            continue
        xobjects = resources['/XObject'].get_object()
        for name in xobjects:
            raw = xobjects.raw_get(name)
            obj = raw.get_object()
            if not isinstance(obj, StreamObject) or obj.get('/Subtype') != '/Image':
                continue
            ref = IndirectRef(raw.idnum, raw.generation) if isinstance(raw, IndirectObject) else None
            yield page_number, _name(name), ref, image_from_pypdf(obj)


def extract_images(pdf_path: str, out_dir: str) -> list[str]:
    """Write every page image of a PDF into ``out_dir``; return the paths."""
    reader = PdfReader(pdf_path)
    resolver = PdfObjectResolver(reader)
    os.makedirs(out_dir, exist_ok=True)

    paths = []
    for page_number, name, _ref, image in iter_page_images(reader):
        file_name = os.path.join(out_dir, f"page{page_number}_{name}")
        paths.append(write_image(resolver, file_name, image))
    logger.info("extracted %d images from %s", len(paths), pdf_path)
    return paths


def _to_pypdf(value: Any, writer: PdfWriter, resolver, added: dict) -> Any:
    if isinstance(value, IndirectRef):
        if value not in added:
            if resolver is None:
                raise UnresolvedReference(f"{value} cannot be resolved without a resolver")
            target = resolver.dereference(value)
            if isinstance(target, ImageStreamObject):
                added[value] = _add_stream(target, writer, resolver, added)
            else:
                added[value] = writer._add_object(_to_pypdf(target, writer, resolver, added))
        return added[value]
    if isinstance(value, ImageStreamObject):
        return _add_stream(value, writer, resolver, added)
    if isinstance(value, bool):
        return BooleanObject(value)
    if isinstance(value, int):
        return NumberObject(value)
    if isinstance(value, float):
        return FloatObject(value)
    if isinstance(value, str):
        return NameObject('/' + value)
    if isinstance(value, (bytes, bytearray)):
        return ByteStringObject(bytes(value))
    if isinstance(value, list):
        return ArrayObject(_to_pypdf(v, writer, resolver, added) for v in value)
    if isinstance(value, dict):
        d = DictionaryObject()
        for k, v in value.items():
            d[NameObject('/' + k)] = _to_pypdf(v, writer, resolver, added)
        return d
    if value is None:
        return NullObject()
    raise TypeError(f"cannot convert {type(value).__name__} to a PDF object")


def _add_stream(stream: ImageStreamObject, writer: PdfWriter, resolver, added: dict) -> IndirectObject:
    pdf_stream = StreamObject()
    pdf_stream._data = stream.raw
    for key, value in stream.dictionary.items():
        pdf_stream[NameObject('/' + key)] = _to_pypdf(value, writer, resolver, added)
    pdf_stream[NameObject('/Length')] = NumberObject(len(stream.raw))
    return writer._add_object(pdf_stream)


def embed_image(writer: PdfWriter, stream: ImageStreamObject, resolver=None) -> IndirectObject:
    """Add an image XObject (and its SMask) to a PdfWriter."""
    return _add_stream(stream, writer, resolver, {})
