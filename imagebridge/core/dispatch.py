# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Format Dispatcher

Picks the container for each direction of the bridge and holds the thin
file-system helpers.

PDF -> file:
    * a DCTDecode-only image without a soft mask, in a 1 or 3 component
      space and with no Decode inversion, is written as the JPEG it already is
    * any other image with 4 color components is written as TIFF
    * everything else is written as PNG

file -> PDF:
    * JPEG input is embedded as-is with a DCTDecode filter
    * PNG and TIFF input is decoded and re-encoded with FlateDecode
"""

from __future__ import annotations

import logging
import os
from enum import Enum

from . import color_space as cs
from . import constants
from .adapter import from_container, from_jpeg, image_color_space, to_container
from .error import UnsupportedColorSpace, UnsupportedImageFormat
from .xref import ImageStreamObject, ObjectResolver, resolve
from ..containers.png import PNG_SIGNATURE, read_png, write_png
from ..containers.tiff import read_tiff, write_tiff
from ..filters.pipeline import FilterName, FilterPipeline

logger = logging.getLogger(__name__)


class ContainerFormat(Enum):
    PNG = "PNG"
    TIFF = "TIFF"
    JPEG = "JPEG"

    @property
    def extension(self) -> str:
        return {
            ContainerFormat.PNG: constants.PNG_EXTENSION,
            ContainerFormat.TIFF: constants.TIFF_EXTENSION,
            ContainerFormat.JPEG: constants.JPEG_EXTENSION,
        }[self]


def choose_container(space: cs.ColorSpace) -> ContainerFormat:
    """PNG for 1 and 3 color components, TIFF for 4."""
    if isinstance(space, cs.IndexedColorSpace):
        space = space.base
    n = cs.component_count(space)
    if n == 4:
        return ContainerFormat.TIFF
    if n in (1, 3):
        return ContainerFormat.PNG
    raise UnsupportedColorSpace(f"no container for {n}-component color space {space}")


def _is_passthrough_jpeg(stream: ImageStreamObject, space: cs.ColorSpace,
                         resolver: ObjectResolver | None) -> bool:
    pipeline = FilterPipeline.from_stream_dict(stream.dictionary, resolver)
    if pipeline.names != (FilterName.DCT,):
        return False
    if "SMask" in stream.dictionary or isinstance(space, cs.IndexedColorSpace):
        return False
    if cs.component_count(space) not in (1, 3):
        return False
    decode = resolve(resolver, stream.dictionary.get("Decode"))
    return decode is None or decode == cs.default_decode(space, 8)


def choose_output(stream: ImageStreamObject, resolver: ObjectResolver | None = None) -> ContainerFormat:
    """Container an image XObject is written to."""
    space = image_color_space(stream, resolver)
    if _is_passthrough_jpeg(stream, space, resolver):
        return ContainerFormat.JPEG
    return choose_container(space)


def choose_ingest_strategy(data: bytes) -> ContainerFormat:
    """Detect the container of an input file from its leading bytes."""
    if data.startswith(PNG_SIGNATURE):
        return ContainerFormat.PNG
    if data[:4] in (b"II*\x00", b"MM\x00*"):
        return ContainerFormat.TIFF
    if data[:3] == b"\xff\xd8\xff":
        return ContainerFormat.JPEG
    raise UnsupportedImageFormat(f"unrecognized image data starting {data[:8]!r}")


def render_image(stream: ImageStreamObject, resolver: ObjectResolver | None = None) -> tuple[ContainerFormat, bytes]:
    """Serialize an image XObject to container bytes."""
    fmt = choose_output(stream, resolver)
    logger.debug("image %dx%d -> %s", stream.width, stream.height, fmt.value)
    if fmt is ContainerFormat.JPEG:
        return fmt, stream.raw

    raster = to_container(stream, resolver)
    if fmt is ContainerFormat.TIFF:
        return fmt, write_tiff(raster)
    return fmt, write_png(raster)


def output_path(file_name: str, fmt: ContainerFormat) -> str:
    """``file_name`` with any image extension replaced by the one for ``fmt``."""
    root, ext = os.path.splitext(file_name)
    if ext.lower() in constants.KNOWN_IMAGE_EXTENSIONS:
        file_name = root
    return file_name + fmt.extension


def write_image(resolver: ObjectResolver | None, file_name: str, stream: ImageStreamObject) -> str:
    """Write an image XObject to disk and return the path written.

    The bytes are produced before the file is opened, so a failed
    conversion leaves nothing behind.
    """
    fmt, data = render_image(stream, resolver)
    path = output_path(file_name, fmt)
    with open(path, "wb") as f:
        f.write(data)
    logger.info("wrote %s (%d bytes)", path, len(data))
    return path


def read_image(data: bytes, resolver: ObjectResolver | None = None) -> ImageStreamObject:
    """Build an image XObject from PNG, TIFF or JPEG bytes."""
    fmt = choose_ingest_strategy(data)
    logger.debug("ingesting %s (%d bytes)", fmt.value, len(data))
    if fmt is ContainerFormat.JPEG:
        return from_jpeg(data)
    if fmt is ContainerFormat.TIFF:
        return from_container(read_tiff(data), resolver)
    return from_container(read_png(data), resolver)


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def read_image_file(resolver: ObjectResolver | None, path: str) -> ImageStreamObject:
    return read_image(_read_file(path), resolver)


def read_png_file(resolver: ObjectResolver | None, path: str) -> ImageStreamObject:
    return from_container(read_png(_read_file(path)), resolver)


def read_tiff_file(resolver: ObjectResolver | None, path: str) -> ImageStreamObject:
    return from_container(read_tiff(_read_file(path)), resolver)
