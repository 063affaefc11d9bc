# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Object Model Adapter

Moves an image between the PDF object model and the container model:

    to_container    ImageStreamObject (+ resolver) -> RasterImage
    from_container  RasterImage (+ resolver)       -> ImageStreamObject
    from_jpeg       JPEG bytes                     -> DCTDecode ImageStreamObject

Only the SMask edge of an image is followed (plus the references needed to
read its color space); an SMask entry on a soft mask itself is ignored.
"""

from __future__ import annotations

import logging

import numpy as np

from . import color_space as cs
from . import constants
from .error import (
    ImageBridgeError,
    InvalidImageObject,
    SoftMaskError,
    UnresolvedReference,
    UnsupportedColorSpace,
)
from .raster import RasterImage, check_image_size
from .sample_transform import clamp_indices, pack, representable, unpack, unpack_indices
from .soft_mask import merge_alpha, split_alpha
from .xref import ImageStreamObject, ObjectResolver, resolve
from ..filters.filter_dct import jpeg_info
from ..filters.pipeline import FilterName, FilterPipeline

logger = logging.getLogger(__name__)


def _geometry(stream: ImageStreamObject) -> tuple[int, int, int]:
    width, height = stream.width, stream.height
    bpc = stream.bits_per_component
    if bpc not in constants.VALID_BITS_PER_COMPONENT:
        raise InvalidImageObject(f"/BitsPerComponent {bpc} is not 1, 2, 4, 8 or 16")
    check_image_size(width, height)
    return width, height, bpc


def image_color_space(stream: ImageStreamObject, resolver: ObjectResolver | None = None) -> cs.ColorSpace:
    """The color space an image's samples are in (stencil masks read as gray)."""
    if stream.is_image_mask:
        return cs.DEVICE_GRAY
    if "ColorSpace" not in stream.dictionary:
        raise InvalidImageObject("image has no /ColorSpace")
    return cs.parse(stream.dictionary["ColorSpace"], resolver)


def _decode_array(stream: ImageStreamObject, resolver: ObjectResolver | None) -> list[float] | None:
    decode = resolve(resolver, stream.dictionary.get("Decode"))
    if decode is None:
        return None
    if not isinstance(decode, list) or not all(
            isinstance(v, (int, float)) and not isinstance(v, bool) for v in decode):
        raise InvalidImageObject(f"invalid /Decode {decode!r}")
    return decode


def _decode_samples(stream: ImageStreamObject, resolver: ObjectResolver | None,
                    keep_palette: bool = True) -> RasterImage:
    """Decoded pixels of one image stream, without its soft mask."""
    width, height, bpc = _geometry(stream)
    space = image_color_space(stream, resolver)
    decode = _decode_array(stream, resolver)

    pipeline = FilterPipeline.from_stream_dict(stream.dictionary, resolver)
    data = pipeline.decode(stream.raw)

    # DCT data is always 8 bits per component regardless of the dictionary
    if FilterName.DCT in pipeline.names:
        bpc = 8

    if isinstance(space, cs.IndexedColorSpace):
        base_channels = cs.component_count(space.base)
        if keep_palette and base_channels in (1, 3) and bpc <= 8:
            indices = np.frombuffer(unpack_indices(data, width, height, bpc, decode), dtype=np.uint8)
            indices = clamp_indices(indices, space.hival)
            lookup = np.frombuffer(space.lookup, dtype=np.uint8).reshape(-1, base_channels)
            if base_channels == 1:
                lookup = np.repeat(lookup, 3, axis=1)
            return RasterImage(width, height, 1, indices.tobytes(), None,
                               lookup.tobytes(), bits_per_component=bpc)
        return unpack(data, width, height, bpc, 1, decode, indexed=space)

    return unpack(data, width, height, bpc, cs.component_count(space), decode)


def _decode_soft_mask(stream: ImageStreamObject, resolver: ObjectResolver | None) -> RasterImage:
    ref = stream.smask_ref
    mask = resolve(resolver, ref)
    if not isinstance(mask, ImageStreamObject):
        raise InvalidImageObject(f"SMask {ref} is not a stream")

    space = image_color_space(mask, resolver)
    if cs.component_count(space) != 1 or isinstance(space, cs.IndexedColorSpace):
        raise UnsupportedColorSpace(f"soft mask color space {space} is not DeviceGray")
    if "SMask" in mask.dictionary:
        logger.debug("nested SMask on %s ignored", ref)

    return _decode_samples(mask, resolver, keep_palette=False)


def to_container(stream: ImageStreamObject, resolver: ObjectResolver | None = None) -> RasterImage:
    """Decode an image XObject (and its SMask) into a RasterImage."""
    raster = _decode_samples(stream, resolver)

    if stream.smask_ref is None:
        return raster

    try:
        mask = _decode_soft_mask(stream, resolver)
        return merge_alpha(raster, mask)
    except SoftMaskError:
        raise
    except ImageBridgeError as e:
        raise SoftMaskError(f"soft mask {stream.smask_ref}: {e}") from e


def _target_depth(raster: RasterImage) -> int:
    depth = raster.bits_per_component
    if raster.palette is not None:
        if depth > 8 or (raster.samples and max(raster.samples) >= 1 << depth):
            return 8
        return depth
    return depth if representable(raster.samples, depth) else 8


def _flate_stream(dictionary: dict, data: bytes) -> ImageStreamObject:
    pipeline = FilterPipeline.of(FilterName.FLATE)
    dictionary.update(pipeline.to_stream_dict_entries())
    return ImageStreamObject(dictionary, pipeline.encode(data))


def _image_dictionary(width: int, height: int, space, depth: int, decode: list[float]) -> dict:
    return {
        "Type": "XObject",
        "Subtype": "Image",
        "Width": width,
        "Height": height,
        "ColorSpace": cs.to_pdf_object(space),
        "BitsPerComponent": depth,
        "Decode": decode,
    }


def from_container(raster: RasterImage, resolver: ObjectResolver | None = None) -> ImageStreamObject:
    """Build a Flate-encoded image XObject from a RasterImage.

    Alpha becomes a separate DeviceGray soft mask allocated through
    ``resolver`` and referenced from the image's ``/SMask`` entry.
    """
    color, mask = split_alpha(raster)

    if color.palette is not None:
        space = cs.IndexedColorSpace(cs.DEVICE_RGB, color.palette_size - 1, color.palette)
    else:
        space = cs.device_space_for(color.channels)

    depth = _target_depth(color)
    data, decode = pack(color, depth)
    image = _flate_stream(_image_dictionary(color.width, color.height, space, depth, decode), data)

    if mask is not None:
        if resolver is None:
            raise UnresolvedReference("a resolver is needed to allocate the soft mask")
        mask_data, mask_decode = pack(mask, 8)
        mask_stream = _flate_stream(
            _image_dictionary(mask.width, mask.height, cs.DEVICE_GRAY, 8, mask_decode), mask_data)
        image.dictionary["SMask"] = resolver.allocate(mask_stream)

    logger.debug("built %s image %dx%d at %d bpc", space, raster.width, raster.height, depth)
    return image


def from_jpeg(data: bytes) -> ImageStreamObject:
    """Wrap JPEG bytes unchanged as a DCTDecode image XObject."""
    width, height, colors = jpeg_info(data)
    check_image_size(width, height)
    space = cs.device_space_for(colors)
    dictionary = _image_dictionary(width, height, space, 8, cs.default_decode(space, 8))
    dictionary.update(FilterPipeline.of(FilterName.DCT).to_stream_dict_entries())
    return ImageStreamObject(dictionary, bytes(data))
