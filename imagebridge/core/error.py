# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Error taxonomy for the image bridge.

Every component raises one of these instead of recovering locally. Nothing
is retried: malformed binary input is not a transient condition.

Groups:
    codec level        CorruptStream, UnsupportedFilter
    geometry           DimensionMismatch, MaskDimensionMismatch, ImageTooLarge
    color              UnsupportedColorSpace
    detection          UnsupportedImageFormat
    PNG container      InvalidPNGSignature, CorruptChunk,
                       UnsupportedPNGColorType, UnsupportedPNGInterlace
    TIFF container     InvalidTIFFHeader, MissingRequiredTag,
                       UnsupportedTIFFCompression
    object model       InvalidImageObject, UnresolvedReference
    soft mask          SoftMaskError (wraps anything raised for the mask)
"""

from __future__ import annotations


class ImageBridgeError(Exception):
    """Base class for all image bridge failures."""


# codec level

class CorruptStream(ImageBridgeError):
    """A codec signalled malformed input (bad deflate data, invalid LZW code)."""


class UnsupportedFilter(ImageBridgeError):
    """Filter name is unknown, or known but not implemented in that direction."""


# geometry

class DimensionMismatch(ImageBridgeError):
    """Declared geometry disagrees with the amount of sample data."""


class ImageTooLarge(ImageBridgeError):
    """Declared geometry exceeds MAX_IMAGE_PIXELS."""


# color

class UnsupportedColorSpace(ImageBridgeError):
    """Color space (or channel count) the bridge cannot represent."""


# container detection

class UnsupportedImageFormat(ImageBridgeError):
    """Input is neither PNG, TIFF nor JPEG."""


# PNG container

class InvalidPNGSignature(ImageBridgeError):
    """Data does not start with the 8-byte PNG signature."""


class CorruptChunk(ImageBridgeError):
    """Truncated chunk, bad CRC or malformed critical chunk."""


class UnsupportedPNGColorType(ImageBridgeError):
    """Color type / bit depth combination not allowed by PNG."""


class UnsupportedPNGInterlace(ImageBridgeError):
    """Adam7 interlaced PNG."""


# TIFF container

class InvalidTIFFHeader(ImageBridgeError):
    """Byte-order marker or magic number is wrong."""


class MissingRequiredTag(ImageBridgeError):
    """IFD lacks a tag needed to locate or interpret the samples."""

    def __init__(self, tag: int, name: str) -> None:
        super().__init__(f"TIFF tag {tag} ({name}) is required")
        self.tag = tag
        self.name = name


class UnsupportedTIFFCompression(ImageBridgeError):
    """Compression scheme other than none, LZW or Deflate."""


# object model

class InvalidImageObject(ImageBridgeError):
    """Image stream dictionary is missing or has invalid entries."""


class UnresolvedReference(ImageBridgeError):
    """Indirect reference does not resolve to an object."""


# soft mask

class SoftMaskError(ImageBridgeError):
    """Resolving or decoding the SMask of an image failed.

    Raised separately from parent-image failures so that a caller can decide
    to go on without transparency. The original failure is chained as
    ``__cause__``.
    """


class MaskDimensionMismatch(SoftMaskError, DimensionMismatch):
    """Soft mask width/height differ from the parent image."""


# warnings

class PaletteIndexOutOfRange(UserWarning):
    """An Indexed sample pointed past the lookup table and was clamped."""
