# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Container-side image model.

A RasterImage always holds 8-bit samples, row-major and channel-interleaved.
Palette images keep their indices in ``samples`` (one channel) and the RGB
triplets in ``palette``. ``bits_per_component`` records the depth the samples
came from so a re-encode can use the same depth again.
"""

from __future__ import annotations

from dataclasses import dataclass

from . import constants
from .error import DimensionMismatch, ImageTooLarge, UnsupportedColorSpace


def check_image_size(width: int, height: int, max_pixels: int | None = None) -> None:
    """Refuse geometry above MAX_IMAGE_PIXELS before anything is allocated."""
    limit = constants.MAX_IMAGE_PIXELS if max_pixels is None else max_pixels
    if width * height > limit:
        raise ImageTooLarge(f"{width}x{height} exceeds {limit} pixels")


@dataclass
class RasterImage:
    width: int
    height: int
    channels: int
    samples: bytes
    alpha: bytes | None = None
    palette: bytes | None = None
    bits_per_component: int = 8

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise DimensionMismatch(f"invalid raster size {self.width}x{self.height}")
        check_image_size(self.width, self.height)
        if self.channels not in (1, 3, 4):
            raise UnsupportedColorSpace(f"{self.channels}-channel rasters are not supported")
        if self.bits_per_component not in constants.VALID_BITS_PER_COMPONENT:
            raise DimensionMismatch(f"invalid bit depth {self.bits_per_component}")

        expected = self.pixel_count * self.channels
        if len(self.samples) != expected:
            raise DimensionMismatch(
                f"{self.width}x{self.height}x{self.channels} needs {expected} samples, "
                f"got {len(self.samples)}")

        if self.alpha is not None and len(self.alpha) != self.pixel_count:
            raise DimensionMismatch(
                f"alpha has {len(self.alpha)} samples for {self.pixel_count} pixels")

        if self.palette is not None:
            if self.channels != 1:
                raise DimensionMismatch("palette rasters have exactly one channel")
            if not self.palette or len(self.palette) % 3 or len(self.palette) > 768:
                raise DimensionMismatch(f"invalid palette length {len(self.palette)}")

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def palette_size(self) -> int:
        return len(self.palette) // 3 if self.palette is not None else 0

    @property
    def has_alpha(self) -> bool:
        return self.alpha is not None

    def without_alpha(self) -> RasterImage:
        return RasterImage(self.width, self.height, self.channels, self.samples,
                           None, self.palette, self.bits_per_component)

    def __str__(self) -> str:
        kind = f"palette[{self.palette_size}]" if self.palette is not None else f"{self.channels}ch"
        alpha = "+alpha" if self.alpha is not None else ""
        return f"RasterImage({self.width}x{self.height} {kind}{alpha} {self.bits_per_component}bpc)"
