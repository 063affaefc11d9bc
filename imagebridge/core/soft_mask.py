# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Soft-Mask Composer

A PDF image keeps transparency in a separate DeviceGray image (its SMask);
containers keep it as an alpha channel. These helpers move alpha between
the two shapes. Masks are never resampled: geometry must match exactly.
"""

from __future__ import annotations

from .error import MaskDimensionMismatch
from .raster import RasterImage


def split_alpha(raster: RasterImage) -> tuple[RasterImage, RasterImage | None]:
    """Separate a raster into its color part and a 1-channel alpha raster."""
    if raster.alpha is None:
        return raster, None
    mask = RasterImage(raster.width, raster.height, 1, raster.alpha)
    return raster.without_alpha(), mask


def merge_alpha(color: RasterImage, mask: RasterImage | None) -> RasterImage:
    """Attach a decoded soft mask to its parent as an alpha channel.

    A fully opaque mask is kept as-is.
    """
    if mask is None:
        return color
    if (mask.width, mask.height) != (color.width, color.height):
        raise MaskDimensionMismatch(
            f"soft mask is {mask.width}x{mask.height}, image is {color.width}x{color.height}")
    if mask.channels != 1 or mask.palette is not None:
        raise MaskDimensionMismatch(f"soft mask must be a single gray channel, got {mask}")
    return RasterImage(color.width, color.height, color.channels, color.samples,
                       mask.samples, color.palette, color.bits_per_component)
