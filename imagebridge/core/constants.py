# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
ImageBridge Constants Module

Defaults used across the bridge. Functions that depend on one of these take
a keyword argument of the same (lower-case) name, so a caller overrides per
call instead of patching module state.
"""

# Compression
FLATE_LEVEL = 9                             # zlib level for freshly encoded streams and containers
JPEG_QUALITY = 90                           # DCTEncode quality when no Quality parameter is given

# PNG row filter selection: "adaptive" (min sum of abs differences) or "none"
PNG_FILTER_STRATEGY = "adaptive"

# TIFF byte order for written files: "<" = II (little-endian), ">" = MM
TIFF_BYTE_ORDER = "<"

# Hostile input guard: width * height above this is refused before allocation
MAX_IMAGE_PIXELS = 1 << 28

# Bit depths a PDF image may declare
VALID_BITS_PER_COMPONENT = frozenset({1, 2, 4, 8, 16})

# File extensions written by the dispatcher
PNG_EXTENSION = ".png"
TIFF_EXTENSION = ".tif"
JPEG_EXTENSION = ".jpg"

# Extensions treated as "caller supplied" and replaced on write
KNOWN_IMAGE_EXTENSIONS = frozenset({
    ".png", ".tif", ".tiff", ".jpg", ".jpeg",
})
