# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
ImageBridge - Public API

Converts PDF image XObjects to PNG, TIFF or JPEG files and back.

**Package Organization:**
- core/: object model (xref.py), color spaces, raster model, sample
  transform, soft masks, the adapter and the format dispatcher
- filters/: stream codecs and the filter pipeline runner
- containers/: PNG and TIFF codecs
- pdf/: pypdf-backed resolver, page image extraction and embedding

**Usage:**
```python
from imagebridge import XRefTable, read_png_file, write_image

xref = XRefTable()
image = read_png_file(xref, "photo.png")
path = write_image(xref, "out/photo", image)   # -> "out/photo.png"
```
"""

from .containers.png import read_png, write_png
from .containers.tiff import read_tiff, write_tiff
from .core.adapter import from_container, from_jpeg, to_container
from .core.color_space import (
    DEVICE_CMYK,
    DEVICE_GRAY,
    DEVICE_RGB,
    DeviceColorSpace,
    ICCBasedColorSpace,
    IndexedColorSpace,
)
from .core.dispatch import (
    ContainerFormat,
    choose_container,
    choose_ingest_strategy,
    choose_output,
    read_image,
    read_image_file,
    read_png_file,
    read_tiff_file,
    render_image,
    write_image,
)
from .core.error import (
    CorruptChunk,
    CorruptStream,
    DimensionMismatch,
    ImageBridgeError,
    ImageTooLarge,
    InvalidImageObject,
    InvalidPNGSignature,
    InvalidTIFFHeader,
    MaskDimensionMismatch,
    MissingRequiredTag,
    PaletteIndexOutOfRange,
    SoftMaskError,
    UnresolvedReference,
    UnsupportedColorSpace,
    UnsupportedFilter,
    UnsupportedImageFormat,
    UnsupportedPNGColorType,
    UnsupportedPNGInterlace,
    UnsupportedTIFFCompression,
)
from .core.raster import RasterImage
from .core.sample_transform import pack, unpack
from .core.soft_mask import merge_alpha, split_alpha
from .core.xref import ImageStreamObject, IndirectRef, ObjectResolver, XRefTable
from .filters.pipeline import FilterName, FilterPipeline, FilterStep, apply_filter

__version__ = "0.1.0"
