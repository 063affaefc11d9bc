# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Image Color Spaces

The closed set of color spaces an image may carry through the bridge:

    DeviceColorSpace     DeviceGray, DeviceRGB, DeviceCMYK
    IndexedColorSpace    base space + hival + lookup table
    ICCBasedColorSpace   N components, profile kept by reference only

CalGray and CalRGB are read as their device equivalents. Lab, Separation,
DeviceN and Pattern have no container representation and are refused.
No color management is done: an ICC space is interpreted as the device
space with the same number of components.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from .error import InvalidImageObject, UnsupportedColorSpace
from .xref import ImageStreamObject, IndirectRef, resolve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceColorSpace:
    name: str

    def __str__(self) -> str:
        return f"/{self.name}"


DEVICE_GRAY = DeviceColorSpace("DeviceGray")
DEVICE_RGB = DeviceColorSpace("DeviceRGB")
DEVICE_CMYK = DeviceColorSpace("DeviceCMYK")


@dataclass(frozen=True)
class IndexedColorSpace:
    base: Union[DeviceColorSpace, ICCBasedColorSpace]
    hival: int
    lookup: bytes

    def __str__(self) -> str:
        return f"[/Indexed {self.base} {self.hival} <{len(self.lookup)} bytes>]"


@dataclass(frozen=True)
class ICCBasedColorSpace:
    n: int
    alternate: DeviceColorSpace | None = None
    profile: IndirectRef | None = None

    def __str__(self) -> str:
        return f"[/ICCBased {self.profile or '-'} N={self.n}]"


ColorSpace = Union[DeviceColorSpace, IndexedColorSpace, ICCBasedColorSpace]

# Component counts per device color space
COMPONENT_COUNTS = {
    "DeviceGray": 1,
    "DeviceRGB": 3,
    "DeviceCMYK": 4,
}

_DEVICE_BY_COUNT = {1: DEVICE_GRAY, 3: DEVICE_RGB, 4: DEVICE_CMYK}

# Names (including inline abbreviations) that map directly onto a device space
_DEVICE_NAMES = {
    "DeviceGray": DEVICE_GRAY, "G": DEVICE_GRAY, "CalGray": DEVICE_GRAY,
    "DeviceRGB": DEVICE_RGB, "RGB": DEVICE_RGB, "CalRGB": DEVICE_RGB,
    "DeviceCMYK": DEVICE_CMYK, "CMYK": DEVICE_CMYK,
}

_UNSUPPORTED = {"Lab", "Separation", "DeviceN", "Pattern"}


def component_count(space: ColorSpace) -> int:
    """Number of samples per pixel in the image data."""
    if isinstance(space, DeviceColorSpace):
        return COMPONENT_COUNTS[space.name]
    if isinstance(space, IndexedColorSpace):
        return 1
    return space.n


def interpretation(space: ColorSpace) -> DeviceColorSpace:
    """Device space the colors are read as (Indexed: its base's)."""
    if isinstance(space, DeviceColorSpace):
        return space
    if isinstance(space, IndexedColorSpace):
        return interpretation(space.base)
    if space.alternate is not None and component_count(space.alternate) == space.n:
        return space.alternate
    device = _DEVICE_BY_COUNT.get(space.n)
    if device is None:
        raise UnsupportedColorSpace(f"ICCBased with N={space.n}")
    return device


def device_space_for(channels: int) -> DeviceColorSpace:
    """DeviceGray, DeviceRGB or DeviceCMYK by channel count."""
    try:
        return _DEVICE_BY_COUNT[channels]
    except KeyError:
        raise UnsupportedColorSpace(f"no device color space has {channels} components") from None


def default_decode(space: ColorSpace, bits_per_component: int) -> list[float]:
    """The Decode array an image gets when its dictionary has none."""
    if isinstance(space, IndexedColorSpace):
        return [0.0, float((1 << bits_per_component) - 1)]
    return [0.0, 1.0] * component_count(space)


def parse(obj: Any, resolver=None) -> ColorSpace:
    """Build a ColorSpace from a ``/ColorSpace`` dictionary value."""
    obj = resolve(resolver, obj)

    if isinstance(obj, str):
        return _parse_name(obj)

    if not isinstance(obj, list) or not obj:
        raise InvalidImageObject(f"invalid /ColorSpace {obj!r}")

    family = resolve(resolver, obj[0])
    if not isinstance(family, str):
        raise InvalidImageObject(f"invalid color space family {family!r}")

    if len(obj) == 1:
        return _parse_name(family)

    if family in ("CalGray", "CalRGB"):
        return _DEVICE_NAMES[family]

    if family == "ICCBased":
        return _parse_iccbased(obj[1], resolver)

    if family in ("Indexed", "I"):
        return _parse_indexed(obj, resolver)

    if family in _UNSUPPORTED:
        raise UnsupportedColorSpace(f"{family} images are not supported")
    raise UnsupportedColorSpace(f"unknown color space family {family!r}")


def _parse_name(name: str) -> DeviceColorSpace:
    space = _DEVICE_NAMES.get(name)
    if space is not None:
        return space
    if name in _UNSUPPORTED:
        raise UnsupportedColorSpace(f"{name} images are not supported")
    raise UnsupportedColorSpace(f"unknown color space {name!r}")


def _parse_iccbased(profile: Any, resolver) -> ICCBasedColorSpace:
    ref = profile if isinstance(profile, IndirectRef) else None
    stream = resolve(resolver, profile)
    if not isinstance(stream, ImageStreamObject):
        raise InvalidImageObject(f"ICCBased profile is not a stream: {stream!r}")

    n = stream.dictionary.get("N")
    if isinstance(n, bool) or not isinstance(n, int) or n not in (1, 3, 4):
        raise UnsupportedColorSpace(f"ICCBased with N={n!r}")

    alternate = None
    alt_obj = stream.dictionary.get("Alternate")
    if alt_obj is not None:
        alt = parse(alt_obj, resolver)
        if isinstance(alt, DeviceColorSpace):
            alternate = alt
        else:
            logger.debug("ICCBased /Alternate %s ignored", alt)

    return ICCBasedColorSpace(n=n, alternate=alternate, profile=ref)


def _parse_indexed(obj: list, resolver) -> IndexedColorSpace:
    if len(obj) != 4:
        raise InvalidImageObject(f"Indexed color space needs 4 elements, got {len(obj)}")

    base = parse(obj[1], resolver)
    if isinstance(base, IndexedColorSpace):
        raise InvalidImageObject("Indexed base cannot itself be Indexed")

    hival = resolve(resolver, obj[2])
    if isinstance(hival, bool) or not isinstance(hival, int) or not 0 <= hival <= 255:
        raise InvalidImageObject(f"Indexed hival must be 0..255, got {hival!r}")

    lookup = resolve(resolver, obj[3])
    if isinstance(lookup, ImageStreamObject):
        lookup = lookup.decoded()
    elif isinstance(lookup, str):
        lookup = lookup.encode('latin-1')
    if not isinstance(lookup, (bytes, bytearray)):
        raise InvalidImageObject(f"Indexed lookup must be a string or stream, got {lookup!r}")

    needed = (hival + 1) * component_count(base)
    if len(lookup) < needed:
        raise InvalidImageObject(f"Indexed lookup has {len(lookup)} bytes, needs {needed}")

    return IndexedColorSpace(base=base, hival=hival, lookup=bytes(lookup[:needed]))


def to_pdf_object(space: ColorSpace) -> Any:
    """Inverse of parse(): a value for the ``/ColorSpace`` entry."""
    if isinstance(space, DeviceColorSpace):
        return space.name
    if isinstance(space, IndexedColorSpace):
        return ["Indexed", to_pdf_object(space.base), space.hival, space.lookup]
    if space.profile is not None:
        return ["ICCBased", space.profile]
    return interpretation(space).name
