from __future__ import annotations

import pytest

from imagebridge.core.color_space import DEVICE_RGB, IndexedColorSpace
from imagebridge.core.error import DimensionMismatch, ImageTooLarge, PaletteIndexOutOfRange
from imagebridge.core.raster import RasterImage
from imagebridge.core.sample_transform import (
    pack,
    representable,
    row_stride,
    unpack,
    unpack_indices,
    unpack_samples,
)


def _representable_samples(width: int, height: int, channels: int, bpc: int) -> bytes:
    """8-bit samples that every depth >= bpc can hold exactly."""
    max_value = (1 << min(bpc, 8)) - 1
    values = [(i * 5 + i // 3) % (max_value + 1) for i in range(width * height * channels)]
    return bytes(round(v * 255 / max_value) for v in values)


def test_row_stride_pads_to_byte() -> None:
    assert row_stride(3, 1, 1) == 1
    assert row_stride(9, 1, 1) == 2
    assert row_stride(3, 4, 3) == 5
    assert row_stride(5, 16, 4) == 40


@pytest.mark.parametrize("bpc", [1, 2, 4, 8, 16])
@pytest.mark.parametrize("channels", [1, 3, 4])
@pytest.mark.parametrize("width", [1, 7, 13])
def test_pack_unpack_round_trip(bpc: int, channels: int, width: int) -> None:
    height = 3
    raster = RasterImage(width, height, channels,
                         _representable_samples(width, height, channels, bpc),
                         bits_per_component=bpc)
    data, decode = pack(raster, bpc)

    assert len(data) == row_stride(width, bpc, channels) * height
    assert decode == [0.0, 1.0] * channels
    assert unpack(data, width, height, bpc, channels, decode).samples == raster.samples


@pytest.mark.parametrize("bpc", [1, 2, 4, 8])
def test_inverted_decode_complements_samples(bpc: int) -> None:
    width, height = 11, 4
    raster = RasterImage(width, height, 1, _representable_samples(width, height, 1, bpc))
    data, _ = pack(raster, bpc)

    plain = unpack(data, width, height, bpc, 1).samples
    inverted = unpack(data, width, height, bpc, 1, [1, 0]).samples
    assert plain == raster.samples
    assert inverted == bytes(255 - s for s in plain)


def test_one_bit_rows_are_padded() -> None:
    # width 3: each row uses the top three bits of its own byte
    raster = unpack(bytes([0b10100000, 0b01011111]), 3, 2, 1, 1)
    assert raster.samples == bytes([255, 0, 255, 0, 255, 0])


def test_two_bit_unpack() -> None:
    raster = unpack(bytes([0b00011011]), 4, 1, 2, 1)
    assert raster.samples == bytes([0, 85, 170, 255])


def test_four_bit_decode_remap() -> None:
    # Decode [0.2, 0.6] on 4-bit samples
    raster = unpack(bytes([0x0F]), 2, 1, 4, 1, [0.2, 0.6])
    assert raster.samples == bytes([51, 153])


def test_sixteen_bit_keeps_high_byte() -> None:
    raster = unpack(bytes.fromhex("1234abcd"), 2, 1, 16, 1)
    assert raster.samples == bytes([0x12, 0xAB])


def test_short_data_is_rejected() -> None:
    with pytest.raises(DimensionMismatch):
        unpack(bytes(5), 3, 2, 8, 1)


def test_surplus_data_is_ignored() -> None:
    raster = unpack(bytes([1, 2, 3, 4, 99, 99]), 2, 2, 8, 1)
    assert raster.samples == bytes([1, 2, 3, 4])


def test_oversized_geometry_is_refused() -> None:
    with pytest.raises(ImageTooLarge):
        unpack_samples(b"", 1 << 15, 1 << 14, 8, 1)


def test_unsupported_depth() -> None:
    with pytest.raises(DimensionMismatch):
        unpack(bytes(6), 2, 1, 3, 3)


def test_indexed_resolves_through_lookup() -> None:
    space = IndexedColorSpace(DEVICE_RGB, 1, bytes([10, 20, 30, 40, 50, 60]))
    raster = unpack(bytes([0b01000000]), 2, 1, 1, 1, indexed=space)
    assert raster.channels == 3
    assert raster.samples == bytes([10, 20, 30, 40, 50, 60])


def test_indexed_overflow_is_clamped_with_warning() -> None:
    space = IndexedColorSpace(DEVICE_RGB, 1, bytes([10, 20, 30, 40, 50, 60]))
    with pytest.warns(PaletteIndexOutOfRange):
        raster = unpack(bytes([0, 7]), 2, 1, 8, 1, indexed=space)
    assert raster.samples == bytes([10, 20, 30, 40, 50, 60])


def test_indexed_decode_applies_in_index_space() -> None:
    # Decode [3 0] on 2-bit indices reverses their order
    assert unpack_indices(bytes([0b00011011]), 4, 1, 2, [3, 0]) == bytes([3, 2, 1, 0])


def test_palette_raster_packs_indices() -> None:
    raster = RasterImage(4, 1, 1, bytes([0, 1, 2, 3]), palette=bytes(12), bits_per_component=2)
    data, decode = pack(raster, 2)
    assert data == bytes([0b00011011])
    assert decode == [0.0, 3.0]


def test_palette_index_too_large_for_depth() -> None:
    raster = RasterImage(1, 1, 1, bytes([4]), palette=bytes(15))
    with pytest.raises(DimensionMismatch):
        pack(raster, 2)


def test_representable() -> None:
    assert representable(bytes([0, 255]), 1)
    assert not representable(bytes([0, 128]), 1)
    assert representable(bytes([0, 85, 170, 255]), 2)
    assert representable(bytes([1, 2, 3]), 8)
