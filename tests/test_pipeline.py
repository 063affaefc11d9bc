from __future__ import annotations

import base64
import typing
import zlib

import pytest
from PIL import Image

from conftest import pillow_bytes, pillow_image
from imagebridge.core.error import CorruptStream, UnsupportedFilter
from imagebridge.core.xref import IndirectRef, XRefTable
from imagebridge.filters.filter_dct import jpeg_info
from imagebridge.filters.pipeline import _FILTER_CLASSES, FilterName, FilterPipeline, FilterStep, apply_filter

# Example from the LZWDecode section of the PDF reference
LZW_INPUT = b"-----A---B"
LZW_ENCODED = bytes.fromhex("800B6050220C0C8501")


def test_lzw_decodes_reference_example() -> None:
    assert apply_filter("LZWDecode", None, LZW_ENCODED) == LZW_INPUT


def test_lzw_encodes_reference_example() -> None:
    assert apply_filter("LZWDecode", None, LZW_INPUT, encode=True) == LZW_ENCODED


@pytest.mark.parametrize("early_change", [0, 1])
def test_lzw_round_trip_past_code_width_changes(early_change: int) -> None:
    # enough distinct sequences to grow the table through 10, 11, 12 bits and reset
    data = bytes((i * 31 + (i >> 7) * 17) & 0xFF for i in range(60000))
    params = {"EarlyChange": early_change}
    encoded = apply_filter("LZWDecode", params, data, encode=True)
    assert apply_filter("LZWDecode", params, encoded) == data


def test_lzw_invalid_code_is_corrupt() -> None:
    # clear code followed by code 300 before the table has grown that far
    bits = format(256, "09b") + format(300, "09b")
    bits += "0" * (-len(bits) % 8)
    data = int(bits, 2).to_bytes(len(bits) // 8, "big")
    with pytest.raises(CorruptStream):
        apply_filter("LZWDecode", None, data)


def test_flate_round_trip_with_level() -> None:
    data = bytes(range(256)) * 8
    encoded = apply_filter("FlateDecode", {"Level": 1}, data, encode=True)
    assert zlib.decompress(encoded) == data


def test_flate_png_up_predictor() -> None:
    # two rows of three bytes, second row Up-filtered against the first
    predicted = bytes([0, 1, 2, 3, 2, 0, 0, 0])
    params = {"Predictor": 12, "Columns": 3}
    assert apply_filter("FlateDecode", params, zlib.compress(predicted)) == bytes([1, 2, 3, 1, 2, 3])


def test_flate_tiff_predictor() -> None:
    params = {"Predictor": 2, "Columns": 4, "Colors": 1, "BitsPerComponent": 8}
    assert apply_filter("FlateDecode", params, zlib.compress(bytes([10, 1, 1, 1]))) == bytes([10, 11, 12, 13])


@pytest.mark.parametrize("predictor", [2, 10, 11, 12, 13, 14, 15])
def test_flate_predictor_round_trip(predictor: int, gradient) -> None:
    data = gradient(17, 9, 3)
    params = {"Predictor": predictor, "Columns": 17, "Colors": 3, "BitsPerComponent": 8}
    encoded = apply_filter("FlateDecode", params, data, encode=True)
    assert apply_filter("FlateDecode", params, encoded) == data


def test_flate_invalid_data_is_corrupt() -> None:
    with pytest.raises(CorruptStream):
        apply_filter("FlateDecode", None, b"definitely not deflate data")


def test_flate_truncated_stream_is_corrupt() -> None:
    encoded = zlib.compress(bytes(range(256)) * 8)
    # all data present, only the adler32 trailer missing
    with pytest.raises(CorruptStream):
        apply_filter("FlateDecode", None, encoded[:-4])
    with pytest.raises(CorruptStream):
        apply_filter("FlateDecode", None, encoded[:len(encoded) // 2])


def test_flate_ignores_bytes_after_end_of_stream() -> None:
    data = bytes(range(256))
    assert apply_filter("FlateDecode", None, zlib.compress(data) + b"\r\n") == data


def test_lzw_truncated_code_stream_is_corrupt() -> None:
    data = bytes((i * 31 + (i >> 3)) & 0xFF for i in range(2048))
    encoded = apply_filter("LZWDecode", None, data, encode=True)
    with pytest.raises(CorruptStream):
        apply_filter("LZWDecode", None, encoded[:len(encoded) // 2])


def test_lzw_missing_end_of_data_code_is_corrupt() -> None:
    # the reference example without its trailing EOD code
    bits = "".join(format(c, "09b") for c in (256, 45, 258, 258, 65, 259, 66))
    bits += "0" * (-len(bits) % 8)
    with pytest.raises(CorruptStream):
        apply_filter("LZWDecode", None, int(bits, 2).to_bytes(len(bits) // 8, "big"))


def test_run_length_decode() -> None:
    assert apply_filter("RunLengthDecode", None, b"\x02abc\xfdz\x80") == b"abczzzz"


def test_run_length_round_trip() -> None:
    data = b"abc" + b"\x00" * 300 + bytes(range(200)) + b"zz"
    encoded = apply_filter("RunLengthDecode", None, data, encode=True)
    assert encoded.endswith(b"\x80")
    assert apply_filter("RunLengthDecode", None, encoded) == data


def test_ascii_hex_decode() -> None:
    assert apply_filter("ASCIIHexDecode", None, b"48 65 6c\n6C6f>") == b"Hello"
    assert apply_filter("ASCIIHexDecode", None, b"7>") == b"\x70"


def test_ascii_hex_invalid_character() -> None:
    with pytest.raises(CorruptStream):
        apply_filter("ASCIIHexDecode", None, b"4G>")


def test_ascii85_matches_standard_library() -> None:
    data = b"Man is distinguished" + bytes(4) + b"\x01\x02"
    assert apply_filter("ASCII85Decode", None, base64.a85encode(data) + b"~>") == data
    encoded = apply_filter("ASCII85Decode", None, data, encode=True)
    assert base64.a85decode(encoded, adobe=True) == data


def test_ascii85_rejects_single_character_group() -> None:
    with pytest.raises(CorruptStream):
        apply_filter("ASCII85Decode", None, b"9jqo^B~>")


@pytest.mark.parametrize("name", ["JPXDecode", "JBIG2Decode", "Crypt", "NoSuchDecode"])
def test_unimplemented_filters_are_unsupported(name: str) -> None:
    with pytest.raises(UnsupportedFilter):
        apply_filter(name, None, b"data")


def test_ccitt_has_no_encoder() -> None:
    with pytest.raises(UnsupportedFilter):
        apply_filter("CCITTFaxDecode", None, b"\x00", encode=True)


def test_pipeline_decodes_left_to_right() -> None:
    data = b"pipeline payload " * 10
    raw = zlib.compress(data).hex().encode() + b">"
    pipeline = FilterPipeline.from_stream_dict({"Filter": ["AHx", "Fl"]})
    assert pipeline.names == (FilterName.ASCII_HEX, FilterName.FLATE)
    assert pipeline.decode(raw) == data


def test_pipeline_encode_is_inverse_of_decode(gradient) -> None:
    data = gradient(8, 8, 1)
    pipeline = FilterPipeline((
        FilterStep(FilterName.ASCII_85),
        FilterStep(FilterName.FLATE, {"Predictor": 15, "Columns": 8}),
        FilterStep(FilterName.RUN_LENGTH),
    ))
    assert pipeline.decode(pipeline.encode(data)) == data


def test_empty_pipeline_passes_through() -> None:
    pipeline = FilterPipeline.from_stream_dict({})
    assert len(pipeline) == 0
    assert pipeline.decode(b"raw") == b"raw"
    assert pipeline.to_stream_dict_entries() == {}


def test_decode_parms_are_matched_per_filter() -> None:
    pipeline = FilterPipeline.from_stream_dict({
        "Filter": ["ASCIIHexDecode", "FlateDecode"],
        "DecodeParms": [None, {"Predictor": 12, "Columns": 3}],
    })
    assert pipeline.steps[0].params == {}
    assert pipeline.steps[1].params == {"Predictor": 12, "Columns": 3}
    assert pipeline.to_stream_dict_entries() == {
        "Filter": ["ASCIIHexDecode", "FlateDecode"],
        "DecodeParms": [None, {"Predictor": 12, "Columns": 3}],
    }


def test_filter_entry_may_be_indirect() -> None:
    xref = XRefTable()
    ref = xref.allocate(["FlateDecode"])
    pipeline = FilterPipeline.from_stream_dict({"Filter": ref}, xref)
    assert pipeline.names == (FilterName.FLATE,)
    assert isinstance(ref, IndirectRef)


def test_unknown_filter_name_in_dictionary() -> None:
    with pytest.raises(UnsupportedFilter):
        FilterPipeline.from_stream_dict({"Filter": "BogusDecode"})


def _group4_strip(packed: bytes, width: int, height: int) -> tuple[bytes, bytes]:
    """CCITT Group 4 data from a Pillow-written TIFF, plus the rows it codes.

    The coded runs follow the raw TIFF bits, so with BlackIsZero photometric
    a coded white run holds Pillow's black pixels.
    """
    data = pillow_bytes(Image.frombytes("1", (width, height), packed), "TIFF", compression="group4")
    tags = pillow_image(data).tag_v2
    offset, count = tags[273], tags[279]
    offset = offset[0] if isinstance(offset, tuple) else offset
    count = count[0] if isinstance(count, tuple) else count
    coded = packed if tags[262] == 0 else bytes(b ^ 0xFF for b in packed)
    return data[offset:offset + count], coded


@pytest.fixture()
def bilevel() -> bytes:
    # 40x12, 1 = white; a black bar that shifts one byte every four rows
    rows = []
    for y in range(12):
        row = bytearray(b"\xff" * 5)
        row[y // 4] = 0x0F
        rows.append(bytes(row))
    return b"".join(rows)


def test_ccitt_group4_decode(bilevel: bytes) -> None:
    strip, expected = _group4_strip(bilevel, 40, 12)
    params = {"K": -1, "Columns": 40, "Rows": 12}
    assert apply_filter("CCITTFaxDecode", params, strip) == expected


def test_ccitt_black_is_1_inverts(bilevel: bytes) -> None:
    strip, expected = _group4_strip(bilevel, 40, 12)
    params = {"K": -1, "Columns": 40, "Rows": 12, "BlackIs1": True}
    assert apply_filter("CCITTFaxDecode", params, strip) == bytes(b ^ 0xFF for b in expected)


@pytest.mark.parametrize("filter_class", sorted(set(_FILTER_CLASSES.values()), key=lambda c: c.name),
                         ids=lambda c: c.name)
def test_filter_codecs_are_annotated(filter_class) -> None:
    for method in ("decode", "encode"):
        hints = typing.get_type_hints(getattr(filter_class, method))
        assert hints == {"data": bytes, "return": bytes}


def test_jpeg_info_is_annotated() -> None:
    assert typing.get_type_hints(jpeg_info)["return"] == tuple[int, int, int]
