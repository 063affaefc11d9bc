from __future__ import annotations

import os

import pytest
from PIL import Image

from conftest import pillow_bytes, pillow_image
from imagebridge.containers.tiff import write_tiff
from imagebridge.core.dispatch import (
    ContainerFormat,
    choose_container,
    choose_ingest_strategy,
    output_path,
    read_image,
    read_image_file,
    read_png_file,
    read_tiff_file,
    render_image,
    write_image,
)
from imagebridge.core.color_space import DEVICE_CMYK, DEVICE_GRAY, DEVICE_RGB, ICCBasedColorSpace
from imagebridge.core.error import UnsupportedColorSpace, UnsupportedImageFormat
from imagebridge.core.raster import RasterImage


@pytest.fixture()
def jpeg_bytes(gradient) -> bytes:
    return pillow_bytes(Image.frombytes("RGB", (16, 16), gradient(16, 16, 3)), "JPEG")


@pytest.mark.parametrize("file_name, fmt, expected", [
    ("out/page1_Im0", ContainerFormat.PNG, "out/page1_Im0.png"),
    ("scan.png", ContainerFormat.TIFF, "scan.tif"),
    ("photo.JPEG", ContainerFormat.PNG, "photo.png"),
    ("report.v2", ContainerFormat.JPEG, "report.v2.jpg"),
    ("cover.tiff", ContainerFormat.TIFF, "cover.tif"),
])
def test_output_path_replaces_image_extension(file_name: str, fmt: ContainerFormat, expected: str) -> None:
    assert output_path(file_name, fmt) == expected


def test_choose_container() -> None:
    assert choose_container(DEVICE_GRAY) is ContainerFormat.PNG
    assert choose_container(DEVICE_RGB) is ContainerFormat.PNG
    assert choose_container(DEVICE_CMYK) is ContainerFormat.TIFF
    assert choose_container(ICCBasedColorSpace(4)) is ContainerFormat.TIFF


def test_choose_ingest_strategy(jpeg_bytes) -> None:
    assert choose_ingest_strategy(pillow_bytes(Image.new("L", (1, 1)), "PNG")) is ContainerFormat.PNG
    assert choose_ingest_strategy(write_tiff(RasterImage(1, 1, 1, b"\x00"))) is ContainerFormat.TIFF
    assert choose_ingest_strategy(write_tiff(RasterImage(1, 1, 1, b"\x00"), ">")) is ContainerFormat.TIFF
    assert choose_ingest_strategy(jpeg_bytes) is ContainerFormat.JPEG


def test_unknown_input_format() -> None:
    with pytest.raises(UnsupportedImageFormat):
        read_image(b"GIF89a\x01\x00\x01\x00")


def test_jpeg_passes_through_unchanged(jpeg_bytes, tmp_path) -> None:
    image = read_image(jpeg_bytes)
    assert render_image(image) == (ContainerFormat.JPEG, jpeg_bytes)

    path = write_image(None, str(tmp_path / "photo.png"), image)
    assert path == str(tmp_path / "photo.jpg")
    with open(path, "rb") as f:
        assert f.read() == jpeg_bytes


def test_inverted_jpeg_is_decoded_to_png(jpeg_bytes) -> None:
    image = read_image(jpeg_bytes)
    image.dictionary["Decode"] = [1, 0, 1, 0, 1, 0]
    fmt, data = render_image(image)
    assert fmt is ContainerFormat.PNG

    expected = bytes(255 - v for v in pillow_image(jpeg_bytes).tobytes())
    assert pillow_image(data).tobytes() == expected


def test_failed_conversion_writes_nothing(image_stream, tmp_path) -> None:
    stream = image_stream(1, 1, "Lab", 8, bytes(3))
    with pytest.raises(UnsupportedColorSpace):
        write_image(None, str(tmp_path / "lab"), stream)
    assert os.listdir(tmp_path) == []


def test_write_image_picks_tiff_for_cmyk(image_stream, tmp_path, gradient) -> None:
    stream = image_stream(5, 5, "DeviceCMYK", 8, gradient(5, 5, 4))
    path = write_image(None, str(tmp_path / "ink"), stream)
    assert path.endswith(".tif")
    with open(path, "rb") as f:
        assert pillow_image(f.read()).mode == "CMYK"


def test_file_readers(xref, tmp_path, gradient) -> None:
    samples = gradient(4, 3, 3)
    png_path = tmp_path / "a.png"
    png_path.write_bytes(pillow_bytes(Image.frombytes("RGB", (4, 3), samples), "PNG"))
    tiff_path = tmp_path / "b.tif"
    tiff_path.write_bytes(write_tiff(RasterImage(4, 3, 4, gradient(4, 3, 4))))

    assert read_png_file(xref, str(png_path)).decoded() == samples
    assert read_tiff_file(xref, str(tiff_path)).dictionary["ColorSpace"] == "DeviceCMYK"
    assert read_image_file(xref, str(png_path)).dictionary["ColorSpace"] == "DeviceRGB"
