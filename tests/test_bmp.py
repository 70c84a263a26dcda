import io

import numpy as np
import pytest
from PIL import Image

from byos.imaging.bmp import (
    PALETTE,
    PIXEL_DATA_OFFSET,
    BitmapFileHeader,
    BitmapInfoHeader,
    banded_test_image,
    encode_1bit_bmp,
    pack_pixels,
    row_sizes,
)

PANEL_BMP_SIZE = 48062


def test_headers_and_size():
    data = encode_1bit_bmp(Image.new("L", (800, 480), 255))
    file_header = BitmapFileHeader.unpack(data)
    info_header = BitmapInfoHeader.unpack(data)

    assert len(data) == PANEL_BMP_SIZE
    assert file_header.signature == b"BM"
    assert file_header.file_size == PANEL_BMP_SIZE
    assert file_header.pixel_data_offset == PIXEL_DATA_OFFSET == 62
    assert info_header.header_size == 40
    assert (info_header.width, info_header.height) == (800, -480)
    assert info_header.bits_per_pixel == 1
    assert info_header.planes == 1
    assert info_header.compression == 0
    assert info_header.image_size == 48000
    assert info_header.colors_used == 2
    assert data[54:62] == PALETTE


def test_header_pack_layout():
    assert len(BitmapFileHeader(file_size=100).pack()) == 14
    assert len(BitmapInfoHeader(width=1, height=-1, image_size=4).pack()) == 40


def test_white_and_black():
    white = encode_1bit_bmp(Image.new("L", (800, 480), 255))
    black = encode_1bit_bmp(Image.new("RGB", (800, 480), "black"))
    assert set(white[PIXEL_DATA_OFFSET:]) == {0xFF}
    assert set(black[PIXEL_DATA_OFFSET:]) == {0x00}


@pytest.mark.parametrize("width,expected", [(800, (100, 100)), (10, (2, 4)), (1, (1, 4)), (33, (5, 8))])
def test_row_sizes(width, expected):
    assert row_sizes(width) == expected


def test_pack_non_multiple_of_eight_width():
    gray = np.full((2, 10), 255, dtype=np.uint8)
    assert pack_pixels(gray) == b"\xff\xc0\x00\x00" * 2


def test_pack_msb_first():
    gray = np.zeros((1, 8), dtype=np.uint8)
    gray[0, 0] = 255
    assert pack_pixels(gray) == b"\x80\x00\x00\x00"


def test_threshold():
    gray = np.array([[128, 129, 0, 255, 200, 10, 128, 130]], dtype=np.uint8)
    assert pack_pixels(gray)[0] == 0b01011001


def test_banded_test_image():
    image = banded_test_image()
    data = encode_1bit_bmp(image)

    assert image.size == (800, 480)
    assert len(data) == PANEL_BMP_SIZE
    assert data[PIXEL_DATA_OFFSET] == 0x00  # first band black
    assert data[PIXEL_DATA_OFFSET + 40 * 100] == 0xFF  # second band white
    assert data[PIXEL_DATA_OFFSET + 80 * 100] == 0x00


def test_decodes_with_pillow():
    data = encode_1bit_bmp(banded_test_image())
    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.size == (800, 480)
        gray = decoded.convert("L")
        assert gray.getpixel((0, 0)) == 0
        assert gray.getpixel((0, 40)) == 255
