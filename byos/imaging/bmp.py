"""
1-bit BMP encoder for TRMNL e-ink panels.

Layout (all integers little-endian):

    offset  0  BITMAPFILEHEADER   14 bytes
    offset 14  BITMAPINFOHEADER   40 bytes, negative height = top-down rows
    offset 54  palette             8 bytes, index 0 black, index 1 white
    offset 62  pixel rows, 1 bit per pixel MSB first, each row zero-padded
               to a multiple of 4 bytes

The firmware rejects anything else, so every field here is fixed.
"""

import struct
from dataclasses import dataclass
from typing import ClassVar

import numpy as np
from PIL import Image

FILE_HEADER_SIZE = 14
INFO_HEADER_SIZE = 40
PALETTE = bytes([0x00, 0x00, 0x00, 0x00, 0xFF, 0xFF, 0xFF, 0x00])
PIXEL_DATA_OFFSET = FILE_HEADER_SIZE + INFO_HEADER_SIZE + len(PALETTE)

PIXELS_PER_METER = 2835  # 72 DPI
THRESHOLD = 128  # gray values above this are white


@dataclass(frozen=True)
class BitmapFileHeader:
    file_size: int
    pixel_data_offset: int = PIXEL_DATA_OFFSET
    signature: bytes = b"BM"
    reserved: int = 0

    FORMAT: ClassVar[str] = "<2sIII"

    def pack(self) -> bytes:
        return struct.pack(
            self.FORMAT,
            self.signature,
            self.file_size,
            self.reserved,
            self.pixel_data_offset,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "BitmapFileHeader":
        signature, file_size, reserved, offset = struct.unpack_from(cls.FORMAT, data)
        return cls(
            file_size=file_size,
            pixel_data_offset=offset,
            signature=signature,
            reserved=reserved,
        )


@dataclass(frozen=True)
class BitmapInfoHeader:
    width: int
    height: int
    image_size: int
    header_size: int = INFO_HEADER_SIZE
    planes: int = 1
    bits_per_pixel: int = 1
    compression: int = 0
    x_pixels_per_meter: int = PIXELS_PER_METER
    y_pixels_per_meter: int = PIXELS_PER_METER
    colors_used: int = 2
    important_colors: int = 2

    FORMAT: ClassVar[str] = "<IiiHHIIiiII"

    def pack(self) -> bytes:
        return struct.pack(
            self.FORMAT,
            self.header_size,
            self.width,
            self.height,
            self.planes,
            self.bits_per_pixel,
            self.compression,
            self.image_size,
            self.x_pixels_per_meter,
            self.y_pixels_per_meter,
            self.colors_used,
            self.important_colors,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "BitmapInfoHeader":
        (
            header_size,
            width,
            height,
            planes,
            bits_per_pixel,
            compression,
            image_size,
            x_ppm,
            y_ppm,
            colors_used,
            important_colors,
        ) = struct.unpack_from(cls.FORMAT, data, FILE_HEADER_SIZE)
        return cls(
            width=width,
            height=height,
            image_size=image_size,
            header_size=header_size,
            planes=planes,
            bits_per_pixel=bits_per_pixel,
            compression=compression,
            x_pixels_per_meter=x_ppm,
            y_pixels_per_meter=y_ppm,
            colors_used=colors_used,
            important_colors=important_colors,
        )


def row_sizes(width: int) -> tuple[int, int]:
    """
    Bytes per pixel row.

    Returns:
        Tuple of (packed row size, row size padded to 4 bytes)
    """
    row_size = (width + 7) // 8
    return row_size, (row_size + 3) // 4 * 4


def pack_pixels(gray: np.ndarray, threshold: int = THRESHOLD) -> bytes:
    """
    Threshold a grayscale array and pack it into padded 1-bit rows.

    Args:
        gray: 2-D uint8 array, rows top to bottom
        threshold: Values above this become white (bit 1)

    Returns:
        Pixel data, 8 pixels per byte MSB first; unused low bits of a
        row's last byte and the row padding are zero
    """
    width = gray.shape[1]
    row_size, padded_row_size = row_sizes(width)

    packed = np.packbits(gray > threshold, axis=1)
    if padded_row_size > row_size:
        packed = np.pad(packed, ((0, 0), (0, padded_row_size - row_size)))
    return packed.astype(np.uint8).tobytes()


def encode_1bit_bmp(image: Image.Image, threshold: int = THRESHOLD) -> bytes:
    """
    Encode an image as a top-down 1-bit BMP.

    Args:
        image: Any Pillow image; it is converted to grayscale first
        threshold: Gray level above which a pixel is white

    Returns:
        Complete BMP file bytes
    """
    gray = np.asarray(image.convert("L"), dtype=np.uint8)
    height, width = gray.shape
    pixel_data = pack_pixels(gray, threshold)

    file_header = BitmapFileHeader(file_size=PIXEL_DATA_OFFSET + len(pixel_data))
    info_header = BitmapInfoHeader(width=width, height=-height, image_size=len(pixel_data))
    return file_header.pack() + info_header.pack() + PALETTE + pixel_data


def banded_test_image(width: int = 800, height: int = 480, band: int = 40) -> Image.Image:
    """Alternating horizontal black and white bands, starting with black."""
    rows = ((np.arange(height) // band) % 2 * 255).astype(np.uint8)
    return Image.fromarray(np.repeat(rows[:, np.newaxis], width, axis=1))
