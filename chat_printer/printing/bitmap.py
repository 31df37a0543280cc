"""
Bitmap row encoding for the PrintBitmapRow command.

A row payload is a 6 byte header followed by the packed pixels:

    row index (u16 BE) | left dark count (u8) | right dark count (u8) | repeat (u16 BE, always 1) | bits...

Pixels are packed 1 bit each, MSB first, 1 = dark (printed). The dark counts
are split at the horizontal midpoint `width // 2`.
"""

from __future__ import annotations

import logging
import struct
from typing import Iterator, List, Sequence, Tuple

from PIL import Image

logger = logging.getLogger(__name__)

DARK_THRESHOLD = 128
ROW_REPEAT = 1


def is_dark(value: int, threshold: int = DARK_THRESHOLD) -> bool:
    return value < threshold


def pack_row(pixels: Sequence[int], threshold: int = DARK_THRESHOLD) -> Tuple[bytes, int, int]:
    """
    Pack one row of 8-bit pixel values.

    Returns:
        (packed bits, left dark count, right dark count). A trailing partial
        byte is zero padded.
    """
    width = len(pixels)
    mid = width // 2
    packed = bytearray((width + 7) // 8)
    left = right = 0
    for x, value in enumerate(pixels):
        if not is_dark(value, threshold):
            continue
        packed[x >> 3] |= 0x80 >> (x & 7)
        if x < mid:
            left += 1
        else:
            right += 1
    return bytes(packed), left, right


def encode_row(row_index: int, pixels: Sequence[int], threshold: int = DARK_THRESHOLD) -> bytes:
    """
    Build the PrintBitmapRow payload for one row.
    """
    packed, left, right = pack_row(pixels, threshold)
    header = struct.pack(">HBBH", row_index & 0xFFFF, min(left, 0xFF), min(right, 0xFF), ROW_REPEAT)
    return header + packed


def encode_rows(rows: Sequence[bytes], width: int, threshold: int = DARK_THRESHOLD) -> Iterator[bytes]:
    """
    Yield one row payload per bitmap row.
    """
    if width % 8 != 0:
        logger.warning("Image width %d is not a multiple of 8; last byte of each row is padded", width)
    for y, row in enumerate(rows):
        yield encode_row(y, row[:width], threshold)


def image_to_rows(img: Image.Image) -> Tuple[bytes, ...]:
    """
    Copy a Pillow image into immutable grayscale rows (one `bytes` per row).
    """
    gray = img if img.mode == "L" else img.convert("L")
    data = gray.tobytes()
    w, h = gray.size
    return tuple(data[y * w : (y + 1) * w] for y in range(h))


def rows_to_image(rows: Sequence[bytes], width: int, height: int) -> Image.Image:
    """
    Rebuild a grayscale image from rows (used for archiving and previews).
    """
    return Image.frombytes("L", (width, height), b"".join(rows))


def count_dark(rows: Sequence[bytes], threshold: int = DARK_THRESHOLD) -> int:
    return sum(1 for row in rows for v in row if v < threshold)


__all__: List[str] = [
    "DARK_THRESHOLD",
    "count_dark",
    "encode_row",
    "encode_rows",
    "image_to_rows",
    "is_dark",
    "pack_row",
    "rows_to_image",
]
