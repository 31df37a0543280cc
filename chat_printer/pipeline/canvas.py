"""
The label canvas: a grayscale Pillow image owned by the render loop.

White (255) is paper, anything below the dark threshold prints.
"""

from __future__ import annotations

from PIL import Image

from chat_printer.printing.bitmap import DARK_THRESHOLD

PAPER = 255


class Canvas:
    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.image = Image.new("L", (width, height), PAPER)

    def is_blank(self) -> bool:
        # Extrema of the binarized image: (255, 255) means no dark pixel.
        lo, _ = self.image.point(lambda v: 0 if v < DARK_THRESHOLD else 255).getextrema()
        return lo == PAPER

    def snapshot(self) -> Image.Image:
        return self.image.copy()

    def clear(self) -> None:
        self.image.paste(PAPER, (0, 0, self.width, self.height))


__all__ = ["Canvas", "PAPER"]
