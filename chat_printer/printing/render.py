"""
Placement rendering for Chat Printer.

Responsibilities:
- Resolve a font from settings/env/common locations
- Draw a placement onto the canvas: an icon from the icon library when the
  placement text names one, otherwise wrapped text
- Optionally invert pixels where new text overlaps existing ink

The canvas is a grayscale Pillow image (0 = black ink, 255 = paper).
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Sequence

from PIL import Image, ImageDraw, ImageFont, ImageOps

from chat_printer.core.assets import IconLibrary
from chat_printer.placement import Placement

logger = logging.getLogger(__name__)

TEXT_PX_PER_SIZE = 12
LINE_SPACING = 1.2
INK_THRESHOLD = 128

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


def _measure_text(font: FontType, text: str) -> tuple[int, int]:
    """
    Text measurement across Pillow font types. Returns (width, height).
    """
    try:
        bbox = font.getbbox(text)
        return int(bbox[2] - bbox[0]), int(bbox[3] - bbox[1])
    except Exception:
        try:
            mask = font.getmask(text)  # type: ignore[attr-defined]
            return int(mask.size[0]), int(mask.size[1])
        except Exception:
            return 0, 0


def resolve_font(font_path: Optional[str], font_size: int) -> FontType:
    """
    Resolve a TTF font to use for rendering, preferring:
    1) the configured `font_path`
    2) CHATPRINTER_FONT_PATH environment variable
    3) A list of common system font paths (DejaVu, FreeSans, Liberation, Noto)
    4) DejaVuSans shipped inside the Pillow installation
    Falls back to Pillow's default font at the requested size.
    """
    candidates: List[str] = []
    if font_path and font_path.strip():
        candidates.append(font_path.strip())
    env_path = os.environ.get("CHATPRINTER_FONT_PATH")
    if env_path and env_path not in candidates:
        candidates.append(env_path)

    common: Sequence[str] = (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    )
    for pth in common:
        if pth not in candidates:
            candidates.append(pth)

    try:
        from pathlib import Path

        import PIL  # type: ignore

        pil_dir = Path(PIL.__file__).resolve().parent
        for rel in ("fonts/DejaVuSans.ttf", "Tests/fonts/DejaVuSans.ttf"):
            candidates.append(str(pil_dir / rel))
    except Exception:
        pass

    for pth in candidates:
        try:
            return ImageFont.truetype(pth, font_size)
        except Exception:
            continue

    logger.warning("No TTF font found; using Pillow's default font")
    try:
        return ImageFont.load_default(size=font_size)
    except TypeError:
        return ImageFont.load_default()


def wrap_text(text: str, font: FontType, max_width: int) -> List[str]:
    """
    Greedy word wrap to `max_width` pixels. Words longer than a line are broken by character.
    """
    if not text:
        return [""]
    lines: List[str] = []
    current = ""
    for word in text.split():
        test_line = current + (" " if current else "") + word
        if _measure_text(font, test_line)[0] <= max_width:
            current = test_line
            continue
        if current:
            lines.append(current)
            current = ""
        if _measure_text(font, word)[0] <= max_width:
            current = word
        else:
            pieces = _break_long_word(word, font, max_width)
            lines.extend(pieces[:-1])
            current = pieces[-1]
    if current:
        lines.append(current)
    return lines or [""]


def _break_long_word(word: str, font: FontType, max_width: int) -> List[str]:
    """Break a word that doesn't fit on a single line, character by character."""
    result: List[str] = []
    current = ""
    for char in word:
        test = current + char
        if _measure_text(font, test)[0] <= max_width or not current:
            current = test
        else:
            result.append(current)
            current = char
    if current:
        result.append(current)
    return result or [""]


class Renderer:
    """
    Draws placements onto the canvas.
    """

    def __init__(
        self,
        icons: Optional[IconLibrary] = None,
        font_path: Optional[str] = None,
        invert_overlapping_text: bool = True,
    ) -> None:
        self.icons = icons or IconLibrary()
        self.font_path = font_path
        self.invert_overlapping_text = invert_overlapping_text

    def place(self, canvas: Image.Image, placement: Placement) -> bool:
        """
        Draw one placement. Returns False (and logs) when nothing could be drawn.
        """
        try:
            icon = self.icons.open(placement.text)
            if icon is not None:
                self.draw_icon(canvas, icon, placement)
                return True
            return self.draw_text(canvas, placement)
        except Exception as e:
            logger.warning("Could not render %r: %s", placement.text, e)
            return False

    def draw_icon(self, canvas: Image.Image, icon: Image.Image, placement: Placement) -> None:
        scale = max(1, placement.size)
        x, y = placement.x, placement.y
        # Only the part of the icon that lands on the canvas is scaled.
        vis_w = min(icon.width, -(-(canvas.width - x) // scale))
        vis_h = min(icon.height, -(-(canvas.height - y) // scale))
        if vis_w <= 0 or vis_h <= 0:
            return
        icon = icon.crop((0, 0, vis_w, vis_h))
        if scale > 1:
            icon = icon.resize((vis_w * scale, vis_h * scale), Image.NEAREST)

        alpha = icon.getchannel("A").point(lambda a: 255 if a > INK_THRESHOLD else 0)
        luma = icon.convert("L").point(lambda v: 255 if v < INK_THRESHOLD else 0)
        ink = Image.new("L", icon.size, 0)
        ink.paste(luma, mask=alpha)
        canvas.paste(0, (x, y, x + icon.width, y + icon.height), mask=ink)

    def draw_text(self, canvas: Image.Image, placement: Placement) -> bool:
        text = placement.text.strip()
        if not text:
            return False
        font = resolve_font(self.font_path, TEXT_PX_PER_SIZE * max(1, placement.size))
        max_width = max(1, canvas.width - placement.x)
        lines = wrap_text(text, font, max_width)

        mask = Image.new("L", canvas.size, 0)
        draw = ImageDraw.Draw(mask)
        line_height = max(1, int(_measure_text(font, "Hg")[1] * LINE_SPACING))
        y = placement.y
        for line in lines:
            if y >= canvas.height:
                break
            draw.text((placement.x, y), line, fill=255, font=font)
            y += line_height
        mask = mask.point(lambda v: 255 if v > 127 else 0)
        if mask.getbbox() is None:
            return False

        if self.invert_overlapping_text:
            canvas.paste(ImageOps.invert(canvas), mask=mask)
        else:
            canvas.paste(0, mask=mask)
        return True


__all__ = ["Renderer", "resolve_font", "wrap_text"]
