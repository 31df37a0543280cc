"""
Local placement parser.

Accepts `"<label> <x>,<y>[,<size>]"`: everything before the last space is the
label, the last token holds comma separated non-negative integers. Size
defaults to 5. Values are clamped to the canvas and the maximum size.
"""

from __future__ import annotations

from typing import Optional

from chat_printer.placement.model import DEFAULT_SIZE, Placement


def _to_uint(token: str) -> Optional[int]:
    token = token.strip()
    if not token or not (token.isascii() and token.isdigit()):
        return None
    return int(token)


def parse_placement(text: str, width: int, height: int, max_size: int) -> Optional[Placement]:
    """
    Parse chat text into a placement, or None when it does not match.
    """
    text = text.strip()
    pos = text.rfind(" ")
    if pos <= 0:
        return None
    label, numbers = text[:pos].strip(), text[pos + 1 :]
    if not label:
        return None

    parts = numbers.split(",")
    if len(parts) < 2:
        return None
    x = _to_uint(parts[0])
    y = _to_uint(parts[1])
    size = _to_uint(parts[2]) if len(parts) > 2 else DEFAULT_SIZE
    if x is None or y is None or size is None:
        return None
    return Placement(text=label, x=x, y=y, size=size).clamped(width, height, max_size)


__all__ = ["parse_placement"]
