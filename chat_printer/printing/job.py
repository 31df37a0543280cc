"""
Print job value passed from the render loop to the printer worker.

A job holds an immutable copy of the canvas (one `bytes` per row), so the
render loop can keep drawing while the printer works.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Tuple

from PIL import Image

from chat_printer.printing.bitmap import image_to_rows, rows_to_image


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class PrintJob:
    rows: Tuple[bytes, ...]
    width: int
    height: int
    quantity: int = 1
    density: int = 5
    label_type: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_utc_now_iso)

    @classmethod
    def from_image(cls, img: Image.Image, quantity: int = 1, density: int = 5, label_type: int = 1) -> "PrintJob":
        rows = image_to_rows(img)
        return cls(rows=rows, width=img.width, height=img.height, quantity=quantity, density=density, label_type=label_type)

    def to_image(self) -> Image.Image:
        return rows_to_image(self.rows, self.width, self.height)


__all__ = ["PrintJob"]
