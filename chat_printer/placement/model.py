"""Placement value type."""

from __future__ import annotations

from dataclasses import dataclass, replace

DEFAULT_SIZE = 5


@dataclass(frozen=True)
class Placement:
    """Where and how large to draw a label on the canvas."""

    text: str
    x: int
    y: int
    size: int = DEFAULT_SIZE

    def clamped(self, width: int, height: int, max_size: int) -> "Placement":
        return replace(
            self,
            x=min(max(self.x, 0), width),
            y=min(max(self.y, 0), height),
            size=min(max(self.size, 0), max_size),
        )


__all__ = ["DEFAULT_SIZE", "Placement"]
