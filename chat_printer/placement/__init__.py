"""
Turning chat text into a placement on the canvas.

`PlacementParser` asks the external extractor when one is configured and
falls back to the local `"<label> <x>,<y>[,<size>]"` parser otherwise, or
when the extractor fails.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from chat_printer.core.errors import PlacementError
from chat_printer.placement.fallback import parse_placement
from chat_printer.placement.model import DEFAULT_SIZE, Placement

logger = logging.getLogger(__name__)


class PlacementExtractor(Protocol):
    def extract(self, text: str) -> Placement: ...


class PlacementParser:
    def __init__(
        self,
        width: int,
        height: int,
        max_size: int,
        extractor: Optional[PlacementExtractor] = None,
    ) -> None:
        self.width = width
        self.height = height
        self.max_size = max_size
        self.extractor = extractor

    def parse(self, text: str) -> Placement:
        """
        Raises:
            PlacementError: Neither the extractor nor the local parser understood the text.
        """
        if self.extractor is not None:
            try:
                return self.extractor.extract(text)
            except PlacementError as e:
                logger.warning("Extractor failed, using local parser: %s", e)
        placement = parse_placement(text, self.width, self.height, self.max_size)
        if placement is None:
            raise PlacementError("Could not parse placement", {"text": text[:80]})
        return placement


__all__ = ["DEFAULT_SIZE", "Placement", "PlacementExtractor", "PlacementParser", "parse_placement"]
