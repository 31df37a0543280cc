"""UI commands consumed by the render loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from chat_printer.placement import Placement


@dataclass(frozen=True)
class Draw:
    placement: Placement
    sender: str = ""


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class Quit:
    reason: str = "quit"


UiCommand = Union[Draw, Clear, Quit]

__all__ = ["Clear", "Draw", "Quit", "UiCommand"]
