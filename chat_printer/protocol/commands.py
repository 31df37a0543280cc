"""Request codes of the label printer protocol.

Each request has a protocol-fixed response code expressed as an offset from
the request code (``response = request + offset``). Offsets are 0, 1 or 16;
``None`` marks requests the device never answers.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, Optional

from chat_printer.protocol.packet import MAX_PAYLOAD


class Command(IntEnum):
    GET_INFO = 0x40
    HEARTBEAT = 0xDC
    SET_LABEL_TYPE = 0x23
    SET_LABEL_DENSITY = 0x21
    START_PRINT = 0x01
    START_PAGE_PRINT = 0x03
    SET_PAGE_SIZE = 0x13
    END_PAGE_PRINT = 0xE3
    END_PRINT = 0xF3
    GET_PRINT_STATUS = 0xA3
    PRINT_BITMAP_ROW = 0x85
    ALLOW_PRINT_CLEAR = 0x20
    SET_AUTO_SHUTDOWN_TIME = 0x27

    @property
    def response_offset(self) -> Optional[int]:
        return RESPONSE_OFFSETS[self]

    @property
    def response_code(self) -> Optional[int]:
        offset = RESPONSE_OFFSETS[self]
        return None if offset is None else (int(self) + offset) & 0xFF


RESPONSE_OFFSETS: Dict[Command, Optional[int]] = {
    Command.GET_INFO: 0,
    Command.HEARTBEAT: 1,
    Command.SET_LABEL_TYPE: 16,
    Command.SET_LABEL_DENSITY: 16,
    Command.START_PRINT: 1,
    Command.START_PAGE_PRINT: 1,
    Command.SET_PAGE_SIZE: None,
    Command.END_PAGE_PRINT: 1,
    Command.END_PRINT: 1,
    Command.GET_PRINT_STATUS: 16,
    Command.PRINT_BITMAP_ROW: None,
    Command.ALLOW_PRINT_CLEAR: 16,
    Command.SET_AUTO_SHUTDOWN_TIME: 16,
}

# A PRINT_BITMAP_ROW payload is a 6 byte header plus one bit per pixel and
# must fit in one frame.
ROW_HEADER_SIZE = 6
MAX_ROW_WIDTH = (MAX_PAYLOAD - ROW_HEADER_SIZE) * 8


class InfoKey(IntEnum):
    """Keys accepted by GET_INFO."""

    DENSITY = 1
    PRINT_SPEED = 2
    LABEL_TYPE = 3
    LANGUAGE_TYPE = 6
    AUTO_SHUTDOWN_TIME = 7
    DEVICE_TYPE = 8
    SOFT_VERSION = 9
    BATTERY = 10
    DEVICE_SERIAL = 11
    HARD_VERSION = 12


__all__ = ["Command", "InfoKey", "MAX_ROW_WIDTH", "RESPONSE_OFFSETS", "ROW_HEADER_SIZE"]
