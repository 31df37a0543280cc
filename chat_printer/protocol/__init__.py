"""Protocol layer: frame codec, stream reassembly and the command table."""

from .commands import MAX_ROW_WIDTH, RESPONSE_OFFSETS, ROW_HEADER_SIZE, Command, InfoKey
from .packet import Frame, FrameReassembler, decode, encode, reassemble

__all__ = [
    "RESPONSE_OFFSETS",
    "ROW_HEADER_SIZE",
    "Command",
    "Frame",
    "FrameReassembler",
    "InfoKey",
    "MAX_ROW_WIDTH",
    "decode",
    "encode",
    "reassemble",
]
