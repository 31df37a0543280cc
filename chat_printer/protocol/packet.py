"""Frame codec and stream reassembler for the label printer wire protocol.

Frame layout::

    +----------+---------+--------+-----------------+----------+----------+
    |  Start   | Command | Length |     Payload     | Checksum |   End    |
    | 55 55    | 1 byte  | 1 byte | 0..255 bytes    |  1 byte  |  AA AA   |
    +----------+---------+--------+-----------------+----------+----------+

- Checksum: command XOR length XOR every payload byte
- The device offers no transport framing besides these in-band markers
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Iterator

from chat_printer.core.errors import BoundaryError, ChecksumError, FrameError

START = b"\x55\x55"
END = b"\xAA\xAA"
MIN_FRAME_SIZE = 7  # start(2) + command(1) + length(1) + checksum(1) + end(2)
MAX_PAYLOAD = 255


@dataclass(frozen=True)
class Frame:
    """A decoded protocol frame."""

    command: int
    payload: bytes = b""

    def __repr__(self) -> str:
        return (
            f"Frame(command=0x{self.command:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def checksum(command: int, payload: bytes) -> int:
    return reduce(lambda acc, b: acc ^ b, payload, command ^ len(payload))


def encode(command: int, payload: bytes = b"") -> bytes:
    """Encode one frame.

    Args:
        command: Request code, 0..255.
        payload: Command-specific bytes, at most 255.

    Returns:
        The frame as sent on the wire.

    Raises:
        ValueError: If the command or payload length is out of range.
    """
    if not 0 <= command <= 0xFF:
        raise ValueError(f"command out of range: {command}")
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"payload too long: {len(payload)} > {MAX_PAYLOAD}")
    return START + bytes([command, len(payload)]) + payload + bytes([checksum(command, payload)]) + END


def decode(data: bytes) -> Frame:
    """Decode exactly one frame.

    Raises:
        BoundaryError: Markers missing, frame shorter than 7 bytes, or the
            length byte disagrees with the frame size.
        ChecksumError: The frame is well bounded but the checksum fails.
    """
    data = bytes(data)
    if len(data) < MIN_FRAME_SIZE or data[:2] != START or data[-2:] != END:
        raise BoundaryError("Invalid packet boundaries", {"size": len(data)})

    command = data[2]
    length = data[3]
    if len(data) != MIN_FRAME_SIZE + length:
        raise BoundaryError("Length byte does not match frame size", {"length": length, "size": len(data)})

    payload = data[4 : 4 + length]
    if data[4 + length] != checksum(command, payload):
        raise ChecksumError("Invalid checksum", {"command": f"0x{command:02X}"})
    return Frame(command=command, payload=payload)


class FrameReassembler:
    """Split the bytes returned by one receive call into frames.

    Bytes are accumulated one at a time. As soon as the accumulator starts
    with the start marker and ends with the end marker, a decode is attempted;
    either way the accumulator is cleared. Malformed frames are dropped.
    There is no backtracking, so a payload that itself ends in ``AA AA``
    loses its frame.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.dropped = 0

    def feed(self, data: bytes) -> Iterator[Frame]:
        for byte in data:
            self._buffer.append(byte)
            # Resync: the accumulator must always be a prefix of a frame.
            if len(self._buffer) <= 2 and self._buffer != START[: len(self._buffer)]:
                self._buffer.clear()
                continue
            if len(self._buffer) >= 4 and self._buffer.endswith(END):
                candidate = bytes(self._buffer)
                self._buffer.clear()
                try:
                    yield decode(candidate)
                except FrameError:
                    self.dropped += 1


def reassemble(data: bytes) -> Iterator[Frame]:
    """Frames found in one receive buffer. Partial trailing bytes are discarded."""
    return FrameReassembler().feed(data)


__all__ = [
    "END",
    "MAX_PAYLOAD",
    "MIN_FRAME_SIZE",
    "START",
    "Frame",
    "FrameReassembler",
    "checksum",
    "decode",
    "encode",
    "reassemble",
]
