"""Transport capability shared by the USB and serial adapters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

RECEIVE_BUFFER_SIZE = 1024
IO_TIMEOUT_MS = 1000


@runtime_checkable
class Transport(Protocol):
    """A duplex byte channel with a fixed I/O timeout.

    ``send`` returns the number of bytes written and raises
    :class:`~chat_printer.core.errors.TransportError` on failure.
    ``receive`` fills ``buffer`` with whatever one blocking read returns and
    yields the count; a timeout is not an error and returns 0.
    """

    def send(self, data: bytes) -> int: ...

    def receive(self, buffer: bytearray) -> int: ...

    def close(self) -> None: ...
