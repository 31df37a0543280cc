"""
Printer session: the command set and print-job state machine.

A session owns one transport. Every request goes through `transceive()`,
which sends a single frame and then polls the transport a bounded number of
times for the response frame the protocol prescribes for that request.

The session is used from the printer worker thread only.
"""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from chat_printer.core.errors import NoResponse, PrinterError
from chat_printer.printing.bitmap import encode_rows
from chat_printer.protocol.commands import MAX_ROW_WIDTH, Command, InfoKey
from chat_printer.protocol.packet import Frame, FrameReassembler, encode
from chat_printer.transport.base import RECEIVE_BUFFER_SIZE, Transport

logger = logging.getLogger(__name__)

RECEIVE_ATTEMPTS = 5
RETRY_INTERVAL = 0.2
STATUS_POLL_INTERVAL = 0.1
STATUS_TIMEOUT = 30.0
SEND_SETTLE = 0.01

START_PRINT_PAYLOAD = bytes([0x00, 0x01, 0x00, 0x00, 0x00, 0x00, 0x00])


class SessionState(str, Enum):
    IDLE = "idle"
    PRINTING = "printing"
    PAGE_PRINTING = "page_printing"
    AWAITING_COMPLETION = "awaiting_completion"


@dataclass(frozen=True)
class PrintStatus:
    page: int
    progress1: int
    progress2: int

    @classmethod
    def from_payload(cls, payload: bytes) -> "PrintStatus":
        if len(payload) < 4:
            raise PrinterError("Invalid print status response", {"payload": payload.hex()})
        page, p1, p2 = struct.unpack(">HBB", payload[:4])
        return cls(page=page, progress1=p1, progress2=p2)


class PrinterSession:
    """
    Protocol client for one printer.

    Usage::

        session = PrinterSession(UsbAdapter.open())
        session.heartbeat()
        session.print_label(rows, width, height, quantity=1, label_type=1, density=5)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        attempts: int = RECEIVE_ATTEMPTS,
        retry_interval: float = RETRY_INTERVAL,
        status_interval: float = STATUS_POLL_INTERVAL,
        status_timeout: float = STATUS_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._attempts = attempts
        self._retry_interval = retry_interval
        self._status_interval = status_interval
        self._status_timeout = status_timeout
        self._state = SessionState.IDLE
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Frame I/O
    # ------------------------------------------------------------------

    def send(self, command: int, payload: bytes = b"") -> int:
        """
        Send one frame without waiting for an answer.
        """
        data = encode(int(command), payload)
        written = self._transport.send(data)
        time.sleep(SEND_SETTLE)
        return written

    def _receive(self) -> List[Frame]:
        buffer = bytearray(RECEIVE_BUFFER_SIZE)
        try:
            n = self._transport.receive(buffer)
        except PrinterError as e:
            logger.debug("Receive failed: %s", e)
            return []
        if n <= 0:
            return []
        return list(FrameReassembler().feed(bytes(buffer[:n])))

    def transceive(self, command: int, payload: bytes = b"", response_offset: Optional[int] = None) -> Frame:
        """
        Send a request and wait for the frame coded `command + response_offset`.

        The offset defaults to the one fixed for `command` in the command table.

        Raises:
            NoResponse: No matching frame after `attempts` receive polls.
            TransportError: The request could not be sent.
        """
        if response_offset is None:
            response_offset = Command(command).response_offset
            if response_offset is None:
                raise ValueError(f"Command 0x{int(command):02X} has no response")
        expected = (int(command) + response_offset) & 0xFF

        self.send(command, payload)
        for _ in range(self._attempts):
            for frame in self._receive():
                if frame.command == expected:
                    return frame
                logger.debug("Ignoring %r while waiting for 0x%02X", frame, expected)
            time.sleep(self._retry_interval)
        raise NoResponse(int(command), expected=expected, attempts=self._attempts)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def heartbeat(self) -> Frame:
        return self.transceive(Command.HEARTBEAT, b"\x01")

    def get_info(self, key: InfoKey) -> bytes:
        return self.transceive(Command.GET_INFO, bytes([int(key)])).payload

    def set_label_type(self, label_type: int) -> None:
        self.transceive(Command.SET_LABEL_TYPE, bytes([label_type & 0xFF]))

    def set_label_density(self, density: int) -> None:
        self.transceive(Command.SET_LABEL_DENSITY, bytes([density & 0xFF]))

    def start_print(self) -> None:
        self.transceive(Command.START_PRINT, START_PRINT_PAYLOAD)

    def start_page_print(self) -> None:
        self.transceive(Command.START_PAGE_PRINT, b"\x01")

    def set_page_size(self, rows: int, cols: int, copies: int) -> None:
        # No response code for this request has been observed; send and move on.
        self.send(Command.SET_PAGE_SIZE, struct.pack(">HHH", rows, cols, copies))

    def print_bitmap_row(self, payload: bytes) -> None:
        self.send(Command.PRINT_BITMAP_ROW, payload)

    def end_page_print(self) -> None:
        self.transceive(Command.END_PAGE_PRINT, b"\x01")

    def end_print(self) -> None:
        self.transceive(Command.END_PRINT, b"\x01")

    def allow_print_clear(self) -> None:
        self.transceive(Command.ALLOW_PRINT_CLEAR, b"\x01")

    def get_print_status(self) -> PrintStatus:
        return PrintStatus.from_payload(self.transceive(Command.GET_PRINT_STATUS, b"\x01").payload)

    def set_auto_shutdown_time(self, value: int) -> None:
        self.transceive(Command.SET_AUTO_SHUTDOWN_TIME, bytes([min(max(int(value), 0), 4)]))

    # ------------------------------------------------------------------
    # Print job
    # ------------------------------------------------------------------

    def print_label(
        self,
        bitmap: Sequence[bytes],
        width: int,
        height: int,
        quantity: int = 1,
        label_type: int = 1,
        density: int = 5,
    ) -> None:
        """
        Run one print job to completion.

        `bitmap` holds `height` rows of `width` 8-bit pixel values (dark < 128).

        Raises:
            NoResponse: Any acknowledged step went unanswered.
            TransportError: A frame could not be sent.
            ValueError: The bitmap does not fit the protocol. Checked before
                anything is sent.
        """
        if len(bitmap) != height:
            raise ValueError(f"bitmap has {len(bitmap)} rows, expected {height}")
        if width > MAX_ROW_WIDTH:
            raise ValueError(f"width {width} exceeds the {MAX_ROW_WIDTH} pixel row limit")
        if self._closed:
            raise PrinterError("Session is closed")

        try:
            self.set_label_type(label_type)
            self.set_label_density(density)

            logger.debug("Starting print")
            self.start_print()
            self._state = SessionState.PRINTING
            self.start_page_print()
            self._state = SessionState.PAGE_PRINTING

            self.set_page_size(height, width, quantity)
            sent = 0
            for payload in encode_rows(bitmap, width):
                self.print_bitmap_row(payload)
                sent += 1
            logger.debug("Sent %d bitmap rows", sent)

            self.end_page_print()
            self._state = SessionState.AWAITING_COMPLETION
            self._wait_for_pages(quantity)
            logger.info("Printed %d label(s) %dx%d", quantity, width, height)
        finally:
            self._state = SessionState.IDLE

    def _wait_for_pages(self, quantity: int) -> None:
        deadline = time.monotonic() + self._status_timeout
        while True:
            try:
                status = self.get_print_status()
            except NoResponse:
                # The device stops answering status requests once it is done.
                logger.debug("Print status went silent; treating job as complete")
                return
            if status.page == quantity:
                return
            if time.monotonic() >= deadline:
                raise NoResponse(int(Command.GET_PRINT_STATUS), attempts=self._attempts)
            time.sleep(self._status_interval)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._state = SessionState.IDLE
        self._transport.close()


__all__ = ["PrintStatus", "PrinterSession", "SessionState"]
