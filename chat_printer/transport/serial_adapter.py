"""Serial transport for the label printer (115200 baud, 1 s read timeout)."""

from __future__ import annotations

import logging
import time
from typing import Any

from chat_printer.core.errors import TransportError
from chat_printer.transport.base import IO_TIMEOUT_MS

logger = logging.getLogger(__name__)

BAUD_RATE = 115200
WRITE_SETTLE_SECONDS = 0.002


class SerialAdapter:
    """Transport backed by a pyserial port."""

    def __init__(self, port: Any) -> None:
        self._serial = port

    @classmethod
    def open(cls, port: str, baudrate: int = BAUD_RATE, timeout_ms: int = IO_TIMEOUT_MS) -> "SerialAdapter":
        """Open the serial port.

        Raises:
            TransportError: If the port cannot be opened.
        """
        import serial

        if not port:
            raise ValueError("port must not be empty")
        timeout = timeout_ms / 1000.0
        try:
            handle = serial.Serial(port=port, baudrate=baudrate, timeout=timeout, write_timeout=timeout)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to open serial port {port}: {e}") from e
        logger.info("Connected to serial printer on %s @ %d baud", port, baudrate)
        return cls(handle)

    def send(self, data: bytes) -> int:
        import serial

        try:
            written = self._serial.write(data)
            self._serial.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Serial write failed: {e}") from e
        time.sleep(WRITE_SETTLE_SECONDS)
        return int(written or 0)

    def receive(self, buffer: bytearray) -> int:
        import serial

        try:
            # Block for the first byte, then take whatever else is already waiting.
            data = self._serial.read(1)
            if data:
                waiting = min(self._serial.in_waiting, len(buffer) - 1)
                if waiting > 0:
                    data += self._serial.read(waiting)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Serial read failed: {e}") from e
        n = len(data)
        buffer[:n] = data
        return n

    def close(self) -> None:
        try:
            self._serial.close()
        except Exception as e:
            logger.debug("Failed to close serial port: %s", e)
        logger.info("Serial printer closed")


__all__ = ["BAUD_RATE", "SerialAdapter"]
