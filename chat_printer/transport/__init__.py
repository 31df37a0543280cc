"""
Transport adapters for the label printer.

`open_transport()` picks the USB or serial variant from Settings.
"""

from __future__ import annotations

from chat_printer.core.config import Settings
from chat_printer.transport.base import IO_TIMEOUT_MS, RECEIVE_BUFFER_SIZE, Transport
from chat_printer.transport.serial_adapter import SerialAdapter
from chat_printer.transport.usb_adapter import UsbAdapter


def open_transport(settings: Settings) -> Transport:
    """
    Open the transport configured by `printer_type`.

    Raises:
        TransportError: If the device cannot be opened.
    """
    if settings.printer_type == "serial":
        return SerialAdapter.open(settings.serial_port, baudrate=settings.serial_baudrate)
    return UsbAdapter.open(settings.usb_vendor_id, settings.usb_product_id)


__all__ = [
    "IO_TIMEOUT_MS",
    "RECEIVE_BUFFER_SIZE",
    "SerialAdapter",
    "Transport",
    "UsbAdapter",
    "open_transport",
]
