"""USB bulk transport for the label printer.

The printer enumerates as a vendor-specific device (NIIMBOT vendor id
``0x3513``). We claim interface 0 and talk over bulk endpoints
0x01 (OUT) and 0x81 (IN) with a fixed 1 s timeout.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from chat_printer.core.errors import TransportError
from chat_printer.transport.base import IO_TIMEOUT_MS

logger = logging.getLogger(__name__)

VENDOR_ID = 0x3513
INTERFACE = 0
EP_OUT = 0x01
EP_IN = 0x81


class UsbAdapter:
    """Bulk-endpoint transport backed by pyusb.

    Usage::

        adapter = UsbAdapter.open()
        adapter.send(frame)
        n = adapter.receive(buffer)
        adapter.close()
    """

    def __init__(self, device: Any, timeout_ms: int = IO_TIMEOUT_MS) -> None:
        self._device = device
        self._timeout_ms = timeout_ms

    @classmethod
    def open(
        cls,
        vendor_id: int = VENDOR_ID,
        product_id: Optional[int] = None,
        timeout_ms: int = IO_TIMEOUT_MS,
    ) -> "UsbAdapter":
        """Find the printer, detach the kernel driver if needed and claim the interface.

        Raises:
            TransportError: If the device is missing or cannot be claimed.
        """
        import usb.core
        import usb.util

        query = {"idVendor": vendor_id}
        if product_id is not None:
            query["idProduct"] = product_id
        dev = usb.core.find(**query)
        if dev is None:
            raise TransportError("No label printer found", {"vendor_id": f"{vendor_id:#06x}"})

        try:
            if dev.is_kernel_driver_active(INTERFACE):
                dev.detach_kernel_driver(INTERFACE)
        except (NotImplementedError, usb.core.USBError) as e:
            logger.debug("Could not check/detach kernel driver: %s", e)

        try:
            usb.util.claim_interface(dev, INTERFACE)
        except usb.core.USBError as e:
            raise TransportError(f"Could not claim USB interface: {e}") from e

        logger.info("Connected to USB printer %04x:%04x", dev.idVendor, dev.idProduct)
        return cls(dev, timeout_ms=timeout_ms)

    def send(self, data: bytes) -> int:
        import usb.core

        try:
            return int(self._device.write(EP_OUT, data, timeout=self._timeout_ms))
        except usb.core.USBError as e:
            raise TransportError(f"USB write failed: {e}") from e

    def receive(self, buffer: bytearray) -> int:
        import usb.core

        try:
            data = self._device.read(EP_IN, len(buffer), timeout=self._timeout_ms)
        except usb.core.USBTimeoutError:
            return 0
        except usb.core.USBError as e:
            raise TransportError(f"USB read failed: {e}") from e
        n = len(data)
        buffer[:n] = bytes(data)
        return n

    def close(self) -> None:
        import usb.util

        try:
            usb.util.release_interface(self._device, INTERFACE)
            usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing USB printer: %s", e)
        finally:
            logger.info("USB printer released")


__all__ = ["EP_IN", "EP_OUT", "INTERFACE", "VENDOR_ID", "UsbAdapter"]
