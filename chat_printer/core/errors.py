"""
Exceptions for Chat Printer.

Exception hierarchy:
    ChatPrinterError (base)
    ├── FrameError            - one malformed wire frame (dropped by the reassembler)
    │   ├── BoundaryError     - start/end markers or length do not match
    │   └── ChecksumError     - markers match but the XOR checksum fails
    ├── PrinterError          - a printer command failed (retried/recovered by the orchestrator)
    │   ├── NoResponse        - no matching response frame after the bounded retry loop
    │   └── TransportError    - the USB/serial adapter failed to send
    ├── DeviceFatal           - the printer is gone; the process shuts down
    ├── ConfigInvalid         - startup configuration is unusable
    ├── ModerationReject      - a chat message was rejected by the moderation filter
    └── PlacementError        - chat text could not be turned into a placement

Frame errors never leave the protocol layer. Printer errors stop at the
orchestrator, which is the only place deciding transient vs. fatal.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ChatPrinterError(Exception):
    """
    Base exception for all Chat Printer errors.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class FrameError(ChatPrinterError):
    """A single frame could not be decoded."""


class BoundaryError(FrameError):
    """Start/end markers are missing or the declared length does not fit the frame."""


class ChecksumError(FrameError):
    """The frame is well bounded but its checksum byte is wrong."""


class PrinterError(ChatPrinterError):
    """A printer command failed."""


class NoResponse(PrinterError):
    """
    The printer did not answer a command with the expected response code.
    """

    def __init__(self, command: int, expected: Optional[int] = None, attempts: int = 0):
        details: Dict[str, Any] = {"command": f"0x{command:02X}", "attempts": attempts}
        if expected is not None:
            details["expected"] = f"0x{expected:02X}"
        super().__init__("No response from printer", details)
        self.command = command
        self.expected = expected
        self.attempts = attempts


class TransportError(PrinterError):
    """The underlying byte channel failed."""


class DeviceFatal(ChatPrinterError):
    """
    The printer connection is considered lost.

    Raised by the orchestrator after repeated heartbeat failures or a print
    failure that survives both recovery heartbeats. There is no reconnect.
    """


class ConfigInvalid(ChatPrinterError):
    """Configuration could not be loaded or validated. Startup only."""


class ModerationReject(ChatPrinterError):
    """
    A chat message was rejected by the moderation filter.
    """

    def __init__(self, sender: str, reason: str = "message rejected"):
        super().__init__(reason, {"sender": sender})
        self.sender = sender
        self.reason = reason


class PlacementError(ChatPrinterError):
    """Chat text did not contain a usable label placement."""


__all__ = [
    "BoundaryError",
    "ChatPrinterError",
    "ChecksumError",
    "ConfigInvalid",
    "DeviceFatal",
    "FrameError",
    "ModerationReject",
    "NoResponse",
    "PlacementError",
    "PrinterError",
    "TransportError",
]
