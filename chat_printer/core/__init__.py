"""
Core utilities for Chat Printer.

This package groups helpers used across the workers:
- config: paths, JSON load/save, validated Settings
- logging: worker-aware logging filters/formatters and root logger config
- errors: the exception taxonomy
- assets: the icon library

Exports are explicit to keep static analyzers happy.
"""

from .assets import ICON_EXTS, IconLibrary, is_supported_image
from .config import (
    Settings,
    default_config_path,
    ensure_dir,
    get_config_path,
    load_config,
    load_settings,
    save_config,
)
from .errors import (
    BoundaryError,
    ChatPrinterError,
    ChecksumError,
    ConfigInvalid,
    DeviceFatal,
    FrameError,
    ModerationReject,
    NoResponse,
    PlacementError,
    PrinterError,
    TransportError,
)
from .logging import JsonFormatter, WorkerFilter, configure_logging

__all__ = [
    # config
    "Settings",
    "default_config_path",
    "ensure_dir",
    "get_config_path",
    "load_config",
    "load_settings",
    "save_config",
    # errors
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
    # logging
    "JsonFormatter",
    "WorkerFilter",
    "configure_logging",
    # assets
    "ICON_EXTS",
    "IconLibrary",
    "is_supported_image",
]
