"""
Config utilities for Chat Printer.

Responsibilities:
- Resolve the config path with environment and XDG support
- Provide JSON load/save helpers
- Merge CHATPRINTER_<FIELD> environment overrides and validate everything
  into a typed `Settings` model once at startup
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from chat_printer.core.errors import ConfigInvalid

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHATPRINTER_"

DEFAULT_PROMPT = (
    "You extract the x y location and size from a text, the x and y can appear anywhere in the text "
    "and the size can be nothing in which case you set it to 5, remove the indication words such as "
    "Place, At and with. If x<number> is used you remove the x and set number to size"
)


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/chatprinter/config.json
    2) ~/.config/chatprinter/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "chatprinter" / "config.json")
    return str(Path.home() / ".config" / "chatprinter" / "config.json")


def get_config_path() -> str:
    """
    Return the config path honoring CHATPRINTER_CONFIG_PATH.

    A `config.json` in the working directory is used when neither the
    override nor the XDG location exists.
    """
    override = os.environ.get(f"{ENV_PREFIX}CONFIG_PATH")
    if override:
        return override
    resolved = default_config_path()
    if not Path(resolved).exists() and Path("config.json").exists():
        return "config.json"
    return resolved


def ensure_dir(path: str) -> str:
    """
    Ensure a directory exists and return the path.
    """
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: Mapping[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config atomically, creating parent directories as needed.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(dict(data), f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


class Settings(BaseModel):
    """Validated runtime configuration, built once and passed to every worker."""

    # Text-to-placement extraction
    model: str = "gpt-4o-mini"
    prompt: str = DEFAULT_PROMPT
    openai_api_key: str = ""
    openai_url: str = "https://api.openai.com/v1/chat/completions"

    # Chat
    irc_host: str = "irc.chat.twitch.tv"
    irc_port: int = Field(default=6697, ge=1, le=65535)
    irc_channel: str = ""
    irc_token: str = ""
    irc_username: str = ""
    operators: List[str] = Field(default_factory=list)
    quit_command: str = "!quit"
    censoring_enabled: bool = True
    blocked_words: List[str] = Field(default_factory=list)
    test_text: bool = False

    # Canvas
    width: int = Field(default=500, ge=8)
    height: int = Field(default=500, ge=1, le=4000)
    max_size: int = Field(default=100, ge=1)
    invert_overlapping_text: bool = True
    font_path: Optional[str] = None
    icons_path: str = "images.tar"

    # Flush timer and archiving
    clock_time: int = Field(default=300, ge=1)
    timer_file: str = "timer.txt"
    timer_prefix: str = "printing starts in: "
    save_path: Optional[str] = "saves/"

    # Printer
    disable_printer: bool = False
    printer_type: str = "usb"
    usb_vendor_id: int = 0x3513
    usb_product_id: Optional[int] = None
    serial_port: str = ""
    serial_baudrate: int = 115200
    label_type: int = Field(default=1, ge=0, le=255)
    label_density: int = Field(default=5, ge=1, le=5)
    label_quantity: int = Field(default=1, ge=1, le=255)
    set_shutdown_timer: float = 0.0
    print_queue_size: int = Field(default=8, ge=1)

    # Alerts and status
    notify_url: str = ""
    status_port: int = Field(default=0, ge=0, le=65535)

    @field_validator("usb_vendor_id", "usb_product_id", mode="before")
    @classmethod
    def _parse_usb_id(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            return int(v, 16)
        return v

    @field_validator("operators", "blocked_words", mode="before")
    @classmethod
    def _split_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("printer_type")
    @classmethod
    def _check_printer_type(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("usb", "serial"):
            raise ValueError("printer_type must be 'usb' or 'serial'")
        return v

    @field_validator("width")
    @classmethod
    def _check_width(cls, v: int) -> int:
        from chat_printer.protocol.commands import MAX_ROW_WIDTH

        if v % 8 != 0:
            raise ValueError("width must be a multiple of 8")
        if v > MAX_ROW_WIDTH:
            raise ValueError(f"width must be at most {MAX_ROW_WIDTH} (one bitmap row per frame)")
        return v

    @property
    def shutdown_time(self) -> int:
        """Auto-shutdown setting as the device expects it (0 disables, max 4)."""
        return int(min(max(round(self.set_shutdown_timer), 0), 4))

    @property
    def text_parser_enabled(self) -> bool:
        return bool(self.openai_api_key)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name in Settings.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in environ:
            overrides[name] = environ[key]
    return overrides


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Settings:
    """
    Build `Settings` from the JSON config, environment overrides and explicit overrides.

    Precedence (highest first): `overrides`, CHATPRINTER_<FIELD> env vars, JSON file, defaults.

    Raises:
        ConfigInvalid: unreadable JSON, failed validation, or missing chat credentials.
    """
    env = os.environ if environ is None else environ
    try:
        data = load_config(path) or {}
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigInvalid(f"Could not read config: {e}", {"path": path or get_config_path()}) from e
    if not isinstance(data, dict):
        raise ConfigInvalid("Config root must be a JSON object", {"path": path or get_config_path()})

    merged: Dict[str, Any] = {**data, **_env_overrides(env), **dict(overrides or {})}
    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        raise ConfigInvalid("Invalid configuration", {"errors": e.errors(include_url=False)}) from e

    validate_settings(settings)
    return settings


def validate_settings(settings: Settings) -> None:
    """
    Startup checks that depend on several fields at once.
    """
    if not settings.openai_api_key:
        logger.error("No openai_api_key configured; using the local fallback parser")
    if settings.test_text:
        return
    if not settings.irc_token:
        raise ConfigInvalid("No IRC token found")
    if not settings.irc_username:
        raise ConfigInvalid("No IRC username found")
    if not settings.irc_channel:
        raise ConfigInvalid("No IRC channel found")
    if not settings.disable_printer and settings.printer_type == "serial" and not settings.serial_port:
        raise ConfigInvalid("printer_type is 'serial' but no serial_port is set")


__all__ = [
    "ENV_PREFIX",
    "Settings",
    "default_config_path",
    "ensure_dir",
    "get_config_path",
    "load_config",
    "load_settings",
    "save_config",
    "validate_settings",
]
