"""
Icon library for Chat Printer.

Responsibilities:
- Load icon images once at startup from a tar archive or a directory
- Resolve an icon key to image bytes: either an exact "set:name" key or a bare
  "name" matching the last segment of a key

The library is built before the workers start and is read-only afterwards.
"""

from __future__ import annotations

import io
import logging
import os
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

from PIL import Image

logger = logging.getLogger(__name__)

# Supported image extensions for icons
ICON_EXTS: List[str] = [".webp", ".png", ".jpg", ".jpeg", ".gif", ".bmp"]


def is_supported_image(filename: str) -> bool:
    """
    True if the filename has a supported image extension.
    """
    ext = os.path.splitext(filename)[1].lower()
    return ext in ICON_EXTS


def _icon_key(path: str) -> str:
    base, _ = os.path.splitext(path)
    return base.lstrip("./")


class IconLibrary:
    """
    In-memory icon lookup table.
    """

    def __init__(self, entries: Optional[Dict[str, bytes]] = None):
        self._entries: Dict[str, bytes] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def load(cls, path: Optional[str]) -> "IconLibrary":
        """
        Build the library from a tar archive or a directory.

        A missing path yields an empty library (text-only rendering).
        """
        if not path or not os.path.exists(path):
            logger.error("Icon database not found at %s; running without icon support", path)
            return cls()
        if os.path.isdir(path):
            return cls._from_directory(Path(path))
        return cls._from_tar(path)

    @classmethod
    def _from_tar(cls, path: str) -> "IconLibrary":
        entries: Dict[str, bytes] = {}
        with tarfile.open(path, "r:*") as archive:
            for member in archive.getmembers():
                if not member.isfile() or not is_supported_image(member.name):
                    continue
                fh = archive.extractfile(member)
                if fh is None:
                    continue
                entries[_icon_key(member.name)] = fh.read()
        logger.info("Loaded %d icons from %s", len(entries), path)
        return cls(entries)

    @classmethod
    def _from_directory(cls, root: Path) -> "IconLibrary":
        entries: Dict[str, bytes] = {}
        for entry in sorted(root.rglob("*")):
            if entry.is_file() and is_supported_image(entry.name):
                entries[_icon_key(str(entry.relative_to(root)))] = entry.read_bytes()
        logger.info("Loaded %d icons from %s", len(entries), root)
        return cls(entries)

    def find(self, name: str) -> Optional[bytes]:
        """
        Resolve an icon key to raw image bytes.

        Keys containing ":" must match exactly; bare names match the segment
        after the last ":" of any key.
        """
        if not name:
            return None
        if ":" in name:
            data = self._entries.get(name)
        else:
            data = next((v for k, v in self._entries.items() if k.split(":")[-1] == name), None)
        if data is not None:
            logger.debug("Found icon %s", name)
        return data

    def open(self, name: str) -> Optional[Image.Image]:
        """
        Decode the icon as an RGBA Pillow image, or None when missing or unreadable.
        """
        data = self.find(name)
        if data is None:
            return None
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
            return img.convert("RGBA")
        except Exception as e:
            logger.warning("Icon %s could not be decoded: %s", name, e)
            return None


__all__ = ["ICON_EXTS", "IconLibrary", "is_supported_image"]
