"""
Channels and the shutdown flag shared by the pipeline workers.

`Channel` wraps `queue.Queue` with a closed state. Sending never blocks: a full
or closed channel is logged and reported as False so no sender can stall or
crash on it. Receivers see `ChannelClosed` once the channel is closed and
drained.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChannelClosed(Exception):
    """The channel was closed and holds no more items."""


class ShutdownFlag:
    """Cooperative, advisory shutdown signal polled by every worker."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.reason: Optional[str] = None

    def set(self, reason: str = "shutdown requested") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
        logger.info("Shutdown signalled: %s", reason)

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout` seconds, waking early on shutdown. Returns True when set."""
        return self._event.wait(timeout)


class Channel(Generic[T]):
    def __init__(self, name: str, maxsize: int = 0) -> None:
        self.name = name
        self._queue: "queue.Queue[T]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def send(self, item: T) -> bool:
        if self.closed:
            logger.warning("Channel %s is closed; dropping %s", self.name, type(item).__name__)
            return False
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            logger.warning("Channel %s is full; dropping %s", self.name, type(item).__name__)
            return False
        return True

    def receive(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Next item, or None when nothing arrived within `timeout`.

        Raises:
            ChannelClosed: The channel is closed and empty.
        """
        try:
            return self._queue.get(timeout=timeout) if timeout is not None else self._queue.get_nowait()
        except queue.Empty:
            if self.closed:
                raise ChannelClosed(self.name) from None
            return None

    def close(self) -> None:
        if not self.closed:
            self._closed.set()
            logger.info("Channel %s closed", self.name)


__all__ = ["Channel", "ChannelClosed", "ShutdownFlag"]
