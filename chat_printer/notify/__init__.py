"""
Push notifications for fatal errors.

`NtfyNotifier` posts the message body to an ntfy topic URL with title,
priority and tag headers. Delivery is best-effort: failures are logged and
never raised, and an empty URL only logs a warning.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0
PRIORITIES = ("min", "low", "default", "high", "urgent")


class NotificationSink(Protocol):
    def send(self, message: str, priority: str = "default") -> bool: ...


class NtfyNotifier:
    def __init__(
        self,
        url: str,
        title: str = "Chat Printer",
        tags: str = "printer,warning",
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.url = url
        self.title = title
        self.tags = tags
        self._client = client

    def send(self, message: str, priority: str = "default") -> bool:
        if not self.url:
            logger.warning("No notify_url configured, not sending notification: %s", message)
            return False
        if priority not in PRIORITIES:
            priority = "default"
        headers = {"Title": self.title, "Priority": priority, "Tags": self.tags}
        try:
            if self._client is not None:
                resp = self._client.post(self.url, content=message, headers=headers)
            else:
                resp = httpx.post(self.url, content=message, headers=headers, timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to send notification: %s", e)
            return False
        logger.info("Notification sent (%s): %s", priority, message)
        return True


__all__ = ["NotificationSink", "NtfyNotifier", "PRIORITIES"]
