"""
Twitch-style IRC chat source over TLS.

Only what the printer needs: authenticate, join one channel, answer PINGs,
surface PRIVMSGs and send replies. Connection problems never escape `poll()`;
the source backs off, reconnects once the backoff has passed and returns no
events meanwhile. A single poll never blocks for longer than the read timeout.
"""

from __future__ import annotations

import logging
import socket
import ssl
import time
from typing import List, Optional

from chat_printer.chat.events import ChatEvent, ParseFailure, Ping, Privmsg, parse_line

logger = logging.getLogger(__name__)

READ_TIMEOUT = 1.0
MAX_BACKOFF = 30.0


class IrcChatSource:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        token: str,
        channel: str,
        *,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.token = token if token.startswith("oauth:") else f"oauth:{token}"
        self.channel = channel if channel.startswith("#") else f"#{channel}"
        self.use_tls = use_tls
        self._sock: Optional[socket.socket] = None
        self._pending = b""
        self._backoff = 1.0
        self._retry_at = 0.0

    def connect(self) -> None:
        raw = socket.create_connection((self.host, self.port), timeout=10)
        if self.use_tls:
            ctx = ssl.create_default_context()
            sock: socket.socket = ctx.wrap_socket(raw, server_hostname=self.host)
        else:
            sock = raw
        sock.settimeout(READ_TIMEOUT)
        self._sock = sock
        self._pending = b""
        self._write(f"PASS {self.token}")
        self._write(f"NICK {self.username}")
        self._write(f"JOIN {self.channel}")
        self._backoff = 1.0
        logger.info("Connected to %s:%d as %s, joined %s", self.host, self.port, self.username, self.channel)

    def _write(self, line: str) -> None:
        if self._sock is None:
            raise ConnectionError("not connected")
        self._sock.sendall(line.encode("utf-8") + b"\r\n")

    def _drop_connection(self, reason: str) -> None:
        logger.warning("Chat connection lost (%s); retrying in %.0fs", reason, self._backoff)
        self.close()
        self._retry_at = time.monotonic() + self._backoff
        self._backoff = min(self._backoff * 2, MAX_BACKOFF)

    def poll(self) -> List[ChatEvent]:
        """
        Read whatever arrived within the read timeout. Empty on timeout or failure.
        """
        if self._sock is None:
            remaining = self._retry_at - time.monotonic()
            if remaining > 0:
                time.sleep(min(remaining, READ_TIMEOUT))
                return []
        try:
            if self._sock is None:
                self.connect()
            assert self._sock is not None
            chunk = self._sock.recv(4096)
        except socket.timeout:
            return []
        except (OSError, ConnectionError) as e:
            self._drop_connection(str(e))
            return []
        if not chunk:
            self._drop_connection("closed by server")
            return []

        data = self._pending + chunk
        *lines, self._pending = data.split(b"\r\n")
        events: List[ChatEvent] = []
        for raw in lines:
            msg = parse_line(raw.decode("utf-8", errors="replace"))
            if isinstance(msg, Ping):
                self._send_quietly(f"PONG :{msg.token}")
            elif isinstance(msg, Privmsg):
                events.append(msg.to_event())
            elif isinstance(msg, ParseFailure) and msg.line:
                logger.debug("Unparsed chat line (%s): %s", msg.reason, msg.line)
        return events

    def _send_quietly(self, line: str) -> None:
        try:
            self._write(line)
        except (OSError, ConnectionError) as e:
            logger.warning("Chat write failed: %s", e)

    def reply(self, channel: str, text: str) -> None:
        self._send_quietly(f"PRIVMSG {channel or self.channel} :{text}")

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.debug("Error closing chat socket: %s", e)
        finally:
            self._sock = None


__all__ = ["IrcChatSource"]
