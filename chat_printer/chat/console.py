"""
Local chat source reading one message per line from a text stream (stdin by default).

Used in `test_text` mode to drive the pipeline without a chat connection.
End of input is reported through `exhausted`.
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, TextIO

from chat_printer.chat.events import ChatEvent

logger = logging.getLogger(__name__)

CONSOLE_SENDER = "console"


class ConsoleChatSource:
    def __init__(self, stream: Optional[TextIO] = None, out: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stdin
        self._out = out or sys.stdout
        self.exhausted = False

    def poll(self) -> List[ChatEvent]:
        if self.exhausted:
            return []
        line = self._stream.readline()
        if not line:
            self.exhausted = True
            logger.info("Console input closed")
            return []
        text = line.strip()
        if not text:
            return []
        return [ChatEvent(sender=CONSOLE_SENDER, channel=CONSOLE_SENDER, text=text)]

    def reply(self, channel: str, text: str) -> None:
        print(f"> {text}", file=self._out, flush=True)

    def close(self) -> None:
        self.exhausted = True


__all__ = ["CONSOLE_SENDER", "ConsoleChatSource"]
