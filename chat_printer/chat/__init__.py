"""
Chat collaborators: event sources, the IRC line parser and moderation.

A chat source is anything with `poll() -> list[ChatEvent]`, `reply(channel, text)`
and `close()`. `poll()` returns an empty list on transient failures.
"""

from __future__ import annotations

from typing import List, Protocol

from chat_printer.chat.console import ConsoleChatSource
from chat_printer.chat.events import ChatEvent, parse_line
from chat_printer.chat.irc import IrcChatSource
from chat_printer.chat.moderation import ModerationFilter


class ChatEventSource(Protocol):
    def poll(self) -> List[ChatEvent]: ...

    def reply(self, channel: str, text: str) -> None: ...

    def close(self) -> None: ...


__all__ = [
    "ChatEvent",
    "ChatEventSource",
    "ConsoleChatSource",
    "IrcChatSource",
    "ModerationFilter",
    "parse_line",
]
