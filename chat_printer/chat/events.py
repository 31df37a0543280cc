"""
Chat events and the IRC line parser.

`parse_line()` never raises: every input maps to exactly one variant, with
`ParseFailure` carrying the reason for lines it could not make sense of.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ChatEvent:
    sender: str
    channel: str
    text: str


@dataclass(frozen=True)
class Privmsg:
    sender: str
    channel: str
    text: str

    def to_event(self) -> ChatEvent:
        return ChatEvent(sender=self.sender, channel=self.channel, text=self.text)


@dataclass(frozen=True)
class Ping:
    token: str


@dataclass(frozen=True)
class Other:
    line: str


@dataclass(frozen=True)
class ParseFailure:
    line: str
    reason: str


IrcMessage = Union[Privmsg, Ping, Other, ParseFailure]


def _split_prefix(line: str) -> tuple[Optional[str], str]:
    if not line.startswith(":"):
        return None, line
    prefix, _, rest = line[1:].partition(" ")
    return prefix, rest


def parse_line(line: str) -> IrcMessage:
    line = line.rstrip("\r\n")
    if not line:
        return ParseFailure(line, "empty line")

    # IRCv3 message tags (Twitch sends them once the tags capability is requested)
    if line.startswith("@"):
        _, sep, line = line.partition(" ")
        if not sep:
            return ParseFailure(line, "tags without a message")

    prefix, rest = _split_prefix(line)
    command, _, params = rest.partition(" ")
    command = command.upper()

    if command == "PING":
        return Ping(params[1:] if params.startswith(":") else params)

    if command == "PRIVMSG":
        if not prefix:
            return ParseFailure(line, "PRIVMSG without a sender")
        target, sep, text = params.partition(" ")
        if not sep or not text.startswith(":"):
            return ParseFailure(line, "PRIVMSG without a message")
        sender = prefix.split("!", 1)[0]
        return Privmsg(sender=sender, channel=target, text=text[1:])

    if not command:
        return ParseFailure(line, "missing command")
    return Other(line)


__all__ = ["ChatEvent", "IrcMessage", "Other", "ParseFailure", "Ping", "Privmsg", "parse_line"]
