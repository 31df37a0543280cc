"""
Moderation filter applied to chat messages before anything is drawn.

Blocked words are matched as whole words, case-insensitively, after folding
common leetspeak substitutions. Letters spelled out with separators
("b a d", "b.a.d") are joined back before matching.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Set

from chat_printer.core.errors import ModerationReject

_LEET = str.maketrans({"0": "o", "1": "i", "3": "e", "4": "a", "5": "s", "7": "t", "@": "a", "$": "s"})
_SEPARATORS = re.compile(r"[^\w]+")
_CONTROL = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

MAX_MESSAGE_LEN = 200


def _fold(text: str) -> str:
    return text.lower().translate(_LEET)


def _words(text: str) -> Set[str]:
    tokens = [t for t in _SEPARATORS.split(_fold(text)) if t]
    words = set(tokens)
    run: List[str] = []
    for token in tokens + [""]:
        if len(token) == 1:
            run.append(token)
            continue
        if len(run) > 1:
            words.add("".join(run))
        run = []
    return words


class ModerationFilter:
    def __init__(self, blocked_words: Iterable[str] = (), enabled: bool = True, max_length: int = MAX_MESSAGE_LEN):
        self.enabled = enabled
        self.max_length = max_length
        self.blocked: Set[str] = {_fold(w.strip()) for w in blocked_words if w.strip()}

    def check(self, sender: str, text: str) -> None:
        """
        Raises:
            ModerationReject: The message must not be printed.
        """
        if _CONTROL.search(text):
            raise ModerationReject(sender, "message contains control characters")
        if len(text) > self.max_length:
            raise ModerationReject(sender, "message too long")
        if not self.enabled or not self.blocked:
            return
        if _words(text) & self.blocked:
            raise ModerationReject(sender, "message contains blocked words")


__all__ = ["ModerationFilter"]
