"""Transcript store for one conversation.

Entries are kept in insertion order. Only the most recently appended assistant
entry may receive streamed text, and only while it is open.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict

LOGGER = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TranscriptStateError(RuntimeError):
    """Raised in strict mode when a mutation breaks turn ordering."""


class MessageEntry(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    role: Role
    text: str = ""
    open: bool = False


class Transcript:
    def __init__(self, strict: bool = False) -> None:
        self._entries: list[MessageEntry] = []
        self._strict = strict

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[MessageEntry]:
        return iter(self.entries)

    @property
    def entries(self) -> tuple[MessageEntry, ...]:
        return tuple(self._entries)

    def last(self) -> Optional[MessageEntry]:
        if not self._entries:
            return None
        return self._entries[-1]

    def has_open_assistant(self) -> bool:
        last = self.last()
        return last is not None and last.role == Role.ASSISTANT and last.open

    def count(self, role: Role) -> int:
        return sum(1 for entry in self._entries if entry.role == role)

    def _violation(self, message: str) -> None:
        if self._strict:
            raise TranscriptStateError(message)
        LOGGER.warning("transcript contract violation: %s", message)

    def append_user(self, text: str) -> Optional[MessageEntry]:
        value = (text or "").strip()
        if not value:
            return None
        if self.has_open_assistant():
            self._violation("user entry appended while assistant entry is open")
            return None
        last = self.last()
        if last is not None and last.role == Role.USER:
            self._violation("user entry appended before previous user entry got an answer")
            return None
        entry = MessageEntry(role=Role.USER, text=value)
        self._entries.append(entry)
        return entry

    def append_assistant_placeholder(self) -> Optional[MessageEntry]:
        last = self.last()
        if last is None or last.role != Role.USER:
            self._violation("assistant placeholder must follow a user entry")
            return None
        entry = MessageEntry(role=Role.ASSISTANT, text="", open=True)
        self._entries.append(entry)
        return entry

    def append_to_last_assistant(self, delta: str) -> None:
        if not self.has_open_assistant():
            self._violation("delta received without an open assistant entry")
            return
        entry = self._entries[-1]
        entry.text = entry.text + delta

    def close_assistant(self) -> None:
        if self.has_open_assistant():
            self._entries[-1].open = False
