"""Per-conversation orchestration between the fetcher and the transcript.

Network reads run in worker threads; every delta is applied to the transcript
back on the event loop, one at a time, before the next read is requested.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from rights_helper.core.fetcher import AnswerStream
from rights_helper.models.ask import DEFAULT_LANGUAGE
from rights_helper.models.transcript import MessageEntry, Transcript, TranscriptStateError

LOGGER = logging.getLogger(__name__)

SCREEN_CHAT = "chat"
SCREEN_INFO = "info"
CANCELLED_MARK = "[cancelled]"

UpdateCallback = Callable[[MessageEntry], Awaitable[None]]


class AnswerStreamSource(Protocol):
    def stream(self, query: str, language: str) -> AnswerStream:
        """Open a lazy delta stream for one question."""


@dataclass
class SessionState:
    language: str = DEFAULT_LANGUAGE
    screen: str = SCREEN_CHAT
    in_flight: bool = False


def _next_delta(stream: AnswerStream) -> Optional[str]:
    return next(stream, None)


class ConversationSession:
    def __init__(self, fetcher: AnswerStreamSource, language: str = DEFAULT_LANGUAGE, session_id: str = "") -> None:
        self.session_id = session_id
        self.transcript = Transcript()
        self.state = SessionState(language=language)
        self._fetcher = fetcher
        self._active: Optional[AnswerStream] = None

    @property
    def in_flight(self) -> bool:
        return self.state.in_flight

    @property
    def language(self) -> str:
        return self.state.language

    def select_language(self, language: str) -> None:
        self.state.language = language

    def show_info(self) -> None:
        self.state.screen = SCREEN_INFO

    def show_chat(self) -> None:
        self.state.screen = SCREEN_CHAT

    async def submit(self, text: str, on_update: Optional[UpdateCallback] = None) -> bool:
        """Run one question/answer turn. Returns False when the submission is dropped."""
        query = (text or "").strip()
        if not query:
            return False
        if self.state.in_flight:
            LOGGER.info("submission ignored while answer in flight session=%s", self.session_id)
            return False
        if self.transcript.append_user(query) is None:
            return False
        placeholder = self.transcript.append_assistant_placeholder()
        if placeholder is None:
            raise TranscriptStateError("assistant placeholder rejected after user entry")

        self.state.in_flight = True
        stream: Optional[AnswerStream] = None
        deltas = 0
        try:
            stream = self._fetcher.stream(query, self.state.language)
            self._active = stream
            while True:
                delta = await asyncio.to_thread(_next_delta, stream)
                if delta is None:
                    break
                self.transcript.append_to_last_assistant(delta)
                deltas += 1
                if on_update is not None:
                    await on_update(placeholder)
        finally:
            if stream is not None:
                if stream.cancelled:
                    self.transcript.append_to_last_assistant(
                        f" {CANCELLED_MARK}" if placeholder.text else CANCELLED_MARK
                    )
                else:
                    # Task cancellation lands here too; the worker may still be reading.
                    stream.cancel()
                stream.close()
            self.transcript.close_assistant()
            self._active = None
            self.state.in_flight = False
            LOGGER.info(
                "answer finished session=%s deltas=%s answer_len=%s",
                self.session_id,
                deltas,
                len(placeholder.text),
            )
        return True

    def cancel(self) -> bool:
        stream = self._active
        if stream is None:
            return False
        LOGGER.info("answer cancel requested session=%s", self.session_id)
        stream.cancel()
        return True
