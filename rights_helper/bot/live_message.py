"""Edits one Telegram message in place while an answer streams in."""

from __future__ import annotations

import asyncio
import html
import logging
import re
import time
from datetime import timedelta
from typing import Any, Callable, Optional

from telegram.constants import ParseMode
from telegram.error import BadRequest, RetryAfter, TelegramError

from rights_helper.bot.templates import answer_text
from rights_helper.models.transcript import MessageEntry

LOGGER = logging.getLogger(__name__)


def render_telegram_html(text: str) -> str:
    # Escape model text first, then allow a minimal Markdown-style bold: **text**.
    escaped = html.escape(text or "")

    def _bold_sub(match: re.Match[str]) -> str:
        inner = match.group(1)
        if not inner.strip():
            return match.group(0)
        return f"<b>{inner}</b>"

    return re.sub(r"\*\*(.+?)\*\*", _bold_sub, escaped)


class LiveAnswerView:
    """Throttled mirror of the open assistant entry.

    ``update`` never waits on Telegram: an edit is started in the background
    only when none is pending and the interval has passed. Interim edits are
    dropped under flood control; ``finish`` always attempts the final text,
    waiting out one flood-control delay if needed.
    """

    def __init__(
        self,
        message: Any,
        lang: str,
        min_interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        max_retry_wait_seconds: float = 5.0,
    ) -> None:
        self._message = message
        self._lang = lang
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._max_retry_wait = max_retry_wait_seconds
        self._last_edit_at: Optional[float] = None
        self._pending: Optional[asyncio.Task[None]] = None
        self._shown = ""

    @property
    def shown_text(self) -> str:
        return self._shown

    async def update(self, entry: MessageEntry) -> None:
        if self._pending is not None and not self._pending.done():
            return
        now = self._clock()
        if self._last_edit_at is not None and now - self._last_edit_at < self._min_interval:
            return
        self._last_edit_at = now
        self._pending = asyncio.create_task(self._edit(entry.text))

    async def finish(self, text: str) -> None:
        if self._pending is not None:
            await self._pending
            self._pending = None
        await self._edit(text, final=True)

    async def _edit(self, text: str, final: bool = False) -> None:
        rendered = answer_text(text, self._lang)
        if rendered == self._shown:
            return
        try:
            await self._send(rendered)
        except RetryAfter as exc:
            if not final:
                LOGGER.info("interim answer edit skipped, flood control: %s", exc)
                return
            await asyncio.sleep(min(_retry_seconds(exc), self._max_retry_wait))
            try:
                await self._send(rendered)
            except TelegramError as retry_exc:
                LOGGER.warning("final answer edit failed after retry: %s", retry_exc)
                return
        except TelegramError as exc:
            LOGGER.warning("answer edit failed final=%s: %s", final, exc)
            return
        self._shown = rendered

    async def _send(self, rendered: str) -> None:
        try:
            await self._message.edit_text(
                render_telegram_html(rendered),
                parse_mode=ParseMode.HTML,
                disable_web_page_preview=True,
            )
        except BadRequest as exc:
            if "not modified" in str(exc).lower():
                return
            LOGGER.debug("html edit rejected, retrying as plain text: %s", exc)
            await self._message.edit_text(rendered)


def _retry_seconds(exc: RetryAfter) -> float:
    delay = exc.retry_after
    if isinstance(delay, timedelta):
        return delay.total_seconds()
    return float(delay)
