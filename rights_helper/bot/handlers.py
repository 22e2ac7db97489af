"""Telegram command handlers."""

from __future__ import annotations

import logging
import time

from telegram import InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import ContextTypes

from rights_helper.bot.live_message import LiveAnswerView, render_telegram_html
from rights_helper.bot.menu import (
    language_markup,
    main_menu_markup,
    menu_action_from_text,
    parse_language_callback,
    resolve_lang,
)
from rights_helper.bot.templates import (
    answer_placeholder_text,
    busy_text,
    cancel_requested_text,
    info_text,
    language_prompt_text,
    language_selected_text,
    nothing_to_cancel_text,
    rate_limited_text,
    start_text,
)
from rights_helper.core.runtime import AppRuntime, UnknownLanguageError
from rights_helper.core.session import ConversationSession
from rights_helper.security.rate_limit import RateLimitExceeded

LOGGER = logging.getLogger(__name__)


def _user_id(update: Update) -> int:
    assert update.effective_user is not None
    return int(update.effective_user.id)


def _chat_id(update: Update) -> int:
    assert update.effective_chat is not None
    return int(update.effective_chat.id)


class TelegramHandlers:
    def __init__(self, runtime: AppRuntime) -> None:
        self.runtime = runtime

    def _session(self, update: Update) -> ConversationSession:
        return self.runtime.session_for(_chat_id(update))

    def _lang(self, update: Update) -> str:
        return resolve_lang(self._session(update).language)

    async def _reply(self, update: Update, text: str, inline_markup: InlineKeyboardMarkup | None = None):
        message = update.message
        if message is None and update.callback_query is not None:
            message = update.callback_query.message
        if message is None:
            return None
        reply_markup = inline_markup if inline_markup is not None else main_menu_markup(self._lang(update))
        try:
            return await message.reply_text(
                render_telegram_html(text),
                parse_mode=ParseMode.HTML,
                disable_web_page_preview=True,
                reply_markup=reply_markup,
            )
        except BadRequest:
            return await message.reply_text(text, reply_markup=reply_markup)

    async def _answer_question(self, update: Update, text: str) -> None:
        session = self._session(update)
        lang = resolve_lang(session.language)
        if session.in_flight:
            await self._reply(update, busy_text(lang))
            return
        try:
            self.runtime.check_ask_allowed(_user_id(update))
        except RateLimitExceeded as exc:
            LOGGER.info("question rate limited user_id=%s", _user_id(update))
            await self._reply(update, rate_limited_text(lang, exc.retry_after_sec))
            return

        placeholder = await self._reply(update, answer_placeholder_text(lang))
        if placeholder is None:
            return
        view = LiveAnswerView(
            placeholder,
            lang=lang,
            min_interval_seconds=self.runtime.config.telegram.edit_interval_seconds,
        )

        started_at = time.time()
        accepted = await session.submit(text, on_update=view.update)
        if not accepted:
            # Another question of this chat got in first while the placeholder was sent.
            try:
                await placeholder.edit_text(busy_text(lang))
            except TelegramError as exc:
                LOGGER.debug("busy notice not shown: %s", exc)
            return
        last = session.transcript.last()
        await view.finish(last.text if last is not None else "")
        elapsed_ms = int((time.time() - started_at) * 1000)
        LOGGER.info("question answered user_id=%s chat_id=%s elapsed_ms=%s", _user_id(update), _chat_id(update), elapsed_ms)

    async def _show_info(self, update: Update) -> None:
        session = self._session(update)
        session.show_info()
        await self._reply(
            update,
            info_text(session.language),
            inline_markup=language_markup(self.runtime.languages, session.language),
        )

    async def _show_language(self, update: Update) -> None:
        session = self._session(update)
        await self._reply(
            update,
            language_prompt_text(session.language),
            inline_markup=language_markup(self.runtime.languages, session.language),
        )

    async def _cancel_answer(self, update: Update) -> None:
        lang = self._lang(update)
        if self.runtime.cancel_answer(_chat_id(update)):
            await self._reply(update, cancel_requested_text(lang))
            return
        await self._reply(update, nothing_to_cancel_text(lang))

    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        self._session(update).show_chat()
        await self._reply(update, start_text(self._lang(update)))

    async def info(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._show_info(update)

    async def language(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._show_language(update)

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._cancel_answer(update)

    async def inline_action(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None:
            return

        tag = parse_language_callback(query.data or "")
        if tag is None:
            await query.answer("Invalid action", show_alert=False)
            return
        try:
            selected = self.runtime.select_language(_chat_id(update), tag)
        except UnknownLanguageError:
            await query.answer("Unsupported language", show_alert=False)
            return
        await query.answer()

        try:
            await query.edit_message_reply_markup(
                reply_markup=language_markup(self.runtime.languages, selected),
            )
        except BadRequest as exc:
            LOGGER.debug("language keyboard not updated: %s", exc)
        await self._reply(update, language_selected_text(selected))

    async def menu_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None:
            return
        text = (update.message.text or "").strip()
        if not text:
            return

        action = menu_action_from_text(text)
        if action == "info":
            await self._show_info(update)
            return
        if action == "language":
            await self._show_language(update)
            return
        if action == "cancel":
            await self._cancel_answer(update)
            return

        self._session(update).show_chat()
        await self._answer_question(update, text)
