"""Application runtime wiring."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rights_helper.config.secrets import load_runtime_secrets
from rights_helper.config.settings import AppConfig, load_config
from rights_helper.core.fetcher import StreamingAnswerFetcher
from rights_helper.core.session import AnswerStreamSource, ConversationSession
from rights_helper.security.rate_limit import LimitPolicy, RateLimiter

LOGGER = logging.getLogger(__name__)


class UnknownLanguageError(ValueError):
    """Raised when a language tag is not in the configured set."""


class AppRuntime:
    def __init__(
        self,
        workspace_root: Path,
        config_path: Path,
        secret_service_name: str = "rightshelper",
        config: Optional[AppConfig] = None,
        fetcher: Optional[AnswerStreamSource] = None,
        telegram_bot_token: Optional[str] = None,
    ) -> None:
        self.workspace_root = workspace_root.resolve()
        self.config: AppConfig = config if config is not None else load_config(config_path)
        self.instance_id = self.config.instance.id
        self.secret_service_name = secret_service_name

        if telegram_bot_token is None:
            telegram_bot_token = load_runtime_secrets(service_name=secret_service_name).telegram_bot_token
        self.telegram_bot_token = telegram_bot_token

        self.fetcher: AnswerStreamSource = (
            fetcher if fetcher is not None else StreamingAnswerFetcher.from_config(self.config)
        )
        self.rate_limiter = RateLimiter()
        self._ask_policy = LimitPolicy.per_minute(self.config.rate_limit.ask_per_minute)
        self._sessions: dict[int, ConversationSession] = {}

    @property
    def languages(self) -> list[str]:
        return list(self.config.languages.available)

    def session_for(self, chat_id: int) -> ConversationSession:
        session = self._sessions.get(chat_id)
        if session is None:
            session = ConversationSession(
                fetcher=self.fetcher,
                language=self.config.languages.default,
                session_id=str(chat_id),
            )
            self._sessions[chat_id] = session
            LOGGER.info("session created chat_id=%s language=%s", chat_id, session.language)
        return session

    def check_ask_allowed(self, user_id: int) -> None:
        self.rate_limiter.check(user_id=user_id, channel="ask", policy=self._ask_policy)

    def select_language(self, chat_id: int, language: str) -> str:
        tag = (language or "").strip()
        if tag not in self.config.languages.available:
            raise UnknownLanguageError(f"unsupported language: {tag}")
        session = self.session_for(chat_id)
        session.select_language(tag)
        LOGGER.info("language selected chat_id=%s language=%s", chat_id, tag)
        return tag

    def cancel_answer(self, chat_id: int) -> bool:
        session = self._sessions.get(chat_id)
        if session is None:
            return False
        return session.cancel()

    def cancel_all(self) -> None:
        for session in self._sessions.values():
            session.cancel()
