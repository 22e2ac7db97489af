"""Telegram in-chat persistent menu and language keyboard (i18n)."""

from __future__ import annotations

from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup

LANGS = ("en", "es", "ru")
MENU_ACTIONS = ("info", "language", "cancel")

LANGUAGE_TO_UI = {
    "English": "en",
    "Spanish": "es",
    "Russian": "ru",
}

MENU_TEXTS = {
    "en": {
        "info": "Info",
        "language": "Language",
        "cancel": "Cancel answer",
    },
    "es": {
        "info": "Información",
        "language": "Idioma",
        "cancel": "Cancelar respuesta",
    },
    "ru": {
        "info": "Информация",
        "language": "Язык",
        "cancel": "Отменить ответ",
    },
}

MENU_LAYOUT = (
    ("info", "language"),
    ("cancel",),
)

INPUT_PLACEHOLDERS = {
    "en": "Type your question",
    "es": "Escribe tu pregunta",
    "ru": "Введите ваш вопрос",
}

LANGUAGE_CALLBACK_PREFIX = "lang|"


def resolve_lang(raw: str) -> str:
    value = (raw or "").strip()
    if value in LANGUAGE_TO_UI:
        return LANGUAGE_TO_UI[value]
    lang = value.lower()
    if lang in LANGS:
        return lang
    return "en"


def menu_labels(lang: str) -> dict[str, str]:
    return dict(MENU_TEXTS[resolve_lang(lang)])


def menu_action_from_text(text: str) -> Optional[str]:
    raw = (text or "").strip()
    if not raw:
        return None
    for lang in LANGS:
        for action, label in MENU_TEXTS[lang].items():
            if raw == label:
                return action
    return None


def main_menu_markup(lang: str) -> ReplyKeyboardMarkup:
    labels = menu_labels(lang)
    keyboard = [[labels[action] for action in row] for row in MENU_LAYOUT]
    return ReplyKeyboardMarkup(
        keyboard=keyboard,
        resize_keyboard=True,
        is_persistent=True,
        one_time_keyboard=False,
        input_field_placeholder=INPUT_PLACEHOLDERS[resolve_lang(lang)],
    )


def language_callback_data(language: str) -> str:
    return f"{LANGUAGE_CALLBACK_PREFIX}{language}"


def parse_language_callback(raw: str) -> Optional[str]:
    data = raw or ""
    if not data.startswith(LANGUAGE_CALLBACK_PREFIX):
        return None
    tag = data[len(LANGUAGE_CALLBACK_PREFIX) :].strip()
    return tag or None


def language_markup(available: list[str], selected: str) -> InlineKeyboardMarkup:
    rows = []
    for tag in available:
        mark = "🔘" if tag == selected else "⚪"
        rows.append([InlineKeyboardButton(f"{mark} {tag}", callback_data=language_callback_data(tag))])
    return InlineKeyboardMarkup(rows)
