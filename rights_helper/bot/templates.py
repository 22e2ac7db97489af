"""Telegram response templates."""

from __future__ import annotations

from rights_helper.bot.menu import resolve_lang

TELEGRAM_TEXT_LIMIT = 4096
_TRUNCATION_PREFIX = "…"


def start_text(lang: str = "en") -> str:
    resolved = resolve_lang(lang)
    if resolved == "es":
        return (
            "Civil Rights Helper está listo.\n"
            "Escribe tu pregunta y la respuesta aparecerá mientras se genera.\n"
            "Usa /info para el aviso y /language para cambiar el idioma.\n"
            "Usa /cancel para detener una respuesta en curso."
        )
    if resolved == "ru":
        return (
            "Civil Rights Helper готов.\n"
            "Напишите вопрос, и ответ будет появляться по мере генерации.\n"
            "/info — предупреждение, /language — выбор языка.\n"
            "/cancel — остановить текущий ответ."
        )
    return (
        "Civil Rights Helper is ready.\n"
        "Type your question and the answer will appear as it is generated.\n"
        "Use /info for the disclaimer and /language to change the language.\n"
        "Use /cancel to stop an answer in progress."
    )


def info_text(language: str) -> str:
    resolved = resolve_lang(language)
    if resolved == "es":
        return (
            "**Información de la app**\n"
            "Esta es una app de uso personal. La información legal no está verificada.\n\n"
            f"Idioma actual: {language}\n"
            "Selecciona el idioma de la app:"
        )
    if resolved == "ru":
        return (
            "**О приложении**\n"
            "Это приложение для личного использования. Юридическая информация не проверена.\n\n"
            f"Текущий язык: {language}\n"
            "Выберите язык приложения:"
        )
    return (
        "**App Info**\n"
        "This is a personal-use app. Legal info is not verified.\n\n"
        f"Current language: {language}\n"
        "Select App Language:"
    )


def language_prompt_text(lang: str) -> str:
    return {
        "es": "Selecciona el idioma de la app:",
        "ru": "Выберите язык приложения:",
    }.get(resolve_lang(lang), "Select App Language:")


def language_selected_text(language: str) -> str:
    return {
        "es": f"Idioma seleccionado: {language}",
        "ru": f"Выбран язык: {language}",
    }.get(resolve_lang(language), f"Language selected: {language}")


def answer_placeholder_text(lang: str) -> str:
    return {
        "es": "Pensando…",
        "ru": "Думаю…",
    }.get(resolve_lang(lang), "Thinking…")


def busy_text(lang: str) -> str:
    return {
        "es": "Todavía estoy respondiendo. Espera o usa /cancel.",
        "ru": "Я ещё отвечаю. Подождите или используйте /cancel.",
    }.get(resolve_lang(lang), "Still answering the previous question. Wait or use /cancel.")


def nothing_to_cancel_text(lang: str) -> str:
    return {
        "es": "No hay ninguna respuesta en curso.",
        "ru": "Сейчас нет ответа в процессе.",
    }.get(resolve_lang(lang), "No answer in progress.")


def cancel_requested_text(lang: str) -> str:
    return {
        "es": "Cancelando la respuesta…",
        "ru": "Отменяю ответ…",
    }.get(resolve_lang(lang), "Cancelling the answer…")


def rate_limited_text(lang: str, retry_after_sec: float) -> str:
    seconds = max(1, int(round(retry_after_sec)))
    return {
        "es": f"Demasiadas preguntas. Inténtalo de nuevo en {seconds} s.",
        "ru": f"Слишком много вопросов. Повторите через {seconds} с.",
    }.get(resolve_lang(lang), f"Too many questions. Try again in {seconds}s.")


def empty_answer_text(lang: str) -> str:
    return {
        "es": "(sin respuesta)",
        "ru": "(нет ответа)",
    }.get(resolve_lang(lang), "(no answer)")


def clamp_message(text: str, limit: int = TELEGRAM_TEXT_LIMIT) -> str:
    # Keep the tail: it holds the newest streamed text.
    if len(text) <= limit:
        return text
    return _TRUNCATION_PREFIX + text[-(limit - len(_TRUNCATION_PREFIX)) :]


def answer_text(text: str, lang: str) -> str:
    if not (text or "").strip():
        return empty_answer_text(lang)
    return clamp_message(text)
