"""Rights Helper Telegram bot entrypoint."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import re

from telegram import BotCommand, MenuButtonCommands
from telegram.ext import Application, ApplicationBuilder, CallbackQueryHandler, CommandHandler, MessageHandler, filters

from rights_helper.bot.handlers import TelegramHandlers
from rights_helper.bot.menu import LANGUAGE_CALLBACK_PREFIX
from rights_helper.config.settings import ConfigLoadError, apply_env_overrides, load_config
from rights_helper.core.runtime import AppRuntime
from rights_helper.secrets.base import SecretStoreError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("telegram").setLevel(logging.WARNING)

BOT_COMMANDS = [
    BotCommand("start", "Open quick guide"),
    BotCommand("info", "App info and language"),
    BotCommand("language", "Select answer language"),
    BotCommand("cancel", "Stop the answer in progress"),
]


def _resolve_instance_id(raw: str) -> str:
    value = (raw or "default").strip()
    if not value:
        return "default"
    if not re.fullmatch(r"[A-Za-z0-9_-]{1,40}", value):
        raise ValueError("instance_id must match [A-Za-z0-9_-]{1,40}")
    return value


def _default_config_path(workspace_root: Path, instance_id: str) -> Path:
    if instance_id == "default":
        return workspace_root / "config/app.yaml"
    return workspace_root / "config" / "instances" / instance_id / "app.yaml"


def _default_secret_service_name(instance_id: str) -> str:
    if instance_id == "default":
        return "rightshelper"
    return f"rightshelper.{instance_id}"


async def _post_init(application: Application) -> None:
    """Register command menu shown in Telegram chat UI."""
    await application.bot.set_my_commands(commands=BOT_COMMANDS)
    await application.bot.set_chat_menu_button(menu_button=MenuButtonCommands())


def _build_post_shutdown(runtime: AppRuntime):
    async def _post_shutdown(application: Application) -> None:
        runtime.cancel_all()

    return _post_shutdown


def main() -> int:
    parser = argparse.ArgumentParser(description="Rights Helper Telegram runner")
    parser.add_argument("--instance-id", help="Instance id for multi-bot isolation (default: default)")
    parser.add_argument("--config", help="Path to app.yaml (overrides RH_CONFIG_PATH)")
    args = parser.parse_args()

    workspace_root = Path(os.getenv("RH_WORKSPACE_ROOT", Path(__file__).resolve().parents[1]))
    instance_id = _resolve_instance_id(args.instance_id or os.getenv("RH_INSTANCE_ID", "default"))

    config_path_raw = (args.config or os.getenv("RH_CONFIG_PATH", "")).strip()
    if config_path_raw:
        config_path = Path(config_path_raw)
    else:
        config_path = _default_config_path(workspace_root=workspace_root, instance_id=instance_id)

    secret_service_name = os.getenv("RH_SECRET_SERVICE_NAME", "").strip() or _default_secret_service_name(
        instance_id=instance_id
    )
    logging.info(
        "starting instance_id=%s config=%s secret_service=%s",
        instance_id,
        config_path,
        secret_service_name,
    )

    try:
        config = apply_env_overrides(load_config(config_path), os.environ)
        runtime = AppRuntime(
            workspace_root=workspace_root,
            config_path=config_path,
            secret_service_name=secret_service_name,
            config=config,
        )
    except SecretStoreError as exc:
        logging.error("startup blocked by missing secret: %s", exc)
        print(
            "Startup failed: required secret is missing in OS credential store.\n"
            f"- instance_id: {instance_id}\n"
            f"- secret_service: {secret_service_name}\n"
            f"- detail: {exc}\n"
            "Run the setup script first: python scripts/setup_wizard.py"
        )
        return 2
    except ConfigLoadError as exc:
        logging.error("startup blocked by invalid config: %s", exc)
        print(
            "Startup failed: config is invalid.\n"
            f"- config: {config_path}\n"
            f"- detail: {exc}\n"
            "Run the setup script to repair config defaults."
        )
        return 2

    logging.info("answer endpoint=%s%s", runtime.config.server.base_url, runtime.config.server.ask_path)
    handlers = TelegramHandlers(runtime)

    app = (
        ApplicationBuilder()
        .token(runtime.telegram_bot_token)
        .concurrent_updates(True)
        .post_init(_post_init)
        .post_shutdown(_build_post_shutdown(runtime))
        .build()
    )

    app.add_handler(CommandHandler("start", handlers.start))
    app.add_handler(CommandHandler("info", handlers.info))
    app.add_handler(CommandHandler("language", handlers.language))
    app.add_handler(CommandHandler("cancel", handlers.cancel))
    app.add_handler(CallbackQueryHandler(handlers.inline_action, pattern=rf"^{re.escape(LANGUAGE_CALLBACK_PREFIX)}"))
    app.add_handler(MessageHandler(filters.TEXT & (~filters.COMMAND), handlers.menu_text))

    app.run_polling(drop_pending_updates=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
