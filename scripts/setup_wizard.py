#!/usr/bin/env python3
"""First-run setup for Rights Helper.

Purpose:
- Point config/app.yaml at the question-answering backend
- Pick the default answer language
- Store the Telegram bot token in the OS credential store
"""

from __future__ import annotations

import argparse
import getpass
import os
import re
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

BASE_SERVICE_NAME = "rightshelper"
CONFIG_PATH = Path("config/app.yaml")
INSTANCE_CONFIG_DIR = Path("config/instances")
DEFAULT_INSTANCE_ID = "default"
LANGUAGES = ("English", "Spanish", "Russian")


def _resolve_instance_id(raw: str) -> str:
    value = (raw or "").strip()
    if not value:
        return DEFAULT_INSTANCE_ID
    if not re.fullmatch(r"[A-Za-z0-9_-]{1,40}", value):
        raise RuntimeError(f"invalid instance_id: {value}")
    return value


def _instance_config_path(repo_root: Path, instance_id: str) -> Path:
    if instance_id == DEFAULT_INSTANCE_ID:
        return repo_root / CONFIG_PATH
    return repo_root / INSTANCE_CONFIG_DIR / instance_id / "app.yaml"


def _service_name_for_instance(instance_id: str) -> str:
    if instance_id == DEFAULT_INSTANCE_ID:
        return BASE_SERVICE_NAME
    return f"{BASE_SERVICE_NAME}.{instance_id}"


def _seed_instance_config(repo_root: Path, instance_id: str) -> Path:
    target = _instance_config_path(repo_root=repo_root, instance_id=instance_id)
    if target.exists():
        return target
    source = repo_root / CONFIG_PATH
    if not source.exists():
        raise RuntimeError(f"config file not found: {source}")
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)
    print(f"- created instance config: {target}")
    return target


def load_config_dict(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise RuntimeError(f"config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise RuntimeError("config file must be a YAML object")
    return data


def save_config_dict(path: Path, data: dict[str, Any]) -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup = path.with_suffix(path.suffix + f".bak.{ts}")
    shutil.copy2(path, backup)
    path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=False), encoding="utf-8")
    return backup


def ask_yes_no(question: str, default_yes: bool = True) -> bool:
    suffix = " [Y/n]: " if default_yes else " [y/N]: "
    while True:
        raw = input(question + suffix).strip().lower()
        if not raw:
            return default_yes
        if raw in {"y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please answer y or n.")


def choose_base_url(current: str) -> str:
    while True:
        raw = input(f"Backend base URL [{current}]: ").strip()
        value = raw or current
        if re.match(r"^https?://[^/\s]+", value):
            return value.rstrip("/")
        print("Enter an http(s) URL, e.g. https://example.org:3000")


def choose_language(current: str) -> str:
    print("\nDefault answer language:")
    for idx, tag in enumerate(LANGUAGES, start=1):
        print(f"  {idx}) {tag}")
    while True:
        raw = input(f"Language [{current}]: ").strip()
        if not raw:
            return current
        if raw.isdigit() and 1 <= int(raw) <= len(LANGUAGES):
            return LANGUAGES[int(raw) - 1]
        for tag in LANGUAGES:
            if raw.lower() == tag.lower():
                return tag
        print("Enter 1-3 or a language name.")


def _import_keyring():
    try:
        import keyring  # type: ignore
    except Exception as exc:  # pragma: no cover - runtime check
        raise RuntimeError("keyring is required. Install dependencies first.") from exc
    return keyring


def _inspect_telegram_token(token: str) -> tuple[Optional[dict[str, Any]], Optional[str]]:
    try:
        resp = httpx.get(f"https://api.telegram.org/bot{token}/getMe", timeout=10.0)
        payload = resp.json()
    except httpx.HTTPError as exc:
        return None, str(exc) or type(exc).__name__
    except ValueError:
        return None, "invalid response"

    if not isinstance(payload, dict) or not payload.get("ok"):
        desc = "-"
        if isinstance(payload, dict):
            desc = str(payload.get("description") or "-")
        return None, desc

    result = payload.get("result")
    if not isinstance(result, dict):
        return None, "invalid response"
    username = str(result.get("username") or "")
    bot_id = result.get("id")
    if not username or bot_id is None:
        return None, "missing bot identity"
    return {"username": username, "id": int(bot_id)}, None


def configure_telegram_secret(service_name: str) -> Optional[dict[str, Any]]:
    keyring = _import_keyring()
    account = "telegram_bot_token"
    existing = keyring.get_password(service_name, account)
    if existing:
        info, error = _inspect_telegram_token(existing)
        if info:
            print(f"- current bot: @{info['username']} (id={info['id']})")
        elif error:
            print(f"- stored token could not be verified: {error}")
        if not ask_yes_no(f"Replace stored {account}?", default_yes=False):
            print(f"- keeping {account}")
            return info

    while True:
        value = getpass.getpass("Telegram bot token: ").strip()
        if not value:
            print(f"{account} is required.")
            continue
        info, error = _inspect_telegram_token(value)
        if not info:
            print(f"- token verification failed: {error or '-'}")
            continue
        keyring.set_password(service_name, account, value)
        print(f"- stored {account} for @{info['username']}")
        return info


def main() -> int:
    parser = argparse.ArgumentParser(description="Rights Helper setup wizard")
    parser.add_argument("--instance-id", help="Instance id for multi-bot isolation (alnum/_/-)")
    parser.add_argument("--base-url", help="Backend base URL")
    parser.add_argument("--language", choices=LANGUAGES, help="Default answer language")
    parser.add_argument("--non-interactive", action="store_true", help="Use CLI args only")
    parser.add_argument("--skip-secrets", action="store_true", help="Skip OS credential storage prompts")
    args = parser.parse_args()

    repo_root = Path(__file__).resolve().parents[1]
    try:
        instance_id = _resolve_instance_id(args.instance_id or os.getenv("RH_INSTANCE_ID", ""))
    except RuntimeError as exc:
        print(str(exc))
        return 2

    config_path = _instance_config_path(repo_root=repo_root, instance_id=instance_id)
    if instance_id != DEFAULT_INSTANCE_ID:
        config_path = _seed_instance_config(repo_root=repo_root, instance_id=instance_id)

    config = load_config_dict(config_path)
    server = config.setdefault("server", {})
    languages = config.setdefault("languages", {})
    instance = config.setdefault("instance", {})
    service_name = _service_name_for_instance(instance_id)

    print("Rights Helper setup")
    print(f"- repo: {repo_root}")
    print(f"- config: {config_path}")
    print(f"- instance: {instance_id}")
    print(f"- secrets service: {service_name}")

    current_url = str(server.get("base_url", "https://10.0.2.2:3000"))
    current_language = str(languages.get("default", "English"))
    if args.non_interactive:
        if not args.base_url:
            print("--non-interactive requires --base-url")
            return 2
        base_url = args.base_url.rstrip("/")
        language = args.language or current_language
    else:
        base_url = args.base_url or choose_base_url(current_url)
        language = args.language or choose_language(current_language)

    server["base_url"] = base_url
    languages["default"] = language
    instance["id"] = instance_id
    backup = save_config_dict(config_path, config)
    print(f"- config updated (backup: {backup})")

    telegram_info: Optional[dict[str, Any]] = None
    if not args.skip_secrets:
        telegram_info = configure_telegram_secret(service_name=service_name)

    print("\nNext:")
    print(f"  python -m rights_helper.main --instance-id {instance_id}")
    if telegram_info and telegram_info.get("username"):
        print(f"  then open @{telegram_info['username']} in Telegram and send /start")
    return 0


if __name__ == "__main__":
    sys.exit(main())
