"""Config loader for the Rights Helper client."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from rights_helper.core.stream_reader import END_OF_STREAM_MARKER
from rights_helper.models.ask import DEFAULT_LANGUAGE, Language


@dataclass(frozen=True)
class ServerConfig:
    base_url: str
    ask_path: str
    connect_timeout_seconds: float
    write_timeout_seconds: float


@dataclass(frozen=True)
class StreamConfig:
    chunk_size: int
    end_marker: str
    flush_before_marker: bool


@dataclass(frozen=True)
class LanguageConfig:
    available: list[str]
    default: str


@dataclass(frozen=True)
class TelegramConfig:
    edit_interval_seconds: float


@dataclass(frozen=True)
class RateLimitConfig:
    ask_per_minute: int


@dataclass(frozen=True)
class InstanceConfig:
    id: str


@dataclass(frozen=True)
class AppConfig:
    version: str
    server: ServerConfig
    stream: StreamConfig
    languages: LanguageConfig
    telegram: TelegramConfig
    rate_limit: RateLimitConfig
    instance: InstanceConfig


class ConfigLoadError(RuntimeError):
    """Raised when config cannot be loaded."""


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        raise ConfigLoadError(f"missing required config key: {key}")
    return data[key]


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"{key} must be an object")
    return value


def _validate_base_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigLoadError(f"invalid server.base_url: {value}")
    return value.rstrip("/")


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigLoadError(f"{key} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigLoadError(f"{key} must be a number") from exc


def _positive_float(value: Any, key: str) -> float:
    number = _number(value, key)
    if number <= 0:
        raise ConfigLoadError(f"{key} must be > 0")
    return number


def _non_negative_float(value: Any, key: str) -> float:
    number = _number(value, key)
    if number < 0:
        raise ConfigLoadError(f"{key} must be >= 0")
    return number


def _positive_int(value: Any, key: str) -> int:
    number = _number(value, key)
    if not number.is_integer() or number <= 0:
        raise ConfigLoadError(f"{key} must be a positive integer")
    return int(number)


def _flag(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigLoadError(f"{key} must be true or false")
    return value


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigLoadError(f"config file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"config is not valid YAML: {path}") from exc
    if not isinstance(raw, dict):
        raise ConfigLoadError("config root must be an object")

    server_raw = _section(raw, "server")
    stream_raw = _section(raw, "stream")
    languages_raw = _section(raw, "languages")
    telegram_raw = _section(raw, "telegram")
    rate_raw = _section(raw, "rate_limit")
    instance_raw = _section(raw, "instance")

    base_url = _validate_base_url(str(_require(server_raw, "base_url")).strip())
    ask_path = str(server_raw.get("ask_path", "/ask")).strip()
    if not ask_path.startswith("/"):
        raise ConfigLoadError("server.ask_path must start with '/'")

    chunk_size = _positive_int(stream_raw.get("chunk_size", 1024), "stream.chunk_size")
    end_marker = str(stream_raw.get("end_marker", END_OF_STREAM_MARKER))
    if not end_marker.strip():
        raise ConfigLoadError("stream.end_marker must not be empty")

    available_raw = languages_raw.get("available", [lang.value for lang in Language])
    if not isinstance(available_raw, list) or not available_raw:
        raise ConfigLoadError("languages.available must be a non-empty list")
    available = [str(x).strip() for x in available_raw]
    if any(not x for x in available):
        raise ConfigLoadError("languages.available must not contain empty tags")
    default_language = str(languages_raw.get("default", DEFAULT_LANGUAGE)).strip()
    if default_language not in available:
        raise ConfigLoadError(f"languages.default not in languages.available: {default_language}")

    edit_interval = _non_negative_float(
        telegram_raw.get("edit_interval_seconds", 1.0), "telegram.edit_interval_seconds"
    )

    ask_per_minute = _positive_int(rate_raw.get("ask_per_minute", 10), "rate_limit.ask_per_minute")

    instance_id = str(instance_raw.get("id", "default")).strip()
    if not re.fullmatch(r"[A-Za-z0-9_-]{1,40}", instance_id):
        raise ConfigLoadError(f"invalid instance.id: {instance_id}")

    return AppConfig(
        version=str(_require(raw, "version")),
        server=ServerConfig(
            base_url=base_url,
            ask_path=ask_path,
            connect_timeout_seconds=_positive_float(
                server_raw.get("connect_timeout_seconds", 60), "server.connect_timeout_seconds"
            ),
            write_timeout_seconds=_positive_float(
                server_raw.get("write_timeout_seconds", 60), "server.write_timeout_seconds"
            ),
        ),
        stream=StreamConfig(
            chunk_size=chunk_size,
            end_marker=end_marker,
            flush_before_marker=_flag(
                stream_raw.get("flush_before_marker", True), "stream.flush_before_marker"
            ),
        ),
        languages=LanguageConfig(available=available, default=default_language),
        telegram=TelegramConfig(edit_interval_seconds=edit_interval),
        rate_limit=RateLimitConfig(ask_per_minute=ask_per_minute),
        instance=InstanceConfig(id=instance_id),
    )


def apply_env_overrides(config: AppConfig, environ: Mapping[str, str]) -> AppConfig:
    base_url = (environ.get("RH_BASE_URL") or "").strip()
    if not base_url:
        return config
    return replace(config, server=replace(config.server, base_url=_validate_base_url(base_url)))
