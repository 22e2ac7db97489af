from pathlib import Path

import pytest
import yaml

from rights_helper.config.settings import ConfigLoadError, apply_env_overrides, load_config


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "app.yaml"
    path.write_text(yaml.safe_dump(data, allow_unicode=False), encoding="utf-8")
    return path


def _source() -> dict:
    return yaml.safe_load(Path("config/app.yaml").read_text(encoding="utf-8"))


def test_default_config_loads() -> None:
    config = load_config(Path("config/app.yaml"))
    assert config.server.ask_path == "/ask"
    assert config.stream.end_marker == "[[END_OF_STREAM]]"
    assert config.languages.available == ["English", "Spanish", "Russian"]
    assert config.languages.default == "English"
    assert config.server.connect_timeout_seconds == 60


def test_missing_file_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "missing.yaml")


def test_invalid_base_url_rejected(tmp_path: Path) -> None:
    src = _source()
    src["server"]["base_url"] = "ftp://example.org"
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, src))


def test_default_language_must_be_available(tmp_path: Path) -> None:
    src = _source()
    src["languages"]["default"] = "German"
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, src))


def test_chunk_size_must_be_positive(tmp_path: Path) -> None:
    src = _source()
    src["stream"]["chunk_size"] = 0
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, src))


def test_invalid_instance_id_rejected(tmp_path: Path) -> None:
    src = _source()
    src["instance"] = {"id": "../bad"}
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, src))


def test_optional_sections_fall_back_to_defaults(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, {"version": "1", "server": {"base_url": "http://localhost:3000/"}}))
    assert config.server.base_url == "http://localhost:3000"
    assert config.stream.chunk_size == 1024
    assert config.stream.flush_before_marker is True
    assert config.rate_limit.ask_per_minute == 10
    assert config.instance.id == "default"


def test_env_override_replaces_base_url() -> None:
    config = load_config(Path("config/app.yaml"))
    updated = apply_env_overrides(config, {"RH_BASE_URL": "https://qa.example.org/"})
    assert updated.server.base_url == "https://qa.example.org"
    assert apply_env_overrides(config, {}) is config


@pytest.mark.parametrize(
    ("section", "key", "value"),
    [
        ("stream", "chunk_size", "big"),
        ("stream", "chunk_size", 1.5),
        ("telegram", "edit_interval_seconds", "soon"),
        ("telegram", "edit_interval_seconds", -1),
        ("rate_limit", "ask_per_minute", None),
        ("rate_limit", "ask_per_minute", True),
        ("server", "connect_timeout_seconds", [60]),
    ],
)
def test_bad_numbers_raise_config_error(tmp_path: Path, section: str, key: str, value) -> None:
    src = _source()
    src.setdefault(section, {})[key] = value
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, src))


def test_quoted_flush_flag_rejected(tmp_path: Path) -> None:
    src = _source()
    src["stream"]["flush_before_marker"] = "false"
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, src))


def test_flush_flag_false_is_kept(tmp_path: Path) -> None:
    src = _source()
    src["stream"]["flush_before_marker"] = False
    assert load_config(_write(tmp_path, src)).stream.flush_before_marker is False
