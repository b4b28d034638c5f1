from __future__ import annotations

import json
from pathlib import Path

import pytest

from threadfork.config import CONFIG_ENV, Settings, load_settings
from threadfork.errors import ConfigError


def _write(path: Path, payload) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_defaults(tmp_path):
    settings = load_settings()
    assert settings.max_variants == 9
    assert settings.insert_attempts == 5
    assert settings.db_path == tmp_path / "data" / "threadfork" / "threadfork.db"
    assert settings.config_path is None


def test_env_vars_override_defaults(monkeypatch):
    monkeypatch.setenv("THREADFORK_MAX_VARIANTS", "3")
    monkeypatch.setenv("THREADFORK_VERBOSE", "true")

    settings = load_settings()
    assert settings.max_variants == 3
    assert settings.verbose is True


def test_default_config_file_is_read(tmp_path):
    path = _write(tmp_path / "config" / "threadfork" / "config.json", {"insert_attempts": 8})

    settings = load_settings()
    assert settings.insert_attempts == 8
    assert settings.config_path == path


def test_explicit_config_file_wins(tmp_path, monkeypatch):
    _write(tmp_path / "config" / "threadfork" / "config.json", {"insert_attempts": 8})
    explicit = _write(tmp_path / "custom.json", {"insert_attempts": 2, "db_path": "~/t.db"})
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "ignored.json"))

    settings = load_settings(explicit)
    assert settings.insert_attempts == 2
    assert settings.db_path == Path("~/t.db").expanduser()


def test_config_env_var_selects_file(tmp_path, monkeypatch):
    path = _write(tmp_path / "elsewhere.json", {"ancestry_scan_depth": 4})
    monkeypatch.setenv(CONFIG_ENV, str(path))
    assert load_settings().ancestry_scan_depth == 4


def test_config_env_var_pointing_at_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "missing.json"))
    with pytest.raises(ConfigError, match="missing file"):
        load_settings()


def test_config_rejects_unknown_keys(tmp_path):
    path = _write(tmp_path / "bad.json", {"max_variants": 9, "extra": "nope"})
    with pytest.raises(ConfigError):
        Settings.from_json_file(path)


def test_config_rejects_out_of_range_values(tmp_path):
    path = _write(tmp_path / "bad.json", {"max_variants": 0})
    with pytest.raises(ConfigError):
        Settings.from_json_file(path)


def test_malformed_json_includes_path(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        Settings.from_json_file(path)
    assert str(path) in str(excinfo.value)


def test_non_object_payload_is_rejected(tmp_path):
    path = _write(tmp_path / "list.json", [1, 2, 3])
    with pytest.raises(ConfigError, match="JSON object"):
        Settings.from_json_file(path)


def test_variant_ceiling_cannot_be_raised_from_file(tmp_path):
    path = _write(tmp_path / "loose.json", {"max_variants": 10})
    with pytest.raises(ConfigError):
        Settings.from_json_file(path)


def test_variant_ceiling_cannot_be_raised_from_env(monkeypatch):
    monkeypatch.setenv("THREADFORK_MAX_VARIANTS", "15")
    with pytest.raises(ConfigError):
        load_settings()
