"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from sockscope.config import ConfigError, SockscopeConfig, read_config_file

_ENV_VARS = (
    "SOCKSCOPE_CONFIG",
    "SOCKSCOPE_INTERVAL",
    "SOCKSCOPE_THEME",
    "SOCKSCOPE_NO_COLOR",
    "SOCKSCOPE_FIXTURE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_defaults_without_file(tmp_path):
    config = SockscopeConfig.load()
    assert config.config_dir == tmp_path / "xdg" / "sockscope"
    assert config.interval == 1.0
    assert config.theme == "auto"
    assert config.fields == []
    assert config.fixture is None


def test_xdg_config_file_is_read(tmp_path):
    _write(
        tmp_path / "xdg" / "sockscope" / "config.yaml",
        "defaults:\n  interval: 2.5\n  numeric: true\n  fields: pid,process\n  theme: light\n",
    )
    config = SockscopeConfig.load()
    assert config.interval == 2.5
    assert config.numeric is True
    assert config.fields == ["pid", "process"]
    assert config.theme == "light"


def test_explicit_path_wins(tmp_path):
    path = _write(tmp_path / "custom.yaml", "defaults:\n  sort_by: pid:desc\n")
    assert SockscopeConfig.load(path).sort_by == "pid:desc"


def test_env_config_path(monkeypatch, tmp_path):
    path = _write(tmp_path / "env.yaml", "defaults:\n  output_format: csv\n")
    monkeypatch.setenv("SOCKSCOPE_CONFIG", str(path))
    assert SockscopeConfig.load().output_format == "csv"


def test_env_overrides(monkeypatch, tmp_path):
    _write(tmp_path / "xdg" / "sockscope" / "config.yaml", "defaults:\n  interval: 5\n")
    monkeypatch.setenv("SOCKSCOPE_INTERVAL", "0.5")
    monkeypatch.setenv("SOCKSCOPE_THEME", "dark")
    monkeypatch.setenv("SOCKSCOPE_FIXTURE", "/tmp/snap.json")
    config = SockscopeConfig.load()
    assert config.interval == 0.5
    assert config.theme == "dark"
    assert config.fixture == "/tmp/snap.json"


def test_no_color_env(monkeypatch):
    monkeypatch.setenv("SOCKSCOPE_NO_COLOR", "1")
    config = SockscopeConfig.load()
    assert config.color == "never"
    assert config.theme == "mono"


def test_bad_env_interval_is_ignored(monkeypatch, caplog):
    monkeypatch.setenv("SOCKSCOPE_INTERVAL", "fast")
    assert SockscopeConfig.load().interval == 1.0
    assert "SOCKSCOPE_INTERVAL" in caplog.text


def test_malformed_file_falls_back_to_defaults(tmp_path, caplog):
    path = _write(tmp_path / "bad.yaml", "defaults: [unclosed\n")
    config = SockscopeConfig.load(path)
    assert config.interval == 1.0
    assert "Ignoring config file" in caplog.text


def test_invalid_value_falls_back_to_defaults(tmp_path, caplog):
    path = _write(tmp_path / "bad.yaml", "defaults:\n  interval: -1\n  theme: light\n")
    config = SockscopeConfig.load(path)
    assert config.interval == 1.0
    assert config.theme == "auto"
    assert "interval must be positive" in caplog.text


def test_unknown_keys_are_ignored(tmp_path):
    path = _write(tmp_path / "extra.yaml", "defaults:\n  colour: blue\n  ipv4: true\n")
    config = SockscopeConfig.load(path)
    assert config.ipv4 is True


def test_read_config_file_errors(tmp_path):
    path = _write(tmp_path / "list.yaml", "- a\n- b\n")
    with pytest.raises(ConfigError, match="mapping"):
        read_config_file(path)

    path = _write(tmp_path / "defaults.yaml", "defaults: 3\n")
    with pytest.raises(ConfigError, match="'defaults' must be a mapping"):
        read_config_file(path)


def test_empty_file_is_fine(tmp_path):
    assert read_config_file(_write(tmp_path / "empty.yaml", "")) == {}
