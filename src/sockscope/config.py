"""Global configuration: XDG paths, YAML defaults, env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_CONFIG_FILENAME = "config.yaml"
_COLOR_MODES = ("auto", "always", "never")
_OUTPUT_FORMATS = ("table", "plain", "csv", "json")


class ConfigError(ValueError):
    """The config file exists but cannot be used."""


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "sockscope"
    return Path.home() / ".config" / "sockscope"


@dataclass
class SockscopeConfig:
    """Application-wide defaults; command-line flags override these."""

    config_dir: Path = field(default_factory=_default_config_dir)
    interval: float = 1.0
    numeric: bool = False
    fields: list[str] = field(default_factory=list)
    theme: str = "auto"
    color: str = "auto"
    sort_by: str = ""
    output_format: str = "table"
    no_headers: bool = False
    ipv4: bool = False
    ipv6: bool = False
    fixture: str | None = None

    @property
    def config_file(self) -> Path:
        return self.config_dir / _CONFIG_FILENAME

    @classmethod
    def load(cls, path: str | Path | None = None) -> SockscopeConfig:
        """Build the config from the YAML file (if any) and the environment.

        A malformed file is logged and ignored; defaults are used instead.
        """
        config = cls()

        explicit = path or os.environ.get("SOCKSCOPE_CONFIG")
        config_path = Path(explicit) if explicit else config.config_file
        if config_path.is_file():
            try:
                config = config.merged(read_config_file(config_path))
            except ConfigError as e:
                logger.warning("Ignoring config file %s: %s", config_path, e)
        elif explicit:
            logger.warning("Config file %s not found, using defaults", config_path)

        env_interval = os.environ.get("SOCKSCOPE_INTERVAL")
        if env_interval:
            try:
                config.interval = _positive_float("interval", env_interval)
            except ConfigError as e:
                logger.warning("Ignoring SOCKSCOPE_INTERVAL: %s", e)

        env_theme = os.environ.get("SOCKSCOPE_THEME")
        if env_theme:
            config.theme = env_theme

        if os.environ.get("SOCKSCOPE_NO_COLOR"):
            config.color = "never"
            config.theme = "mono"

        env_fixture = os.environ.get("SOCKSCOPE_FIXTURE")
        if env_fixture:
            config.fixture = env_fixture

        return config

    def merged(self, values: dict[str, Any]) -> SockscopeConfig:
        """Copy with validated ``defaults:`` values applied."""
        known = {f.name for f in dataclasses.fields(self)} - {"config_dir", "fixture"}
        updates: dict[str, Any] = {}
        for key, value in values.items():
            if key not in known:
                logger.debug("Unknown config key %r ignored", key)
                continue
            updates[key] = _validate(key, value)
        return replace(self, **updates)


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Return the ``defaults:`` mapping of a config file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}") from e
    except OSError as e:
        raise ConfigError(str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("top level must be a mapping")
    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ConfigError("'defaults' must be a mapping")
    return defaults


def _positive_float(key: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got {value!r}") from e
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return number


def _validate(key: str, value: Any) -> Any:
    if key == "interval":
        return _positive_float(key, value)
    if key in ("numeric", "no_headers", "ipv4", "ipv6"):
        if not isinstance(value, bool):
            raise ConfigError(f"{key} must be true or false")
        return value
    if key == "fields":
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError("fields must be a list of field names")
        return list(value)
    if key == "color":
        if value not in _COLOR_MODES:
            raise ConfigError(f"color must be one of {', '.join(_COLOR_MODES)}")
        return value
    if key == "output_format":
        if value not in _OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format must be one of {', '.join(_OUTPUT_FORMATS)}"
            )
        return value
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value
