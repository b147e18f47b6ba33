"""
Configuration loader: directories, registry source and timeouts.

Precedence, lowest to highest:
    built-in defaults  <  config.yml  <  TOOLSYNC_* environment

``TOOLSYNC_HOME`` relocates everything (packages, bin, lockfile and
registry cache) under a single root, which is what tests and
throwaway installs want.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toolsync.core.persistence.lockfile import LOCKFILE_NAME
from toolsync.core.persistence.registry_cache import REGISTRY_FILE_NAME

logger = logging.getLogger(__name__)

APP_NAME = "toolsync"
CONFIG_FILE = "config.yml"

DEFAULT_REGISTRY_URL = (
    "https://github.com/mistweaverco/zana-registry/releases/latest/download/zana-registry.json.zip"
)

ENV_HOME = "TOOLSYNC_HOME"
ENV_CONFIG = "TOOLSYNC_CONFIG"
ENV_REGISTRY_URL = "TOOLSYNC_REGISTRY_URL"


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""


class Settings(BaseModel):
    """Resolved runtime configuration."""

    home: Path
    config_dir: Path
    cache_dir: Path
    registry_url: str = DEFAULT_REGISTRY_URL
    cache_max_age_hours: float = Field(default=24.0, ge=0)
    http_timeout: int = Field(default=60, gt=0)

    model_config = ConfigDict(extra="forbid")

    @property
    def packages_dir(self) -> Path:
        return self.home / "packages"

    @property
    def bin_dir(self) -> Path:
        return self.home / "bin"

    @property
    def lockfile_path(self) -> Path:
        return self.config_dir / LOCKFILE_NAME

    @property
    def registry_path(self) -> Path:
        return self.cache_dir / REGISTRY_FILE_NAME

    def to_dict(self) -> dict[str, Any]:
        return {
            "home": str(self.home),
            "packages_dir": str(self.packages_dir),
            "bin_dir": str(self.bin_dir),
            "lockfile": str(self.lockfile_path),
            "registry": str(self.registry_path),
            "registry_url": self.registry_url,
            "cache_max_age_hours": self.cache_max_age_hours,
            "http_timeout": self.http_timeout,
        }


def _xdg(env: Mapping[str, str], var: str, fallback: str) -> Path:
    base = env.get(var) or str(Path.home() / fallback)
    return Path(base) / APP_NAME


def default_paths(env: Mapping[str, str]) -> dict[str, Path]:
    root = env.get(ENV_HOME)
    if root:
        home = Path(root).expanduser()
        return {"home": home, "config_dir": home, "cache_dir": home}
    return {
        "home": _xdg(env, "XDG_DATA_HOME", ".local/share"),
        "config_dir": _xdg(env, "XDG_CONFIG_HOME", ".config"),
        "cache_dir": _xdg(env, "XDG_CACHE_HOME", ".cache"),
    }


def find_config_file(env: Mapping[str, str]) -> Path | None:
    explicit = env.get(ENV_CONFIG)
    if explicit:
        return Path(explicit).expanduser()
    candidate = default_paths(env)["config_dir"] / CONFIG_FILE
    return candidate if candidate.is_file() else None


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_settings(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings from defaults, an optional YAML file and the env.

    Raises:
        ConfigError: unreadable or invalid configuration.
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = dict(default_paths(env))

    path = config_path or find_config_file(env)
    if path is not None:
        logger.debug("Loading config from %s", path)
        file_values = _read_yaml(path)
        for key in ("home", "config_dir", "cache_dir"):
            if isinstance(file_values.get(key), str):
                file_values[key] = Path(file_values[key]).expanduser()
        values.update(file_values)

    # The environment wins over the file
    if env.get(ENV_HOME):
        values.update(default_paths(env))
    if env.get(ENV_REGISTRY_URL):
        values["registry_url"] = env[ENV_REGISTRY_URL]

    try:
        settings = Settings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.debug("Using home %s", settings.home)
    return settings
