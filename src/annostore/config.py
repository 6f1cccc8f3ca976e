"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from annostore.decoration import DecorationStyle

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class StorageConfig(BaseModel):
    """Where annotation files live inside each project."""

    workspace_root: Path = Path()
    settings_folder: str = ".settings"
    groups_file: str = "metadata-groups.yaml"
    tags_file: str = "metadata-tags.yaml"

    @field_validator("settings_folder", "groups_file", "tags_file")
    @classmethod
    def _single_path_segment(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            msg = f"must be a single path segment, got {value!r}"
            raise ValueError(msg)
        return value


class WatcherConfig(BaseModel):
    """External edit watcher toggles."""

    enabled: bool = True


class TagsConfig(BaseModel):
    """Tag defaults and navigator decoration."""

    default_color: str = "#808080"
    decoration_style: DecorationStyle = DecorationStyle.SUFFIX

    @field_validator("default_color")
    @classmethod
    def _hex_color(cls, value: str) -> str:
        if not _HEX_COLOR.match(value):
            msg = f"default_color must look like #rrggbb, got {value!r}"
            raise ValueError(msg)
        return value


class LoggingConfig(BaseModel):
    """Log file location and console verbosity."""

    log_dir: Path = Path("logs")
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``STORAGE__WORKSPACE_ROOT``, ``TAGS__DEFAULT_COLOR``,
    ``WATCHER__ENABLED`` etc. All are prefixed with ``ANNOSTORE_``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ANNOSTORE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    storage: StorageConfig = StorageConfig()
    watcher: WatcherConfig = WatcherConfig()
    tags: TagsConfig = TagsConfig()
    log: LoggingConfig = LoggingConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()
    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.debug("Settings: no .env file found, using env vars and defaults")
    return settings
