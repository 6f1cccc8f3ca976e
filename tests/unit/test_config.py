"""Tests for the pydantic-settings configuration.

Settings are built with ``_env_file=None`` so a developer's .env cannot
leak into assertions.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from annostore.config import Settings, StorageConfig, TagsConfig, get_settings
from annostore.decoration import DecorationStyle


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear any env vars that might interfere."""
    for key in list(os.environ):
        if key.startswith("ANNOSTORE_"):
            monkeypatch.delenv(key, raising=False)


class TestDefaults:
    """Values used when nothing is configured."""

    def test_storage_defaults(self, clean_env: None) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.storage.workspace_root == Path()
        assert s.storage.settings_folder == ".settings"
        assert s.storage.groups_file == "metadata-groups.yaml"
        assert s.storage.tags_file == "metadata-tags.yaml"

    def test_feature_defaults(self, clean_env: None) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.watcher.enabled is True
        assert s.tags.default_color == "#808080"
        assert s.tags.decoration_style is DecorationStyle.SUFFIX
        assert s.log.level == "INFO"


class TestEnvironment:
    """Nested env vars with the ANNOSTORE_ prefix."""

    def test_nested_override(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ANNOSTORE_TAGS__DEFAULT_COLOR", "#00ff00")
        monkeypatch.setenv("ANNOSTORE_TAGS__DECORATION_STYLE", "count")
        monkeypatch.setenv("ANNOSTORE_WATCHER__ENABLED", "0")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.tags.default_color == "#00ff00"
        assert s.tags.decoration_style is DecorationStyle.COUNT
        assert s.watcher.enabled is False

    def test_unprefixed_vars_ignored(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TAGS__DEFAULT_COLOR", "#00ff00")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.tags.default_color == "#808080"

    def test_get_settings_is_cached(self, clean_env: None) -> None:
        assert get_settings() is get_settings()


class TestValidation:
    """Invalid values are rejected at startup."""

    @pytest.mark.parametrize("color", ["red", "#fff", "#12345g", "808080"])
    def test_bad_color(self, color: str) -> None:
        with pytest.raises(ValidationError, match="default_color"):
            TagsConfig(default_color=color)

    @pytest.mark.parametrize("name", ["", "a/b", "a\\b"])
    def test_file_names_are_single_segments(self, name: str) -> None:
        with pytest.raises(ValidationError):
            StorageConfig(tags_file=name)

    def test_unknown_decoration_style_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TagsConfig(decoration_style="sparkles")  # type: ignore[arg-type]
