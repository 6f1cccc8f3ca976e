"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from annostore.config import Settings, StorageConfig, WatcherConfig
from annostore.models import GroupStorage, TagStorage
from annostore.persistence import ConfigFolder, WorkspaceLocator, YamlCodec
from annostore.store import AnnotationStore
from annostore.store.cache import ProjectStoreCache
from annostore.store.groups import GroupService
from annostore.store.notifier import ChangeEvent, ChangeNotifier
from annostore.store.tags import TagService

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

PROJECT = "demo"
GROUPS_FILE = "metadata-groups.yaml"
TAGS_FILE = "metadata-tags.yaml"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace directory holding one (empty) project."""
    (tmp_path / PROJECT).mkdir()
    return tmp_path


@pytest.fixture
def settings(workspace: Path) -> Settings:
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        storage=StorageConfig(workspace_root=workspace),
        watcher=WatcherConfig(enabled=False),
    )


@pytest.fixture
def folder(workspace: Path) -> ConfigFolder:
    return ConfigFolder(WorkspaceLocator(workspace))


@pytest.fixture
def settings_dir(workspace: Path) -> Path:
    """The demo project's settings folder, created."""
    path = workspace / PROJECT / ".settings"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def events(notifier: ChangeNotifier) -> list[ChangeEvent]:
    """Every event fired on ``notifier``, in order."""
    received: list[ChangeEvent] = []
    notifier.subscribe(received.append)
    return received


@pytest.fixture
def group_cache(folder: ConfigFolder) -> ProjectStoreCache[GroupStorage]:
    return ProjectStoreCache(YamlCodec(GroupStorage), folder, GROUPS_FILE)


@pytest.fixture
def tag_cache(folder: ConfigFolder) -> ProjectStoreCache[TagStorage]:
    return ProjectStoreCache(YamlCodec(TagStorage), folder, TAGS_FILE)


@pytest.fixture
def groups(
    group_cache: ProjectStoreCache[GroupStorage], notifier: ChangeNotifier
) -> GroupService:
    return GroupService(group_cache, notifier)


@pytest.fixture
def tags(
    tag_cache: ProjectStoreCache[TagStorage], notifier: ChangeNotifier
) -> TagService:
    return TagService(tag_cache, notifier)


@pytest.fixture
def store(settings: Settings) -> Generator[AnnotationStore]:
    """A store without a running watcher."""
    with AnnotationStore(settings) as s:
        yield s
