"""The annotation store: group and tag services over per-project caches.

Build one with ``open_store()`` and close it when done::

    with open_store() as store:
        store.tags.create_tag("demo", "review", "#ff0000")
        store.tags.assign_tag("demo", "Catalog.Products", "review")
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from annostore.config import get_settings
from annostore.models import GroupStorage, TagStorage
from annostore.persistence import (
    GROUP_CODEC,
    TAG_CODEC,
    ConfigFolder,
    WorkspaceLocator,
)
from annostore.store.cache import ProjectStoreCache
from annostore.store.groups import GroupService
from annostore.store.notifier import ChangeEvent, ChangeKind, ChangeNotifier, Feature
from annostore.store.tags import TagService
from annostore.store.watcher import ExternalEditWatcher

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from annostore.config import Settings
    from annostore.persistence import ProjectLocator
    from annostore.store.notifier import Listener

logger = logging.getLogger(__name__)


class AnnotationStore:
    """Owns the caches, services, notifier and watcher of one workspace.

    Args:
        settings: Defaults to ``get_settings()``.
        locator: Maps project names to directories. Defaults to the
            direct children of ``settings.storage.workspace_root``.
        watch: Start the external edit watcher. Defaults to
            ``settings.watcher.enabled``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        locator: ProjectLocator | None = None,
        watch: bool | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        storage_cfg = self.settings.storage
        self.folder = ConfigFolder(
            locator or WorkspaceLocator(storage_cfg.workspace_root),
            storage_cfg.settings_folder,
        )
        self.notifier = ChangeNotifier()

        if watch is None:
            watch = self.settings.watcher.enabled
        self.watcher = ExternalEditWatcher(self.folder) if watch else None
        on_load = self.watcher.watch if self.watcher is not None else None

        group_cache: ProjectStoreCache[GroupStorage] = ProjectStoreCache(
            GROUP_CODEC, self.folder, storage_cfg.groups_file, on_load=on_load
        )
        tag_cache: ProjectStoreCache[TagStorage] = ProjectStoreCache(
            TAG_CODEC, self.folder, storage_cfg.tags_file, on_load=on_load
        )
        self.groups = GroupService(group_cache, self.notifier)
        self.tags = TagService(
            tag_cache, self.notifier, default_color=self.settings.tags.default_color
        )

        if self.watcher is not None:
            self.watcher.register(
                storage_cfg.groups_file, partial(self.groups.refresh, external=True)
            )
            self.watcher.register(
                storage_cfg.tags_file, partial(self.tags.refresh, external=True)
            )
            self.watcher.start()

        self._closed = False
        logger.info(
            "Annotation store opened on %s (watcher %s)",
            storage_cfg.workspace_root,
            "on" if self.watcher is not None else "off",
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns its unsubscribe callable."""
        return self.notifier.subscribe(listener)

    def refresh(self, project: str) -> None:
        """Drop both cached collections of a project."""
        self.groups.refresh(project)
        self.tags.refresh(project)

    def close(self) -> None:
        """Stop watching, drop caches and listeners. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self.watcher is not None:
            self.watcher.stop()
        self.groups.cache.clear()
        self.tags.cache.clear()
        self.notifier.clear()
        logger.info("Annotation store closed")

    def __enter__(self) -> AnnotationStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def open_store(
    settings: Settings | None = None,
    *,
    locator: ProjectLocator | None = None,
    watch: bool | None = None,
) -> AnnotationStore:
    """Create an ``AnnotationStore``; see its arguments."""
    return AnnotationStore(settings, locator=locator, watch=watch)


__all__ = [
    "AnnotationStore",
    "ChangeEvent",
    "ChangeKind",
    "ChangeNotifier",
    "ExternalEditWatcher",
    "Feature",
    "GroupService",
    "ProjectStoreCache",
    "TagService",
    "open_store",
]
