"""Reload annotations when their files change outside the store.

A watchdog observer watches the settings folder of every project the store
has loaded. When a registered feature file is created, modified, deleted or
renamed into place, the feature's refresh callback runs with the project
name: the cache entry is dropped and listeners are told to re-query.

Our own writes arrive here too (as a temp file moved onto the target). The
resulting reload reads back what was just written, so they are not
filtered out.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from collections.abc import Callable

    from watchdog.observers.api import BaseObserver, ObservedWatch

    from annostore.persistence import ConfigFolder

logger = logging.getLogger(__name__)


class SettingsFolderHandler(FileSystemEventHandler):
    """Forwards file events in a settings folder to the watcher."""

    def __init__(self, watcher: ExternalEditWatcher) -> None:
        self.watcher = watcher

    def _forward(self, path: str | bytes) -> None:
        try:
            self.watcher.file_changed(os.fsdecode(path))
        except Exception:
            logger.exception("Error handling file change for %s", path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)
            self._forward(event.dest_path)


class ExternalEditWatcher:
    """Maps file events in project settings folders to refresh callbacks.

    watchdog holds the observer's lock while it dispatches an event, and
    ``schedule``/``unschedule`` take that same lock. Calls into the observer
    are therefore made with ``_lock`` released, and the lookup tables read
    by ``file_changed`` are replaced rather than updated in place so the
    event thread never waits on ``_lock``.

    Args:
        folder: Locates each project's settings folder.
        observer_factory: Builds the watchdog observer on ``start()``.
    """

    def __init__(
        self,
        folder: ConfigFolder,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self.folder = folder
        self._observer_factory = observer_factory
        self._observer: BaseObserver | None = None
        self._handler = SettingsFolderHandler(self)
        self._callbacks: dict[str, Callable[[str], None]] = {}
        self._folders: dict[str, Path] = {}
        self._projects_by_folder: dict[Path, str] = {}
        self._watches: dict[str, ObservedWatch] = {}
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def register(self, filename: str, on_change: Callable[[str], None]) -> None:
        """Call ``on_change(project)`` when ``filename`` changes in a project."""
        with self._lock:
            self._callbacks = {**self._callbacks, filename: on_change}

    def watched_projects(self) -> list[str]:
        with self._lock:
            return sorted(self._folders)

    # --- Lifecycle ---------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            # Not dispatching yet, so starting it here cannot block on us.
            observer = self._observer_factory()
            observer.daemon = True
            observer.start()
            self._observer = observer
            pending = dict(self._folders)
        for project, folder in pending.items():
            self._schedule(observer, project, folder)
        logger.info("External edit watcher started")

    def stop(self) -> None:
        with self._lock:
            observer, self._observer = self._observer, None
            self._watches.clear()
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        logger.info("External edit watcher stopped")

    # --- Projects ----------------------------------------------------------

    def watch(self, project: str) -> bool:
        """Start watching a project's settings folder, creating it if needed.

        Returns False if the folder could not be created or watched.
        """
        folder = self.folder.folder(project)
        with self._lock:
            if project in self._folders:
                return True
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError:
                logger.warning(
                    "Cannot create %s, project %s is not watched",
                    folder,
                    project,
                    exc_info=True,
                )
                return False
            self._folders[project] = folder
            self._projects_by_folder = {
                **self._projects_by_folder,
                folder.resolve(): project,
            }
            observer = self._observer
        if observer is not None and not self._schedule(observer, project, folder):
            return False
        logger.debug("Watching %s for project %s", folder, project)
        return True

    def unwatch(self, project: str) -> bool:
        with self._lock:
            if project not in self._folders:
                return False
            watch = self._watches.pop(project, None)
            observer = self._observer
            self._forget(project)
        if watch is not None and observer is not None:
            self._unschedule(observer, watch)
        logger.debug("Stopped watching project %s", project)
        return True

    def _forget(self, project: str) -> None:
        self._folders.pop(project)
        self._projects_by_folder = {
            path: name
            for path, name in self._projects_by_folder.items()
            if name != project
        }

    def _schedule(self, observer: BaseObserver, project: str, folder: Path) -> bool:
        """Schedule ``folder`` on ``observer``; called without ``_lock`` held.

        Returns False if scheduling failed or the project was unwatched (or
        the observer stopped) while the call was in flight.
        """
        try:
            watch = observer.schedule(self._handler, str(folder), recursive=False)
        except OSError:
            logger.exception("Cannot watch %s for project %s", folder, project)
            with self._lock:
                if self._folders.get(project) == folder:
                    self._forget(project)
            return False

        with self._lock:
            current = (
                self._observer is observer and self._folders.get(project) == folder
            )
            if current:
                self._watches[project] = watch
        if not current:
            self._unschedule(observer, watch)
        return current

    @staticmethod
    def _unschedule(observer: BaseObserver, watch: ObservedWatch) -> None:
        try:
            observer.unschedule(watch)
        except KeyError:
            # A stopping observer drops all of its watches first.
            logger.debug("Watch on %s already removed", watch.path)

    # --- Events ------------------------------------------------------------

    def file_changed(self, path: str | Path) -> bool:
        """Handle a change to ``path``.

        Host-side change sources may call this directly. Runs without taking
        ``_lock``, so it is safe on watchdog's dispatch thread.

        Returns:
            True if the path is a feature file of a watched project and its
            refresh callback ran.
        """
        path = Path(path)
        on_change = self._callbacks.get(path.name)
        project = self._projects_by_folder.get(path.parent.resolve())
        if on_change is None or project is None:
            return False
        logger.info("%s changed externally, reloading project %s", path, project)
        on_change(project)
        return True
