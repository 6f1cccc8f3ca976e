"""Per-project cache of one annotation collection.

Each project's storage is loaded from its settings folder on first use and
kept in memory until invalidated. A shared/exclusive lock guards the map of
loaded projects, and every project gets its own lock so that a mutation in
one project never blocks readers of another.

Mutations go through ``mutate()``: the callback runs against the live
storage under the project's exclusive lock, the file is rewritten while the
lock is still held, and the notification callback fires after release so
listeners can query the store without deadlocking.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from annostore.errors import CodecError, PersistenceError
from annostore.store.locking import ReadWriteLock

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from annostore.persistence import ConfigFolder, YamlCodec

logger = logging.getLogger(__name__)


class ProjectStoreCache[S]:
    """Lazily loaded, per-project copies of one collection type.

    Args:
        codec: Converts the collection to and from file content.
        folder: Project settings folder access.
        filename: Name of the collection's file inside the settings folder.
        on_load: Called with the project name after each fresh load, outside
            any lock. The store uses it to start watching the project.
    """

    def __init__(
        self,
        codec: YamlCodec[S],
        folder: ConfigFolder,
        filename: str,
        on_load: Callable[[str], None] | None = None,
    ) -> None:
        self.codec = codec
        self.folder = folder
        self.filename = filename
        self.on_load = on_load
        self._entries: dict[str, S] = {}
        self._map_lock = ReadWriteLock()
        self._project_locks: dict[str, ReadWriteLock] = {}
        self._project_locks_guard = threading.Lock()

    def path(self, project: str) -> Path:
        return self.folder.path(project, self.filename)

    # --- Loading -----------------------------------------------------------

    def get(self, project: str) -> S:
        """Return the cached storage, loading it on first access.

        Concurrent first accesses load the file once: the check is repeated
        under the exclusive map lock before loading.
        """
        storage, loaded = self._get(project)
        if loaded:
            self._loaded(project)
        return storage

    def _get(self, project: str) -> tuple[S, bool]:
        with self._map_lock.read():
            storage = self._entries.get(project)
        if storage is not None:
            return storage, False

        with self._map_lock.write():
            storage = self._entries.get(project)
            if storage is not None:
                return storage, False
            storage = self._entries[project] = self._load(project)
        return storage, True

    def _loaded(self, project: str) -> None:
        if self.on_load is not None:
            self.on_load(project)

    def _load(self, project: str) -> S:
        path = self.path(project)
        try:
            storage = self.codec.load(self.folder.read_bytes(project, self.filename))
        except (OSError, CodecError):
            # The next successful save replaces the unreadable file.
            logger.exception(
                "Failed to load %s for project %s, starting empty", path, project
            )
            return self.codec.empty()
        logger.debug("Loaded %s for project %s", path, project)
        return storage

    def is_cached(self, project: str) -> bool:
        with self._map_lock.read():
            return project in self._entries

    def cached_projects(self) -> list[str]:
        with self._map_lock.read():
            return sorted(self._entries)

    # --- Access ------------------------------------------------------------

    def _lock_for(self, project: str) -> ReadWriteLock:
        with self._project_locks_guard:
            lock = self._project_locks.get(project)
            if lock is None:
                lock = self._project_locks[project] = ReadWriteLock()
            return lock

    @contextmanager
    def _project_lock(self, project: str, *, exclusive: bool) -> Iterator[None]:
        """Hold the project's lock, retrying if ``clear()`` replaced it."""
        while True:
            lock = self._lock_for(project)
            release = lock.release_write if exclusive else lock.release_read
            if exclusive:
                lock.acquire_write()
            else:
                lock.acquire_read()
            if self._project_locks.get(project) is lock:
                break
            release()
        try:
            yield
        finally:
            release()

    @contextmanager
    def reading(self, project: str) -> Iterator[S]:
        """Yield the live storage under the project's shared lock.

        Callers must copy anything they hand out before the block ends.
        """
        loaded = False
        try:
            with self._project_lock(project, exclusive=False):
                storage, loaded = self._get(project)
                yield storage
        finally:
            if loaded:
                self._loaded(project)

    def mutate[T](
        self,
        project: str,
        fn: Callable[[S], T],
        notify: Callable[[], None] | None = None,
    ) -> T:
        """Apply ``fn`` to the live storage and persist the result.

        A result of ``None`` or ``False`` means nothing changed: the file is
        not written and ``notify`` is not called. Otherwise the file is
        rewritten before the project lock is released, and ``notify`` runs
        after release.

        Raises:
            PersistenceError: If the file could not be written. The change
                stays in memory and ``notify`` has already run.
        """
        failure: OSError | None = None
        changed = False
        loaded = False
        try:
            with self._project_lock(project, exclusive=True):
                storage, loaded = self._get(project)
                result = fn(storage)
                changed = result is not None and result is not False
                if changed:
                    try:
                        self.folder.write_bytes(
                            project, self.filename, self.codec.dump(storage)
                        )
                    except OSError as exc:
                        logger.exception(
                            "Failed to save %s for project %s",
                            self.path(project),
                            project,
                        )
                        failure = exc
        finally:
            if loaded:
                self._loaded(project)

        if not changed:
            return result
        if notify is not None:
            notify()
        if failure is not None:
            raise PersistenceError(
                project, self.path(project), str(failure)
            ) from failure
        return result

    # --- Invalidation ------------------------------------------------------

    def invalidate(self, project: str) -> bool:
        """Drop the cached storage; the next access reloads from disk.

        Waits for in-flight reads and mutations of the project to finish.
        """
        with (
            self._project_lock(project, exclusive=True),
            self._map_lock.write(),
        ):
            dropped = self._entries.pop(project, None) is not None
        if dropped:
            logger.debug("Invalidated %s for project %s", self.filename, project)
        return dropped

    def clear(self) -> None:
        """Drop every cached project along with its lock.

        Waits for in-flight reads and mutations; threads already queued on
        a dropped lock retry on a fresh one.
        """
        with self._project_locks_guard:
            held = list(self._project_locks.values())
            for lock in held:
                lock.acquire_write()
            try:
                with self._map_lock.write():
                    self._entries.clear()
                self._project_locks = {}
            finally:
                for lock in held:
                    lock.release_write()
