"""Group operations per project, with write-through and change events."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from annostore.store.notifier import Feature

if TYPE_CHECKING:
    from collections.abc import Callable

    from annostore.models import Group, GroupStorage
    from annostore.store.cache import ProjectStoreCache
    from annostore.store.notifier import ChangeNotifier

logger = logging.getLogger(__name__)


class GroupService:
    """Virtual folder groups of every project.

    Queries return copies, so callers may keep or modify what they get
    without affecting the cache. Mutations return ``False``/``None`` for a
    missing or conflicting target and raise ``ValueError`` for a malformed
    group name.
    """

    feature = Feature.GROUPS

    def __init__(
        self, cache: ProjectStoreCache[GroupStorage], notifier: ChangeNotifier
    ) -> None:
        self.cache = cache
        self.notifier = notifier

    def _collection_changed(self, project: str) -> Callable[[], None]:
        return partial(self.notifier.fire_collection_changed, project, self.feature)

    def _assignments_changed(self, project: str, fqn: str) -> Callable[[], None]:
        return partial(
            self.notifier.fire_assignments_changed, project, self.feature, fqn
        )

    # --- Queries -----------------------------------------------------------

    def get_all_groups(self, project: str) -> list[Group]:
        with self.cache.reading(project) as storage:
            return [g.model_copy(deep=True) for g in storage.groups]

    def get_group(self, project: str, full_path: str) -> Group | None:
        with self.cache.reading(project) as storage:
            group = storage.get_group(full_path)
            return group.model_copy(deep=True) if group is not None else None

    def get_groups_at_path(self, project: str, path: str = "") -> list[Group]:
        with self.cache.reading(project) as storage:
            return [
                g.model_copy(deep=True) for g in storage.get_groups_at_path(path)
            ]

    def has_groups_at_path(self, project: str, path: str = "") -> bool:
        with self.cache.reading(project) as storage:
            return storage.has_groups_at_path(path)

    def get_grouped_objects_at_path(self, project: str, path: str = "") -> set[str]:
        with self.cache.reading(project) as storage:
            return storage.get_grouped_objects_at_path(path)

    def find_group_for_object(self, project: str, object_fqn: str) -> Group | None:
        with self.cache.reading(project) as storage:
            group = storage.find_group_for_object(object_fqn)
            return group.model_copy(deep=True) if group is not None else None

    # --- Group mutations ---------------------------------------------------

    def create_group(
        self,
        project: str,
        name: str,
        path: str = "",
        description: str | None = None,
    ) -> Group | None:
        """Create a group under ``path``; None if the full path is taken."""
        group = self.cache.mutate(
            project,
            lambda s: s.create_group(name, path, description),
            self._collection_changed(project),
        )
        if group is None:
            return None
        logger.info("Created group %r in project %s", group.full_path, project)
        return group.model_copy(deep=True)

    def rename_group(self, project: str, old_full_path: str, new_name: str) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.rename_group(old_full_path, new_name),
            self._collection_changed(project),
        )

    def update_group(
        self,
        project: str,
        old_full_path: str,
        new_name: str,
        description: str | None = None,
    ) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.update_group(old_full_path, new_name, description),
            self._collection_changed(project),
        )

    def delete_group(self, project: str, full_path: str) -> bool:
        """Delete a group and its nested groups; their objects are ungrouped."""
        deleted = self.cache.mutate(
            project,
            lambda s: s.remove_group(full_path),
            self._collection_changed(project),
        )
        if deleted:
            logger.info("Deleted group %r in project %s", full_path, project)
        return deleted

    # --- Object membership -------------------------------------------------

    def add_object_to_group(
        self, project: str, object_fqn: str, group_full_path: str
    ) -> bool:
        """Move an object into a group, out of whatever group held it."""
        return self.cache.mutate(
            project,
            lambda s: s.move_object_to_group(object_fqn, group_full_path),
            self._assignments_changed(project, object_fqn),
        )

    def remove_object_from_group(self, project: str, object_fqn: str) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.remove_object_from_all_groups(object_fqn),
            self._assignments_changed(project, object_fqn),
        )

    def remove_object(self, project: str, object_fqn: str) -> bool:
        """Forget a deleted object."""
        return self.remove_object_from_group(project, object_fqn)

    def rename_object(self, project: str, old_fqn: str, new_fqn: str) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.rename_object(old_fqn, new_fqn),
            self._collection_changed(project),
        )

    # --- Cache control -----------------------------------------------------

    def refresh(self, project: str, *, external: bool = False) -> None:
        """Drop the cached groups and tell listeners to re-query."""
        self.cache.invalidate(project)
        self.notifier.fire_collection_changed(
            project, self.feature, external=external
        )
