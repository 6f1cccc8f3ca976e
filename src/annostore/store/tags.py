"""Tag operations per project, with write-through and change events."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from annostore.models import DEFAULT_TAG_COLOR
from annostore.store.notifier import Feature

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from annostore.models import Tag, TagStorage
    from annostore.store.cache import ProjectStoreCache
    from annostore.store.notifier import ChangeNotifier

logger = logging.getLogger(__name__)


class TagService:
    """Tags and tag assignments of every project.

    Args:
        cache: Per-project tag storage.
        notifier: Receives a change event after each successful mutation.
        default_color: Colour given to tags created without one.
    """

    feature = Feature.TAGS

    def __init__(
        self,
        cache: ProjectStoreCache[TagStorage],
        notifier: ChangeNotifier,
        default_color: str = DEFAULT_TAG_COLOR,
    ) -> None:
        self.cache = cache
        self.notifier = notifier
        self.default_color = default_color

    def _collection_changed(self, project: str) -> Callable[[], None]:
        return partial(self.notifier.fire_collection_changed, project, self.feature)

    def _assignments_changed(self, project: str, fqn: str) -> Callable[[], None]:
        return partial(
            self.notifier.fire_assignments_changed, project, self.feature, fqn
        )

    # --- Queries (tags are frozen, so they are returned as-is) -------------

    def get_tags(self, project: str) -> list[Tag]:
        with self.cache.reading(project) as storage:
            return list(storage.tags)

    def get_tag(self, project: str, name: str) -> Tag | None:
        with self.cache.reading(project) as storage:
            return storage.get_tag(name)

    def get_object_tags(self, project: str, object_fqn: str) -> set[Tag]:
        with self.cache.reading(project) as storage:
            return storage.get_object_tags(object_fqn)

    def get_objects_by_tag(self, project: str, tag_name: str) -> set[str]:
        with self.cache.reading(project) as storage:
            return storage.get_objects_by_tag(tag_name)

    def find_objects_by_tags(
        self, project: str, tag_names: Iterable[str]
    ) -> dict[str, set[Tag]]:
        """Objects carrying any of the named tags, with the matching tags.

        A single name may be passed as a plain string.
        """
        names = {tag_names} if isinstance(tag_names, str) else set(tag_names)
        with self.cache.reading(project) as storage:
            return storage.find_objects_by_tags(names)

    # --- Tag definitions ---------------------------------------------------

    def create_tag(
        self,
        project: str,
        name: str,
        color: str | None = None,
        description: str | None = None,
    ) -> Tag | None:
        """Create a tag; None if the name is taken.

        Raises:
            ValueError: If the name is blank.
        """
        tag = self.cache.mutate(
            project,
            lambda s: s.create_tag(name, color or self.default_color, description),
            self._collection_changed(project),
        )
        if tag is not None:
            logger.info("Created tag %r in project %s", tag.name, project)
        return tag

    def update_tag(
        self,
        project: str,
        old_name: str,
        new_name: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> bool:
        """Update a tag; None leaves a field unchanged.

        Renaming moves every assignment to the new name.
        """
        return self.cache.mutate(
            project,
            lambda s: s.update_tag(old_name, new_name, color, description),
            self._collection_changed(project),
        )

    def delete_tag(self, project: str, name: str) -> bool:
        deleted = self.cache.mutate(
            project,
            lambda s: s.remove_tag(name),
            self._collection_changed(project),
        )
        if deleted:
            logger.info("Deleted tag %r in project %s", name, project)
        return deleted

    # --- Assignments -------------------------------------------------------

    def assign_tag(self, project: str, object_fqn: str, tag_name: str) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.assign_tag(object_fqn, tag_name),
            self._assignments_changed(project, object_fqn),
        )

    def unassign_tag(self, project: str, object_fqn: str, tag_name: str) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.unassign_tag(object_fqn, tag_name),
            self._assignments_changed(project, object_fqn),
        )

    def remove_object(self, project: str, object_fqn: str) -> bool:
        """Forget a deleted object's tags."""
        return self.cache.mutate(
            project,
            lambda s: s.remove_object(object_fqn),
            self._assignments_changed(project, object_fqn),
        )

    def rename_object(self, project: str, old_fqn: str, new_fqn: str) -> bool:
        return self.cache.mutate(
            project,
            lambda s: s.rename_object(old_fqn, new_fqn),
            self._collection_changed(project),
        )

    # --- Cache control -----------------------------------------------------

    def refresh(self, project: str, *, external: bool = False) -> None:
        """Drop the cached tags and tell listeners to re-query."""
        self.cache.invalidate(project)
        self.notifier.fire_collection_changed(
            project, self.feature, external=external
        )
