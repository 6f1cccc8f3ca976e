"""Virtual folder groups: a user-defined hierarchy over a flat object list.

A group lives at a parent ``path`` (empty for the root) and is addressed by
its ``full_path``. Objects are placed into groups by FQN; an object belongs
to at most one group at a time. Deleting a group never deletes objects, it
only ungroups them.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
_FORBIDDEN_NAME_CHARS = ("/", "\\")


def join_path(path: str, name: str) -> str:
    """Return the full path of ``name`` placed under ``path``."""
    return f"{path}{PATH_SEPARATOR}{name}" if path else name


def validate_group_name(name: str) -> str:
    """Return the stripped group name, or raise ``ValueError``.

    Group names are single path segments: no separators, not blank.
    """
    stripped = name.strip()
    if not stripped:
        msg = "Group name must not be empty"
        raise ValueError(msg)
    if any(ch in stripped for ch in _FORBIDDEN_NAME_CHARS):
        msg = f"Group name must not contain path separators: {stripped!r}"
        raise ValueError(msg)
    return stripped


def _is_under(path: str, ancestor: str) -> bool:
    return path == ancestor or path.startswith(ancestor + PATH_SEPARATOR)


class Group(BaseModel):
    """A virtual folder.

    Attributes:
        name: Display name, a single path segment.
        path: Parent location, e.g. ``"CommonModules"``; empty for root.
        order: Sort key among siblings.
        description: Optional free text.
        children: FQNs of the objects placed in this group, in order.
    """

    # Unquoted YAML scalars such as ``2024`` arrive as numbers.
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str
    path: str = ""
    order: int = 0
    description: str | None = None
    children: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _single_segment_name(cls, value: str) -> str:
        return validate_group_name(value)

    @field_validator("path", mode="before")
    @classmethod
    def _none_path_is_root(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("order", mode="before")
    @classmethod
    def _none_order_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("children", mode="before")
    @classmethod
    def _none_children_is_empty(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [fqn for fqn in value if fqn is not None]
        return value

    @property
    def full_path(self) -> str:
        """Parent path joined with the name."""
        return join_path(self.path, self.name)


class GroupStorage(BaseModel):
    """All groups of one project, in file order.

    Invariant: no two groups share a full path.
    """

    model_config = ConfigDict(extra="ignore")

    groups: list[Group] = Field(default_factory=list)

    @field_validator("groups", mode="before")
    @classmethod
    def _drop_malformed_groups(cls, value: Any) -> Any:
        """Validate entries one by one so a bad entry costs only itself."""
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning(
                "Ignoring 'groups': expected a list, got %s", type(value).__name__
            )
            return []
        kept: list[Group] = []
        for entry in value:
            try:
                kept.append(Group.model_validate(entry))
            except ValidationError as exc:
                logger.warning(
                    "Dropping malformed group entry %r: %s",
                    entry,
                    "; ".join(err["msg"] for err in exc.errors()),
                )
        return kept

    @model_validator(mode="after")
    def _drop_duplicate_paths(self) -> GroupStorage:
        seen: set[str] = set()
        unique: list[Group] = []
        for group in self.groups:
            if group.full_path in seen:
                logger.warning("Dropping duplicate group %r", group.full_path)
                continue
            seen.add(group.full_path)
            unique.append(group)
        self.groups = unique
        return self

    def to_document(self) -> dict[str, Any]:
        """Plain mapping in file layout."""
        return {"groups": [group.model_dump() for group in self.groups]}

    # --- Queries -----------------------------------------------------------

    def get_group(self, full_path: str) -> Group | None:
        return next((g for g in self.groups if g.full_path == full_path), None)

    def get_groups_at_path(self, path: str) -> list[Group]:
        """Groups directly under ``path``, sorted by ``(order, name)``."""
        return sorted(
            (g for g in self.groups if g.path == path),
            key=lambda g: (g.order, g.name),
        )

    def has_groups_at_path(self, path: str) -> bool:
        return any(g.path == path for g in self.groups)

    def get_grouped_objects_at_path(self, path: str) -> set[str]:
        """FQNs held by groups directly under ``path``.

        The navigator hides these from their natural location.
        """
        return {fqn for g in self.groups if g.path == path for fqn in g.children}

    def find_group_for_object(self, object_fqn: str) -> Group | None:
        return next((g for g in self.groups if object_fqn in g.children), None)

    # --- Group mutations ---------------------------------------------------

    def create_group(
        self, name: str, path: str = "", description: str | None = None
    ) -> Group | None:
        """Append a new group as the last of its siblings.

        Returns:
            The new group, or None if one already exists at that full path.

        Raises:
            ValueError: If the name is blank or contains a separator.
        """
        name = validate_group_name(name)
        path = path or ""
        if self.get_group(join_path(path, name)) is not None:
            return None

        siblings = [g.order for g in self.groups if g.path == path]
        group = Group(
            name=name,
            path=path,
            order=max(siblings) + 1 if siblings else 0,
            description=description,
        )
        self.groups.append(group)
        return group

    def rename_group(self, old_full_path: str, new_name: str) -> bool:
        """Rename a group; nested groups follow it to the new path.

        Returns False if the group is missing or the new full path is taken
        (including renaming a group to its current name).
        """
        new_name = validate_group_name(new_name)
        group = self.get_group(old_full_path)
        if group is None:
            return False

        new_full_path = join_path(group.path, new_name)
        if self.get_group(new_full_path) is not None:
            return False

        group.name = new_name
        for nested in self.groups:
            if _is_under(nested.path, old_full_path):
                nested.path = new_full_path + nested.path[len(old_full_path) :]
        return True

    def update_group(
        self, old_full_path: str, new_name: str, description: str | None
    ) -> bool:
        """Rename (when the name changes) and set the description."""
        group = self.get_group(old_full_path)
        if group is None:
            return False
        if validate_group_name(new_name) != group.name:
            if not self.rename_group(old_full_path, new_name):
                return False
        group.description = description
        return True

    def remove_group(self, full_path: str) -> bool:
        """Delete a group together with every group nested beneath it.

        Objects held by the deleted groups become ungrouped.
        """
        if self.get_group(full_path) is None:
            return False
        self.groups = [
            g
            for g in self.groups
            if g.full_path != full_path and not _is_under(g.path, full_path)
        ]
        return True

    # --- Object membership -------------------------------------------------

    def move_object_to_group(self, object_fqn: str, group_full_path: str) -> bool:
        """Place an object in a group, taking it out of any other group."""
        target = self.get_group(group_full_path)
        if target is None:
            return False
        for group in self.groups:
            if group is not target and object_fqn in group.children:
                group.children.remove(object_fqn)
        if object_fqn not in target.children:
            target.children.append(object_fqn)
        return True

    def remove_object_from_all_groups(self, object_fqn: str) -> bool:
        removed = False
        for group in self.groups:
            while object_fqn in group.children:
                group.children.remove(object_fqn)
                removed = True
        return removed

    def rename_object(self, old_fqn: str, new_fqn: str) -> bool:
        """Follow an object rename; the old FQN's group keeps the object."""
        if old_fqn == new_fqn or self.find_group_for_object(old_fqn) is None:
            return False
        self.remove_object_from_all_groups(new_fqn)
        for group in self.groups:
            group.children = [new_fqn if c == old_fqn else c for c in group.children]
        return True
