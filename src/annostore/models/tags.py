"""Tags: coloured many-to-many labels on metadata objects.

Tag names are unique (case-sensitive). Assignments map an object FQN to
the names of its tags; an assigned name must exist in the tag list when it
is written, and renames/deletes rewrite every assignment in the same step.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_TAG_COLOR = "#808080"


class Tag(BaseModel):
    """A label definition.

    Frozen (and therefore hashable); updates replace the record.
    """

    # Unquoted YAML scalars such as ``808080`` arrive as numbers.
    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)

    name: str
    color: str = DEFAULT_TAG_COLOR
    description: str | None = None

    @field_validator("color", mode="before")
    @classmethod
    def _none_color_is_default(cls, value: Any) -> Any:
        return DEFAULT_TAG_COLOR if value is None else value


class TagStorage(BaseModel):
    """Tag definitions and assignments of one project."""

    model_config = ConfigDict(extra="ignore")

    tags: list[Tag] = Field(default_factory=list)
    assignments: dict[str, set[str]] = Field(default_factory=dict)

    @field_validator("tags", mode="before")
    @classmethod
    def _drop_malformed_tags(cls, value: Any) -> Any:
        """Validate entries one by one so a bad entry costs only itself."""
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning(
                "Ignoring 'tags': expected a list, got %s", type(value).__name__
            )
            return []
        kept: list[Tag] = []
        seen: set[str] = set()
        for entry in value:
            try:
                tag = Tag.model_validate(entry)
            except ValidationError as exc:
                logger.warning(
                    "Dropping malformed tag entry %r: %s",
                    entry,
                    "; ".join(err["msg"] for err in exc.errors()),
                )
                continue
            if not tag.name.strip():
                logger.warning("Dropping malformed tag entry: %r", entry)
            elif tag.name in seen:
                logger.warning("Dropping duplicate tag %r", tag.name)
            else:
                seen.add(tag.name)
                kept.append(tag)
        return kept

    @field_validator("assignments", mode="before")
    @classmethod
    def _normalise_assignments(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.warning(
                "Ignoring 'assignments': expected a mapping, got %s",
                type(value).__name__,
            )
            return {}
        normalised: dict[str, list[str]] = {}
        for fqn, names in value.items():
            if isinstance(names, str):
                names = [names]
            if not isinstance(names, (list, tuple, set)):
                logger.warning("Dropping malformed assignment for %r: %r", fqn, names)
                continue
            cleaned = [str(n) for n in names if n is not None]
            if cleaned:
                normalised[str(fqn)] = cleaned
        return normalised

    def to_document(self) -> dict[str, Any]:
        """Plain mapping in file layout, with sorted assignments."""
        return {
            "tags": [tag.model_dump() for tag in self.tags],
            "assignments": {
                fqn: sorted(self.assignments[fqn])
                for fqn in sorted(self.assignments)
            },
        }

    # --- Tag definitions ---------------------------------------------------

    def get_tag(self, name: str) -> Tag | None:
        return next((t for t in self.tags if t.name == name), None)

    def add_tag(self, tag: Tag) -> bool:
        if self.get_tag(tag.name) is not None:
            return False
        self.tags.append(tag)
        return True

    def create_tag(
        self,
        name: str,
        color: str = DEFAULT_TAG_COLOR,
        description: str | None = None,
    ) -> Tag | None:
        """Create a tag.

        Returns:
            The tag, or None if the name is already taken.

        Raises:
            ValueError: If the name is blank.
        """
        if not name or not name.strip():
            msg = "Tag name must not be empty"
            raise ValueError(msg)
        tag = Tag(name=name, color=color, description=description)
        return tag if self.add_tag(tag) else None

    def update_tag(
        self,
        old_name: str,
        new_name: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> bool:
        """Update a tag; None leaves a field unchanged.

        A rename rewrites every assignment of ``old_name`` before returning,
        so no object is left pointing at a name that no longer exists.
        """
        tag = self.get_tag(old_name)
        if tag is None:
            return False

        renaming = new_name is not None and new_name != old_name
        if renaming and (not new_name.strip() or self.get_tag(new_name) is not None):
            return False

        changes: dict[str, Any] = {}
        if renaming:
            changes["name"] = new_name
            for names in self.assignments.values():
                if old_name in names:
                    names.discard(old_name)
                    names.add(new_name)
        if color is not None:
            changes["color"] = color
        if description is not None:
            changes["description"] = description

        self.tags[self.tags.index(tag)] = tag.model_copy(update=changes)
        return True

    def remove_tag(self, name: str) -> bool:
        """Delete a tag and strip it from every object."""
        tag = self.get_tag(name)
        if tag is None:
            return False
        self.tags.remove(tag)
        for fqn in list(self.assignments):
            self.assignments[fqn].discard(name)
            if not self.assignments[fqn]:
                del self.assignments[fqn]
        return True

    # --- Assignments -------------------------------------------------------

    def assign_tag(self, object_fqn: str, tag_name: str) -> bool:
        """Assign an existing tag; assigning twice is harmless."""
        if self.get_tag(tag_name) is None:
            return False
        self.assignments.setdefault(object_fqn, set()).add(tag_name)
        return True

    def unassign_tag(self, object_fqn: str, tag_name: str) -> bool:
        names = self.assignments.get(object_fqn)
        if not names or tag_name not in names:
            return False
        names.discard(tag_name)
        if not names:
            del self.assignments[object_fqn]
        return True

    def get_object_tags(self, object_fqn: str) -> set[Tag]:
        """Tags of an object; names that no longer resolve are skipped."""
        by_name = {t.name: t for t in self.tags}
        return {
            by_name[name]
            for name in self.assignments.get(object_fqn, ())
            if name in by_name
        }

    def get_objects_by_tag(self, tag_name: str) -> set[str]:
        return {fqn for fqn, names in self.assignments.items() if tag_name in names}

    def find_objects_by_tags(self, tag_names: set[str]) -> dict[str, set[Tag]]:
        """Objects carrying any of ``tag_names``, with their matching tags."""
        result: dict[str, set[Tag]] = {}
        for name in tag_names:
            tag = self.get_tag(name)
            if tag is None:
                continue
            for fqn in self.get_objects_by_tag(name):
                result.setdefault(fqn, set()).add(tag)
        return result

    def remove_object(self, object_fqn: str) -> bool:
        return self.assignments.pop(object_fqn, None) is not None

    def rename_object(self, old_fqn: str, new_fqn: str) -> bool:
        """Move an object's tags to its new FQN, merging with existing ones."""
        if old_fqn == new_fqn:
            return False
        names = self.assignments.pop(old_fqn, None)
        if names is None:
            return False
        self.assignments.setdefault(new_fqn, set()).update(names)
        return True
