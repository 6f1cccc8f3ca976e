"""In-memory annotation collections.

Both collections are pydantic models so the durable codec can validate
hand-edited files leniently and dump them back in a fixed key order.
"""

from annostore.models.groups import (
    Group,
    GroupStorage,
    join_path,
    validate_group_name,
)
from annostore.models.tags import DEFAULT_TAG_COLOR, Tag, TagStorage

__all__ = [
    "DEFAULT_TAG_COLOR",
    "Group",
    "GroupStorage",
    "Tag",
    "TagStorage",
    "join_path",
    "validate_group_name",
]
