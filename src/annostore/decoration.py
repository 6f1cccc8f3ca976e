"""Navigator label decoration for tagged objects."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from annostore.models.tags import Tag


class DecorationStyle(StrEnum):
    """How an object's tags are appended to its label.

    Values match the strings stored in IDE preferences.
    """

    SUFFIX = "suffix"  # " [a, b]"
    FIRST_TAG = "firstTag"  # " [a]"
    COUNT = "count"  # " [2 tags]"


def format_tags(tags: Iterable[Tag] | None, style: str | None = None) -> str:
    """Format tags as a label suffix.

    Names are sorted so the output is stable regardless of set ordering.
    An unknown or missing style falls back to ``suffix``.

    Returns:
        The suffix, e.g. ``" [bug, critical]"``, or ``""`` for no tags.
    """
    names = sorted(tag.name for tag in tags or ())
    if not names:
        return ""

    if style == DecorationStyle.COUNT:
        return f" [{len(names)} tags]"
    if style == DecorationStyle.FIRST_TAG:
        return f" [{names[0]}]"
    return f" [{', '.join(names)}]"
