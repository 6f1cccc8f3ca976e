"""Exception hierarchy for the annotation store.

Domain outcomes (missing group, duplicate tag name) are returned as
``False``/``None`` by the collections and services. Only failures that
leave memory and disk out of step are raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class AnnotationStoreError(Exception):
    """Base class for annotation store failures."""


class CodecError(AnnotationStoreError):
    """A durable document could not be decoded."""


class PersistenceError(AnnotationStoreError):
    """Writing a project's annotation file failed after a mutation.

    The mutation is still applied in memory, so the cache and the file
    disagree until the next successful write.

    Attributes:
        project: Project whose file could not be written.
        path: Target file path.
    """

    def __init__(self, project: str, path: Path, reason: str) -> None:
        super().__init__(f"Failed to save {path} for project {project!r}: {reason}")
        self.project = project
        self.path = path
