"""File access scoped to a project's configuration folder.

The store never touches paths directly: a ``ProjectLocator`` maps a project
name to its root directory, and ``ConfigFolder`` reads and writes feature
files inside ``<root>/<settings folder>``.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class ProjectLocator(Protocol):
    """Resolves a project name to its root directory."""

    def project_root(self, project: str) -> Path:
        """Return the project's root directory (it need not exist yet)."""
        ...


class WorkspaceLocator:
    """Projects are the direct children of a workspace directory."""

    def __init__(self, workspace_root: Path) -> None:
        self.workspace_root = Path(workspace_root)

    def project_root(self, project: str) -> Path:
        """Return ``<workspace>/<project>``.

        Raises:
            ValueError: If the name could escape the workspace.
        """
        if project in ("", ".", "..") or any(sep in project for sep in "/\\"):
            msg = f"Invalid project name: {project!r}"
            raise ValueError(msg)
        return self.workspace_root / project


class ConfigFolder:
    """Reads and writes files in each project's settings folder."""

    def __init__(self, locator: ProjectLocator, folder_name: str = ".settings") -> None:
        self.locator = locator
        self.folder_name = folder_name

    def folder(self, project: str) -> Path:
        return self.locator.project_root(project) / self.folder_name

    def path(self, project: str, filename: str) -> Path:
        return self.folder(project) / filename

    def read_bytes(self, project: str, filename: str) -> bytes | None:
        """Return the file content, or None if the file does not exist."""
        try:
            return self.path(project, filename).read_bytes()
        except FileNotFoundError:
            return None

    def write_bytes(self, project: str, filename: str, data: bytes) -> Path:
        """Replace the file atomically, creating the folder if needed.

        Content goes to a temporary sibling first and is renamed into place,
        so readers never see a half-written document.
        """
        target = self.path(project, filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise
        logger.debug("Wrote %d bytes to %s", len(data), target)
        return target
