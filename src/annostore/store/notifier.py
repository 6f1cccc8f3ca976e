"""Change events fanned out to UI listeners.

Listeners are called synchronously on the thread that made the change,
after the project lock has been released. A listener that raises is logged
and skipped; the remaining listeners still receive the event.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class Feature(StrEnum):
    """Which collection an event concerns."""

    GROUPS = "groups"
    TAGS = "tags"


class ChangeKind(StrEnum):
    """COLLECTION: definitions changed; ASSIGNMENTS: one object's membership."""

    COLLECTION = "collection"
    ASSIGNMENTS = "assignments"


@dataclass(frozen=True)
class ChangeEvent:
    """A change to one project's annotations.

    Attributes:
        kind: Whether definitions or a single object's membership changed.
        project: Project name.
        feature: Groups or tags.
        object_fqn: The affected object for ASSIGNMENTS events.
        external: True when the change came from an edit outside the store.
    """

    kind: ChangeKind
    project: str
    feature: Feature
    object_fqn: str | None = None
    external: bool = False


type Listener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Registry of change listeners."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: tuple[Listener, ...] = ()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; registering the same one twice is a no-op.

        Returns:
            A callable that unsubscribes the listener.
        """
        with self._lock:
            if listener not in self._listeners:
                self._listeners = (*self._listeners, listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> bool:
        with self._lock:
            if listener not in self._listeners:
                return False
            self._listeners = tuple(x for x in self._listeners if x != listener)
            return True

    def clear(self) -> None:
        with self._lock:
            self._listeners = ()

    def fire(self, event: ChangeEvent) -> None:
        # Iterate a snapshot: listeners may (un)subscribe while being notified.
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Change listener %r failed on %s", listener, event)

    def fire_collection_changed(
        self, project: str, feature: Feature, *, external: bool = False
    ) -> None:
        self.fire(
            ChangeEvent(ChangeKind.COLLECTION, project, feature, external=external)
        )

    def fire_assignments_changed(
        self, project: str, feature: Feature, object_fqn: str
    ) -> None:
        self.fire(ChangeEvent(ChangeKind.ASSIGNMENTS, project, feature, object_fqn))
