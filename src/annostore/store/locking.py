"""Shared/exclusive lock for the store's cache map and per-project data.

Any number of threads may hold the lock shared; one thread may hold it
exclusively, and only when nobody holds it shared. Waiting writers block
new readers so a steady stream of reads cannot starve a mutation.

Neither mode is reentrant, and a shared holder cannot upgrade: release
everything before asking for the other mode.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class LockingError(RuntimeError):
    """The lock was used in a way that would deadlock or corrupt its state."""


class ReadWriteLock:
    """Writer-preferring reader/writer lock."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers: dict[int, int] = {}
        self._writer: int | None = None
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                msg = "can't take a shared lock while holding it exclusively"
                raise LockingError(msg)
            while self._writer is not None or self._writers_waiting:
                self._cond.wait()
            self._readers[me] = self._readers.get(me, 0) + 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            count = self._readers.get(me)
            if not count:
                msg = "release_read() called on unheld lock"
                raise LockingError(msg)
            if count == 1:
                del self._readers[me]
            else:
                self._readers[me] = count - 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                msg = "exclusive lock is not reentrant"
                raise LockingError(msg)
            if me in self._readers:
                msg = "can't upgrade a shared lock"
                raise LockingError(msg)
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = me

    def release_write(self) -> None:
        with self._cond:
            if self._writer != threading.get_ident():
                msg = "release_write() called on unheld lock"
                raise LockingError(msg)
            self._writer = None
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
