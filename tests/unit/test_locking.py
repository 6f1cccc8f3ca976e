"""Unit tests for the reader/writer lock."""

from __future__ import annotations

import threading
import time

import pytest

from annostore.store.locking import LockingError, ReadWriteLock


class TestReadWriteLock:
    """Shared readers, exclusive writers, misuse detection."""

    def test_readers_share(self) -> None:
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=5)

        def reader() -> None:
            with lock.read():
                both_inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert not both_inside.broken

    def test_writer_excludes_readers(self) -> None:
        lock = ReadWriteLock()
        order: list[str] = []
        lock.acquire_write()

        def reader() -> None:
            with lock.read():
                order.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.05)
        order.append("write done")
        lock.release_write()
        t.join(timeout=5)
        assert order == ["write done", "read"]

    def test_waiting_writer_blocks_new_readers(self) -> None:
        lock = ReadWriteLock()
        order: list[str] = []
        lock.acquire_read()

        def writer() -> None:
            with lock.write():
                order.append("write")

        def late_reader() -> None:
            with lock.read():
                order.append("late read")

        w = threading.Thread(target=writer)
        w.start()
        time.sleep(0.05)
        r = threading.Thread(target=late_reader)
        r.start()
        time.sleep(0.05)
        lock.release_read()
        w.join(timeout=5)
        r.join(timeout=5)
        assert order == ["write", "late read"]

    def test_upgrade_refused(self) -> None:
        lock = ReadWriteLock()
        with lock.read(), pytest.raises(LockingError, match="upgrade"):
            lock.acquire_write()

    def test_write_not_reentrant(self) -> None:
        lock = ReadWriteLock()
        with lock.write(), pytest.raises(LockingError):
            lock.acquire_write()

    def test_read_while_writing_refused(self) -> None:
        lock = ReadWriteLock()
        with lock.write(), pytest.raises(LockingError):
            lock.acquire_read()

    def test_release_unheld_raises(self) -> None:
        lock = ReadWriteLock()
        with pytest.raises(LockingError):
            lock.release_read()
        with pytest.raises(LockingError):
            lock.release_write()

    def test_released_after_exception(self) -> None:
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError), lock.write():
            raise RuntimeError
        with lock.write():
            pass
