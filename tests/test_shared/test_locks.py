"""Tests for the readers-writer lock."""
from __future__ import annotations

import threading
import time

from src.shared.locks import ReadWriteLock


class TestReadWriteLock:
    def test_concurrent_readers(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(3, timeout=2)

        def reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=3)
        assert not inside.broken

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events: list[str] = []
        lock.acquire_write()

        def reader():
            with lock.read():
                events.append("read")

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.05)
        events.append("write-done")
        lock.release_write()
        thread.join(timeout=2)
        assert events == ["write-done", "read"]

    def test_lock_released_on_error(self):
        lock = ReadWriteLock()
        try:
            with lock.write():
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        with lock.read():
            pass
