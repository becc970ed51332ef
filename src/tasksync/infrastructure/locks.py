"""Per-path lock registry."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class PathLocks:
    """One reentrant lock per vault-relative path.

    Reentrancy matters: with synchronous dispatch a change handler runs on
    the writer's thread while the writer still holds the path's lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, path: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.RLock()
                self._locks[path] = lock
            return lock

    @contextmanager
    def hold(self, path: str) -> Iterator[None]:
        lock = self.get(path)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
