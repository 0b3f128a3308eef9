"""Per-mirror lock registry.

Create, sync and delete of one mirror are serialized by a lock keyed on
the mirror id; different mirrors run in parallel. Entries are evicted when
a mirror is deleted so the registry does not grow without bound.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class LockRegistry:
    """Map of mirror id to an exclusive lock."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        """Return the lock for ``key``, creating it on first use."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self.get(key)
        with lock:
            yield

    def evict(self, key: str) -> bool:
        """Drop the entry for ``key``.

        A thread already waiting on the old lock still acquires it; work it
        does afterwards re-reads the mirror and finds it gone.
        """
        with self._guard:
            return self._locks.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
