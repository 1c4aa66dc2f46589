"""
Per-key critical sections used to serialize writes for one professional.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLocks:
    """
    Hands out one ``threading.Lock`` per key.

    Check-then-write sequences (conflict check followed by insert, count
    followed by insert/update) run while holding the lock of the professional
    they concern, so two writers in this process never interleave them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield


# Shared by every service instance that is not given its own registry.
default_locks = KeyedLocks()
