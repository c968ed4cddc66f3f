from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """
    One lock per key (request id), created on demand.

    Serializes read-modify-write cycles on the same request inside this
    process; different requests never wait on each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield
