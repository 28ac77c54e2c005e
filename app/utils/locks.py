"""In-process keyed locks for per-charge and per-period serialization."""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager

_registry_lock = threading.Lock()
_locks: dict[Hashable, tuple[threading.Lock, int]] = {}


@contextmanager
def keyed_lock(key: Hashable) -> Iterator[None]:
    """Hold a lock shared by every caller using the same ``key``.

    Entries are reference counted and dropped once no caller holds them.
    This only serializes threads of one process; cross-process safety comes
    from the store's compare-and-set and unique constraints.
    """
    with _registry_lock:
        lock, holders = _locks.get(key, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _locks[key] = (lock, holders + 1)

    lock.acquire()
    try:
        yield
    finally:
        lock.release()
        with _registry_lock:
            _, holders = _locks[key]
            if holders <= 1:
                _locks.pop(key, None)
            else:
                _locks[key] = (lock, holders - 1)
