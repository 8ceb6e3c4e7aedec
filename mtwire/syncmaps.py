"""Thread-safe map and set used for pending requests and acknowledgements."""

from __future__ import annotations

import threading
from typing import Generic, Hashable, Iterator, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SyncMap(Generic[K, V]):
    """A dictionary guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: dict[K, V] = {}

    def has(self, key: K) -> bool:
        with self._lock:
            return key in self._items

    def get(self, key: K) -> Optional[V]:
        """Value stored for ``key``, or None."""
        with self._lock:
            return self._items.get(key)

    def add(self, key: K, value: V) -> None:
        with self._lock:
            self._items[key] = value

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._items)

    def delete(self, key: K) -> bool:
        """Remove ``key``; True if it was present."""
        with self._lock:
            return self._items.pop(key, _MISSING) is not _MISSING

    def reset(self) -> None:
        with self._lock:
            self._items = {}

    def close(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._items.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


_MISSING = object()


class SyncSet(Generic[K]):
    """A set guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: set[K] = set()

    def add(self, key: K) -> bool:
        """Add ``key``; True if it was not there before."""
        with self._lock:
            before = len(self._items)
            self._items.add(key)
            return len(self._items) != before

    def has(self, key: K) -> bool:
        with self._lock:
            return key in self._items

    def delete(self, key: K) -> None:
        with self._lock:
            self._items.discard(key)

    def pop(self, key: K) -> bool:
        """Remove ``key``; True if it was present."""
        with self._lock:
            if key in self._items:
                self._items.remove(key)
                return True
            return False

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def clone(self) -> "SyncSet[K]":
        copy: SyncSet[K] = SyncSet()
        with self._lock:
            copy._items = set(self._items)
        return copy

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())