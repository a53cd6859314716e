"""Bounded insertion-ordered cache used for term and result memoisation."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class BoundedCache(Generic[K, V]):
    """FIFO cache with an optional time-to-live.

    Entries are evicted oldest-inserted first once ``max_entries`` is
    exceeded; lookups do not refresh an entry's position. With a ``ttl``
    an entry older than ``ttl`` seconds counts as a miss and is dropped.
    """

    def __init__(
        self,
        max_entries: int = 100,
        *,
        ttl: Optional[float] = None,
        time_fn: Optional[Callable[[], float]] = None,
    ) -> None:
        self._max_entries = max(0, int(max_entries))
        self._ttl = None if ttl is None else max(0.0, float(ttl))
        self._time_fn = time_fn or time.monotonic
        self._lock = threading.RLock()
        self._entries: "OrderedDict[K, Tuple[float, V]]" = OrderedDict()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def ttl(self) -> Optional[float]:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.get(key, _MISSING) is not _MISSING  # type: ignore[arg-type]

    def _expired(self, created: float) -> bool:
        return self._ttl is not None and self._time_fn() - created >= self._ttl

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            created, value = entry
            if self._expired(created):
                del self._entries[key]
                return default
            return value

    def put(self, key: K, value: V) -> None:
        if self._max_entries == 0:
            return
        with self._lock:
            # Re-inserting moves the key to the newest position with a fresh timestamp.
            self._entries.pop(key, None)
            self._entries[key] = (self._time_fn(), value)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._entries.keys())


__all__ = ["BoundedCache"]
