import time
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, Hashable, List, Optional


@dataclass
class CacheEntry:
    """A cached payload plus the bookkeeping needed to expire it."""

    payload: Any
    stored_at: float
    ttl: float
    # free-form metadata kept next to the payload (cursors, totals, ...)
    meta: Dict[str, Any] = field(default_factory=dict)

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


class CacheStore:
    """Thread-safe in-memory key/value store with a TTL per entry.

    Expired entries are never returned by `get`: they are dropped lazily on
    lookup, or in bulk by `sweep`. Keys can be any hashable value; callers
    are expected to use tuples so that partitions can be matched structurally
    instead of by string prefix.

    The store lives in process memory only and is empty after a restart.
    """

    def __init__(self, default_ttl: float = 300, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[Hashable, CacheEntry] = {}
        self._lock = RLock()

    def now(self) -> float:
        return self._clock()

    def set(self, key: Hashable, payload: Any, ttl: Optional[float] = None, **meta) -> CacheEntry:
        entry = CacheEntry(
            payload=payload,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
            meta=meta,
        )
        with self._lock:
            self._store[key] = entry
        return entry

    def get(self, key: Hashable) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if not entry.is_valid(self._clock()):
                # expired
                del self._store[key]
                return None
            return entry

    def peek(self, key: Hashable) -> Optional[CacheEntry]:
        """Return the entry for `key` whether or not it has expired."""
        with self._lock:
            return self._store.get(key)

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def delete_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Delete every key matching `predicate`; returns how many were removed."""
        with self._lock:
            doomed = [k for k in self._store if predicate(k)]
            for k in doomed:
                del self._store[k]
        return len(doomed)

    def sweep(self) -> int:
        """Drop all expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._store.items() if not e.is_valid(now)]
            for k in expired:
                del self._store[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def items(self) -> List[tuple]:
        """Snapshot of (key, entry) pairs, expired ones included."""
        with self._lock:
            return list(self._store.items())

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
