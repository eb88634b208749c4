"""In-memory cache for aggregates computed from collection snapshots.

Dashboard summaries and filter-option lists are derived from one or more
collections.  Each cached entry records which collections it was built
from, so when the repository applies a new snapshot of a collection only
the entries that read it are dropped.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable


@dataclass
class _Entry:
    value: Any
    expires_at: float
    sources: frozenset


class TTLCache:
    """Thread-safe TTL cache whose entries are tagged with source collections.

    Entries expire ``ttl_seconds`` after they are stored.  When ``maxsize``
    entries are live, storing a new key first evicts the entry that would
    expire soonest.

    Usage::

        cache = TTLCache(maxsize=32, ttl_seconds=300)
        summary = cache.get_or_set(
            ("summary", "2024-03-01", ""),
            lambda: build_summary(...),
            sources=("Livestock Farmers", "Capacity Building"),
        )
        cache.invalidate("Livestock Farmers")   # summary is gone

    Args:
        maxsize: Most entries kept at once.
        ttl_seconds: Lifetime of an entry.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[Any, _Entry] = {}
        self._lock = threading.Lock()
        self._counts = {"hits": 0, "misses": 0, "evictions": 0, "invalidations": 0}
        # Bumped on every invalidate(collection); never reset.
        self._versions: dict[str, int] = {}

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if now > e.expires_at]:
            del self._entries[key]

    def get(self, key: Any) -> Any | None:
        """Cached value for *key*, or ``None`` when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() > entry.expires_at:
                del self._entries[key]
                entry = None
            self._counts["misses" if entry is None else "hits"] += 1
            return None if entry is None else entry.value

    def set(self, key: Any, value: Any, sources: Iterable[str] = ()) -> None:
        """Store *value* under *key*, remembering the collections it read."""
        with self._lock:
            self._store(key, value, sources)

    def _store(self, key: Any, value: Any, sources: Iterable[str]) -> None:
        entry = _Entry(value, self._clock() + self._ttl, frozenset(sources))
        if key not in self._entries and len(self._entries) >= self._maxsize:
            self._purge_expired()
        if key not in self._entries and len(self._entries) >= self._maxsize:
            victim = min(self._entries, key=lambda k: self._entries[k].expires_at)
            del self._entries[victim]
            self._counts["evictions"] += 1
        self._entries[key] = entry

    def get_or_set(self, key: Any, compute: Callable[[], Any],
                   sources: Iterable[str] = ()) -> Any:
        """Return the cached value, computing and storing it on a miss.

        *compute* runs outside the lock; two concurrent misses may both
        compute, and the later store wins.  A result is returned but not
        stored when one of *sources* was invalidated while it was being
        computed, since it may reflect the replaced snapshot.
        """
        value = self.get(key)
        if value is not None:
            return value
        sources = tuple(sources)
        with self._lock:
            seen = self._source_versions(sources)
        value = compute()
        with self._lock:
            if self._source_versions(sources) == seen:
                self._store(key, value, sources)
        return value

    def _source_versions(self, sources: tuple[str, ...]) -> tuple[int, ...]:
        return tuple(self._versions.get(name, 0) for name in sources)

    def invalidate(self, collection: str) -> int:
        """Drop every entry built from *collection*; returns how many."""
        with self._lock:
            self._versions[collection] = self._versions.get(collection, 0) + 1
            doomed = [k for k, e in self._entries.items() if collection in e.sources]
            for key in doomed:
                del self._entries[key]
            self._counts["invalidations"] += len(doomed)
            return len(doomed)

    def clear(self) -> None:
        """Remove all entries and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._counts = dict.fromkeys(self._counts, 0)

    def stats(self) -> dict[str, int]:
        """Counters plus the number of live entries as ``size``."""
        with self._lock:
            self._purge_expired()
            return {**self._counts, "size": len(self._entries)}
