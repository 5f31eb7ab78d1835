"""In-memory TTL cache keyed by logical query.

Keys look like ``<query_class>`` or ``<query_class>:<detail>``; the query
class picks the freshness duration.  An entry is fresh while
``now - stored_at < duration``.  Stale entries are detected lazily on
``get``; ``sweep`` drops them in bulk.  When a new key would overflow the
capacity bound, stale entries are swept first and the oldest entry is
evicted only if that freed nothing.

Readers never block each other.  ``put``, ``invalidate``, ``clear`` and
``sweep`` take exclusive access.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional

from pvedash.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_DURATION = 30.0


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float


class ReadWriteLock:
    """Many concurrent readers or one writer; writers are not starved."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def query_class(key: str) -> str:
    return key.split(":", 1)[0]


class TTLCache:
    """Shared cache service; construct once and pass it around."""

    def __init__(
        self,
        durations: Mapping[str, float],
        *,
        default_duration: float = DEFAULT_DURATION,
        max_entries: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._durations = dict(durations)
        self._default = default_duration
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()

    def duration_for(self, key: str) -> float:
        return self._durations.get(query_class(key), self._default)

    def _fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at < self.duration_for(entry.key)

    def get(self, key: str) -> Optional[Any]:
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._fresh(entry, self._clock()):
                return None
            return entry.value

    def _drop_stale(self) -> list[str]:
        # Caller holds the write lock
        now = self._clock()
        stale = [k for k, e in self._entries.items() if not self._fresh(e, now)]
        for key in stale:
            del self._entries[key]
        return stale

    def _full(self, key: str) -> bool:
        return bool(self._max_entries) and key not in self._entries and len(self._entries) >= self._max_entries

    def put(self, key: str, value: Any) -> None:
        with self._lock.write():
            if self._full(key) and self._drop_stale():
                log.debug("cache.swept", reason="capacity")
            if self._full(key):
                oldest = min(self._entries.values(), key=lambda e: e.stored_at)
                del self._entries[oldest.key]
                log.debug("cache.evicted", key=oldest.key)
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())

    def invalidate(self, key: str) -> bool:
        with self._lock.write():
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def sweep(self) -> int:
        """Drop every stale entry; returns how many were removed."""
        with self._lock.write():
            stale = self._drop_stale()
        if stale:
            log.debug("cache.swept", removed=len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
