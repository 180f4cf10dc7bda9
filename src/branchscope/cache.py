"""
In-memory TTL cache fronting expensive repository queries.

Entries carry their own time-to-live and are evicted lazily: a stale entry
is only removed when someone reads it. There is no background sweep; the
TTLs in use are a few seconds, which bounds how long stale data lingers.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its creation time and time-to-live (seconds)."""

    data: T
    created_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        if self.ttl <= 0:
            return False
        return now - self.created_at <= self.ttl


class TTLCache:
    """
    Thread-safe key/value cache with per-entry TTL.

    Features:
    - Lazy, read-time eviction of expired entries
    - Bounded size (oldest inserted entry dropped when full)
    - Substring-based coarse invalidation
    - Injectable clock for deterministic tests
    """

    def __init__(self, max_entries: int = 100, clock: Optional[Clock] = None):
        """
        Initialize cache.

        Args:
            max_entries: Maximum number of entries held at once
            clock: Callable returning the current time in seconds
                   (defaults to time.monotonic)
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        """
        Get a fresh value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if absent or expired (expired entries
            are removed)
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if not entry.is_fresh(self._clock()):
                del self._entries[key]
                self._misses += 1
                self._evictions += 1
                logger.debug(f"Cache expired: {key}")
                return None

            self._hits += 1
            return entry.data

    def set(self, key: str, value: Any, ttl: float) -> None:
        """
        Store or overwrite a value, resetting its creation time.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (0 or less is never served)
        """
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                oldest, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Cache full, dropped oldest entry: {oldest}")

            self._entries[key] = CacheEntry(data=value, created_at=self._clock(), ttl=ttl)

    def invalidate(self, selector: Optional[str] = None) -> int:
        """
        Remove entries from the cache.

        Args:
            selector: If None, clear everything; otherwise remove every key
                      containing this substring

        Returns:
            Number of entries removed
        """
        with self._lock:
            if selector is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed

            doomed = [key for key in self._entries if selector in key]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def get_or_compute(
        self,
        key: str,
        ttl: float,
        compute: Callable[[], T],
        force_refresh: bool = False,
    ) -> T:
        """Return the cached value for ``key`` or compute and store it.

        ``force_refresh`` skips the lookup but still stores the new value.
        Values of None are never cached.
        """
        if not force_refresh:
            cached = self.get(key)
            if cached is not None:
                return cached

        value = compute()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        """Hit/miss counters and current size."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }


class _Call:
    __slots__ = ("done", "result", "error")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """Coalesce concurrent computations of the same key.

    The first caller for a key runs the function; callers arriving while it
    runs wait and receive the same result (or the same exception). Once the
    call finishes the key is forgotten, so later callers compute again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[Hashable, _Call] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = _Call()
                self._calls[key] = call

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            call.result = fn()
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()
        return call.result

    def in_flight(self) -> int:
        with self._lock:
            return len(self._calls)
