"""
In-process TTL cache and memoization helpers.

This module provides a small, lightweight cache used to memoize calls to the
external recipe provider (search results, ingredient autocomplete, ingredient
images) so identical requests inside a time window reuse the previous result.

Unlike a module-level dict, each TTLCache is an explicitly constructed object:
connectors own their caches, and tests can build, inspect and clear them in
isolation.

Concurrent callers asking for the same key while a computation is running
wait for that computation and share its result instead of starting their own.
Failed computations are never cached. Expired entries are swept whenever a new
entry is stored, and per-key locks are dropped once no caller needs them.
"""

import functools
import json
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Tuple

# Sentinel for "no cached value" (None is a legitimate cached value)
_MISSING = object()


def make_cache_key(*args: Any, **kwargs: Any) -> str:
    """
    Create a deterministic cache key from call arguments.

    Arguments are serialized as canonical JSON (sorted keys, no whitespace), so
    two dicts with the same values produce the same key regardless of object
    identity or insertion order.

    Examples:
        >>> make_cache_key({"b": 1, "a": 2}) == make_cache_key({"a": 2, "b": 1})
        True
    """
    return json.dumps([args, kwargs], sort_keys=True, separators=(",", ":"), default=str)


class KeyedLocks:
    """
    One lock per key, removed as soon as no caller holds or waits on it.

    Usage:
        with locks.hold(key):
            ...  # at most one caller per key runs here
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Key -> [lock, number of callers holding or waiting]
        self._locks: Dict[Hashable, List[Any]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._lock:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)


class TTLCache:
    """
    Time-windowed cache keyed by hashable keys.

    Attributes:
        ttl_seconds: How long an entry stays valid after it was stored
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # Key -> (timestamp, cached_value)
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._key_locks = KeyedLocks()
        self._lock = threading.Lock()

    def _expired(self, timestamp: float, now: float) -> bool:
        return now - timestamp > self.ttl_seconds

    def _lookup(self, key: Hashable) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING

        timestamp, value = entry
        if self._expired(timestamp, self._clock()):
            del self._entries[key]
            return _MISSING
        return value

    def _sweep(self, now: float) -> None:
        expired = [key for key, (timestamp, _) in self._entries.items() if self._expired(timestamp, now)]
        for key in expired:
            del self._entries[key]

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        """Return the cached value for key, or default if missing or expired."""
        with self._lock:
            value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            self._entries[key] = (now, value)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        Only one computation per key runs at a time. Exceptions raised by
        compute propagate to the caller and nothing is stored.

        Args:
            key: Cache key (see make_cache_key)
            compute: Zero-argument callable producing the value

        Returns:
            Cached or freshly computed value
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        with self._key_locks.hold(key):
            # Another caller may have filled the entry while we waited
            value = self.get(key, _MISSING)
            if value is not _MISSING:
                return value

            value = compute()
            self.set(key, value)
            return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Clear all cached entries (useful for testing)."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Get the current number of live cached entries (useful for monitoring)."""
        with self._lock:
            self._sweep(self._clock())
            return len(self._entries)


def memoize(cache: TTLCache, key_fn: Callable[..., Hashable] = make_cache_key) -> Callable:
    """
    Decorator memoizing a function's results in the given TTLCache.

    The decorated function exposes the cache as ``wrapper.cache``.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_fn(*args, **kwargs)
            return cache.get_or_compute(key, lambda: func(*args, **kwargs))

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper

    return decorator
