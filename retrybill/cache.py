"""Thread-safe in-memory caches with expiry."""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Hashable

_MISSING = object()


def _seconds(expiration: float | timedelta) -> float:
    if isinstance(expiration, timedelta):
        return expiration.total_seconds()
    return float(expiration)


class CacheManager:
    """Cache whose entries expire lazily after their TTL.

    A TTL of zero keeps the entry forever; a negative TTL is rejected
    silently and nothing is stored.
    """

    def __init__(self) -> None:
        self._data: dict[Hashable, tuple[Any, float | None]] = {}
        self._lock = threading.RLock()

    def set(self, key: Hashable, value: Any, expiration: float | timedelta = 0) -> None:
        ttl = _seconds(expiration)
        if ttl < 0:
            return
        expires = time.monotonic() + ttl if ttl > 0 else None
        with self._lock:
            self._data[key] = (value, expires)

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return default
            value, expires = entry
            if expires is not None and time.monotonic() >= expires:
                del self._data[key]
                return default
            return value

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._data.pop(key, None)

    def remember(
        self,
        key: Hashable,
        expiration: float | timedelta,
        compute: Callable[[], Any],
    ) -> Any:
        """Return the cached value, computing and storing it when absent."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        result = compute()
        self.set(key, result, expiration)
        return result


class LocalCacheManager:
    """Dictionary cache where a timer removes each entry after its expiration."""

    def __init__(self) -> None:
        self._data: dict[Hashable, tuple[Any, threading.Timer]] = {}
        self._lock = threading.RLock()

    def set(self, key: Hashable, value: Any, expiration: float | timedelta) -> None:
        delay = max(_seconds(expiration), 0.0)
        with self._lock:
            previous = self._data.pop(key, None)
            if previous is not None:
                previous[1].cancel()
            timer = threading.Timer(delay, self._expire, args=(key,))
            timer.daemon = True
            self._data[key] = (value, timer)
            timer.args = (key, timer)
            timer.start()

    def _expire(self, key: Hashable, timer: threading.Timer) -> None:
        with self._lock:
            entry = self._data.get(key)
            if entry is not None and entry[1] is timer:
                del self._data[key]

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._data.get(key)
            return default if entry is None else entry[0]

    def delete(self, key: Hashable) -> None:
        with self._lock:
            entry = self._data.pop(key, None)
        if entry is not None:
            entry[1].cancel()

    def remember(
        self,
        key: Hashable,
        expiration: float | timedelta,
        compute: Callable[[], Any],
    ) -> Any:
        """Return the cached value, computing and storing it when absent."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        result = compute()
        self.set(key, result, expiration)
        return result