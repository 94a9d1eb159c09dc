"""
Short-TTL result cache shared by all scraping operations.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    stored_at: float


class ResultCache(Generic[V]):
    """
    TTL cache with one lock per key.

    ``get_or_compute`` holds the key's lock while computing, so concurrent
    callers asking for the same key wait for the first computation instead of
    repeating it. Different keys never block each other.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(0.0, ttl_seconds)
        self._clock = clock
        self._entries: dict[Hashable, _Entry[V]] = {}
        self._key_locks: dict[Hashable, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: Hashable) -> V | None:
        with self._registry_lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: Hashable, value: V) -> None:
        with self._registry_lock:
            self._entries[key] = _Entry(value=value, stored_at=self._clock())

    def invalidate(self, key: Hashable) -> None:
        with self._registry_lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._registry_lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """
        Drop expired entries and the idle per-key locks left behind.

        Returns the number of entries removed.
        """

        with self._registry_lock:
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
            for key in expired:
                del self._entries[key]
            idle = [
                key
                for key, lock in self._key_locks.items()
                if key not in self._entries and not lock.locked()
            ]
            for key in idle:
                del self._key_locks[key]
            return len(expired)

    def get_or_compute(
        self,
        key: Hashable,
        compute: Callable[[], V],
        *,
        should_store: Callable[[V], bool] = lambda _value: True,
        refresh: bool = False,
    ) -> tuple[V, bool]:
        """
        Return ``(value, hit)``; compute and maybe store the value on a miss.

        With ``refresh`` the stored value is ignored and always recomputed.
        """

        if not refresh:
            cached = self.get(key)
            if cached is not None:
                return cached, True

        with self._lock_for(key):
            cached = None if refresh else self.get(key)
            if cached is not None:
                return cached, True
            value = compute()
            if should_store(value):
                self.set(key, value)
            return value, False

    def __len__(self) -> int:
        with self._registry_lock:
            return sum(1 for entry in self._entries.values() if not self._is_expired(entry))

    def _is_expired(self, entry: _Entry[V]) -> bool:
        return self._clock() - entry.stored_at >= self._ttl_seconds

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock
