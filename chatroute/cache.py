"""
Thread-safe TTL cache used for task analyses and provider health.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """In-memory map with per-entry expiry guarded by a single lock.

    Expired entries are dropped lazily on :meth:`get` and in bulk every
    ``purge_interval`` puts.
    """

    def __init__(
        self,
        ttl: float,
        max_size: int = 1024,
        purge_interval: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            ttl: Default time-to-live in seconds.
            max_size: Maximum entries; the oldest insertion is evicted first.
            purge_interval: Number of puts between expired-entry sweeps.
            clock: Monotonic time source, injectable for tests.
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")
        self.ttl = ttl
        self.max_size = max_size
        self._purge_interval = purge_interval
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._puts = 0
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def put(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """Store *value* under *key* for *ttl* seconds (default: cache TTL)."""
        with self._lock:
            self._puts += 1
            if self._puts >= self._purge_interval:
                self._puts = 0
                self._purge_locked()

            self._entries.pop(key, None)
            self._entries[key] = (value, self._clock() + (ttl if ttl is not None else self.ttl))

            # dicts keep insertion order, so the first key is the oldest write
            while len(self._entries) > self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def invalidate(self, key: Hashable) -> bool:
        """Drop *key*. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    @property
    def hit_rate(self) -> float:
        with self._lock:
            total = self.hits + self.misses
            return self.hits / total if total else 0.0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[1]
