"""In-memory TTL cache for computed next-appointment results."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60


class ResultCache:
    """
    Keyed store with per-entry expiry.

    Expired entries are never returned: they are dropped on get() and by
    sweep(), which the app runs periodically. flush_all() clears everything
    regardless of expiry. Each operation holds a lock, so concurrent writers
    to the same key simply overwrite each other.
    """

    def __init__(self, default_ttl: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def flush_all(self) -> int:
        """Drop every entry. Returns how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cache flushed (%d entries)", count)
        return count

    def sweep(self) -> int:
        """Evict expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache sweep evicted %d entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
