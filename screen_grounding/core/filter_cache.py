"""Process-wide cache of menu-bar filtering decisions."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Optional

from .config import config

__all__ = ["MenuBarFilterCache", "get_filter_cache", "normalize_description"]


def normalize_description(description: str, max_length: int | None = None) -> str:
    """Return the cache key for *description*: lower-cased, trimmed, truncated."""
    limit = config.filter_cache_key_length if max_length is None else max_length
    return description.lower().strip()[:limit]


class MenuBarFilterCache:
    """Thread-safe bounded LRU mapping of normalized description -> filter decision.

    Entries older than ``ttl_seconds`` are treated as missing when a TTL is set.
    Simultaneous writes of the same key are last-writer-wins.
    """

    def __init__(
        self,
        max_size: int | None = None,
        ttl_seconds: float | None = None,
        key_length: int | None = None,
    ) -> None:
        self.max_size = max_size if max_size is not None else config.filter_cache_max_size
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.filter_cache_ttl_seconds
        self.key_length = key_length if key_length is not None else config.filter_cache_key_length
        self._entries: OrderedDict[str, tuple[bool, float]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def key_for(self, description: str) -> str:
        return normalize_description(description, self.key_length)

    def get(self, description: str) -> Optional[bool]:
        """Return the cached decision for *description*, or ``None`` on a miss."""
        key = self.key_for(description)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            decision, stored_at = entry
            if self.ttl_seconds and time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None

            self._entries.move_to_end(key)
            self.hits += 1
            return decision

    def set(self, description: str, decision: bool) -> None:
        key = self.key_for(description)
        with self._lock:
            self._entries[key] = (bool(decision), time.monotonic())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, description: str) -> bool:
        with self._lock:
            return self.key_for(description) in self._entries

    def stats(self) -> dict[str, Any]:
        """Return cache statistics for status reporting."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self.hits,
                "misses": self.misses,
            }


_filter_cache: MenuBarFilterCache | None = None
_filter_cache_lock = threading.Lock()


def get_filter_cache() -> MenuBarFilterCache:
    """Return the process-wide filter cache, creating it on first use."""
    global _filter_cache  # pylint: disable=global-statement
    with _filter_cache_lock:
        if _filter_cache is None:
            _filter_cache = MenuBarFilterCache()
        return _filter_cache
