# comicshelf/cache.py
"""
In-process caches shared by the catalog routes.

Both objects are created once per process (see ``comicshelf.main``) and
handed to routes through ``app.state``. Nothing here takes a lock: a read
racing an invalidation can return one stale value, which is acceptable for
counts and genre lists.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

TOTAL_COUNT = "total"
RECENT_COUNT = "recent"
GENRE_LIST = "genres"


def genre_count_key(genre: str) -> Tuple[str, str]:
    return ("genre_count", genre)


class QueryCache:
    """TTL cache for unparameterized aggregate reads (counts, genre list)."""

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: Any) -> Any:
        self._entries[key] = (value, self._clock())
        return value

    async def get_or_compute(self, key: Hashable, compute: Callable[[], Awaitable[Any]]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        return self.set(key, await compute())

    def invalidate(self) -> None:
        """Drop every entry. Called by each comic/chapter write before it responds."""
        self._entries.clear()
        logger.debug("Query cache invalidated")

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


class ViewTracker:
    """
    Remembers when each (client ip, comic id) pair last bumped a comic's view
    counter. Held in memory only, so it resets with the process.
    """

    MAX_ENTRIES = 10_000

    def __init__(self, cooldown: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.cooldown = cooldown
        self._clock = clock
        self._seen: Dict[Tuple[str, int], float] = {}

    def should_count(self, client_ip: str, comic_id: int) -> bool:
        key = (client_ip or "unknown", int(comic_id))
        now = self._clock()
        last = self._seen.get(key)
        if last is not None and now - last <= self.cooldown:
            return False

        self._seen[key] = now
        if len(self._seen) > self.MAX_ENTRIES:
            self._prune(now)
        return True

    def _prune(self, now: float) -> None:
        cutoff = now - self.cooldown
        for key in [k for k, seen_at in self._seen.items() if seen_at < cutoff]:
            del self._seen[key]

    def __len__(self) -> int:
        return len(self._seen)
