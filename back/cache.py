"""
Simple TTL in-memory cache for upstream lookups.

Each store is a TTLCache instance so callers (and tests) can swap in their
own, e.g. with a fake clock. Expired entries are dropped lazily on read and
by the periodic sweep started in main.py.
"""

import time
from typing import Any, Callable

# Default TTLs per category (in seconds)
TTLS = {
    "tmdb": 3600,            # 1 h, generic TMDB responses
    "anime_info": 86400,     # 24 h, "is this TMDB id an anime" flag
    "anilist_id": 86400,     # 24 h, TMDB id -> AniList id
    "anilist_tmdb": 86400,   # 24 h, AniList id -> TMDB match
    "consumet": 3600,        # 1 h, resolved direct streams
}

SWEEP_INTERVAL = 600  # 10 min

_MISSING = object()


class TTLCache:
    def __init__(self, default_ttl: float, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: dict[str, tuple[float, Any]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value if it exists and hasn't expired."""
        entry = self._store.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return default
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._store[key] = (self._clock() + ttl, value)

    def ttl(self, key: str) -> float | None:
        """Remaining lifetime of a key in seconds, None if absent or expired."""
        if self.get(key, _MISSING) is _MISSING:
            return None
        return self._store[key][0] - self._clock()

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._store)

    def invalidate(self, prefix: str) -> None:
        """Remove all cache entries matching a prefix."""
        keys = [k for k in self._store if k.startswith(prefix)]
        for k in keys:
            del self._store[k]

    def sweep(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._store.items() if now >= expires_at]
        for k in expired:
            del self._store[k]
        return len(expired)

    def clear(self) -> None:
        self._store.clear()


def create(category: str, clock: Callable[[], float] = time.monotonic) -> TTLCache:
    """Build a cache using the TTL of a named category."""
    return TTLCache(TTLS.get(category, 300), clock=clock)
