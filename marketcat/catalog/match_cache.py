"""Short-lived memoization of match results.

Sellers tend to retry the same title while editing a listing, so results
are kept for a short time keyed on the normalized input. The cache is
swept for expired entries only when a write pushes it over its size
limit.
"""

import json
import time
from collections.abc import Callable, MutableMapping, Sequence

import structlog

from marketcat.domain.models import CacheEntry, MatchResult

logger = structlog.get_logger()

DEFAULT_MATCH_CACHE_TTL_SECONDS = 30 * 60
DEFAULT_MATCH_CACHE_MAX_ENTRIES = 100
DESCRIPTION_KEY_LENGTH = 200


def make_cache_key(title: str, description: str, top_n: int) -> str:
    """Build the cache key for a match request.

    Title and description are trimmed and lowercased; only the first
    200 characters of the description take part. The parts are JSON
    encoded so separators inside a title cannot shift text into the
    description.
    """
    description_part = description.strip().lower()[:DESCRIPTION_KEY_LENGTH]
    return json.dumps([title.strip().lower(), description_part, top_n], ensure_ascii=False)


def sweep_expired(
    entries: MutableMapping[str, CacheEntry],
    now: float,
    ttl: float,
) -> int:
    """Remove entries older than ttl.

    Args:
        entries: Cache entries keyed by cache key.
        now: Current clock reading.
        ttl: Maximum age in seconds.

    Returns:
        Number of entries removed.
    """
    expired = [key for key, entry in entries.items() if now - entry.fetched_at > ttl]
    for key in expired:
        del entries[key]
    return len(expired)


class MatchResultCache:
    """Bounded TTL cache of matcher results."""

    def __init__(
        self,
        ttl: float = DEFAULT_MATCH_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_MATCH_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry[tuple[MatchResult, ...]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> list[MatchResult] | None:
        """Get cached results, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Match cache miss", key=key)
            return None
        if not entry.is_valid(self._clock()):
            del self._entries[key]
            logger.debug("Match cache entry expired", key=key)
            return None
        logger.debug("Match cache hit", key=key)
        return list(entry.value)

    def put(self, key: str, results: Sequence[MatchResult]) -> None:
        """Store results, sweeping the cache when it grows past its limit."""
        now = self._clock()
        # Re-inserting moves the key to the end of the eviction order
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(tuple(results), now, self.ttl)

        if len(self._entries) <= self.max_entries:
            return

        removed = sweep_expired(self._entries, now, self.ttl)
        evicted = 0
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]
            evicted += 1
        logger.debug(
            "Match cache swept",
            expired=removed,
            evicted=evicted,
            size=len(self._entries),
        )

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()
