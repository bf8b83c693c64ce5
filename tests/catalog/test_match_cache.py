"""Tests for the match result cache."""

from marketcat.catalog.match_cache import MatchResultCache, make_cache_key, sweep_expired
from marketcat.domain.models import CacheEntry, Confidence, MatchResult

RESULTS = [
    MatchResult(
        category_id=100,
        display_path="Telefon > Aksesuar > Kılıf",
        score=0.71,
        confidence=Confidence.HIGH,
        matched_keywords=("telefon", "kilifi"),
    )
]


class TestMakeCacheKey:
    """Tests for cache key normalization."""

    def test_trim_and_lowercase(self) -> None:
        """Surrounding whitespace and case do not matter."""
        assert make_cache_key("  Test  ", "desc", 5) == make_cache_key("test", "desc", 5)

    def test_description_truncated(self) -> None:
        """Only the first 200 description characters take part."""
        base = "a" * 200
        assert make_cache_key("t", base + "xyz", 5) == make_cache_key("t", base + "abc", 5)
        assert make_cache_key("t", "A" * 199 + "b", 5) != make_cache_key("t", "a" * 199 + "c", 5)

    def test_top_n_part_of_key(self) -> None:
        """Different top_n values use different keys."""
        assert make_cache_key("test", "", 5) != make_cache_key("test", "", 3)

    def test_separator_in_title_does_not_collide(self) -> None:
        """Text cannot move between title and description."""
        assert make_cache_key("kilif:tencere", "", 5) != make_cache_key("kilif", "tencere:", 5)
        assert make_cache_key("a", "b:5", 5) != make_cache_key("a:b", "5", 5)


class TestSweepExpired:
    """Tests for the sweep policy."""

    def test_removes_only_expired(self) -> None:
        """Entries older than the TTL are removed."""
        entries = {
            "old": CacheEntry([], fetched_at=0.0, ttl=100),
            "edge": CacheEntry([], fetched_at=900.0, ttl=100),
            "new": CacheEntry([], fetched_at=950.0, ttl=100),
        }
        removed = sweep_expired(entries, now=1000.0, ttl=100)
        assert removed == 1
        assert set(entries) == {"edge", "new"}


class TestMatchResultCache:
    """Tests for MatchResultCache."""

    def test_hit_and_miss(self, clock) -> None:
        """Stored results are returned until they expire."""
        cache = MatchResultCache(clock=clock)
        key = make_cache_key("Test", "desc", 5)

        assert cache.get(key) is None
        cache.put(key, RESULTS)
        assert cache.get(make_cache_key("  test ", "DESC", 5)) == RESULTS

    def test_expiry(self, clock) -> None:
        """Results older than the TTL are a miss."""
        cache = MatchResultCache(ttl=1800, clock=clock)
        cache.put("k", RESULTS)

        clock.advance(1799)
        assert cache.get("k") == RESULTS
        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_sweep_on_overflow(self, clock) -> None:
        """Going over the limit sweeps expired entries."""
        cache = MatchResultCache(ttl=1800, max_entries=100, clock=clock)
        for i in range(50):
            cache.put(f"old-{i}", RESULTS)
        clock.advance(1801)
        for i in range(51):
            cache.put(f"new-{i}", RESULTS)

        assert len(cache) == 51

    def test_size_bounded(self, clock) -> None:
        """Size never exceeds the limit after a put."""
        cache = MatchResultCache(max_entries=100, clock=clock)
        for i in range(150):
            cache.put(f"key-{i}", RESULTS)
            assert len(cache) <= 100

        assert cache.get("key-0") is None
        assert cache.get("key-149") == RESULTS

    def test_clear(self, clock) -> None:
        """clear() empties the cache."""
        cache = MatchResultCache(clock=clock)
        cache.put("k", RESULTS)
        cache.clear()
        assert len(cache) == 0
