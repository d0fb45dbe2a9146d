"""
Unit tests for the TTL cache.
"""

import pytest

from smart_paths.utils.ttl_cache import CacheEntry, TTLCache


class TestTTLCache:
    """Tests for TTLCache."""

    @pytest.fixture
    def cache(self, clock):
        """Create a cache with a 10 second lifetime."""
        return TTLCache(ttl_seconds=10, clock=clock)

    def test_get_within_ttl(self, cache, clock):
        """Test a value is returned before it expires."""
        cache.set("a", 1)
        clock.advance(9.9)

        assert cache.get("a") == 1
        assert cache.stats().hits == 1

    def test_expires_at_ttl(self, cache, clock):
        """Test age equal to the TTL counts as expired."""
        cache.set("a", 1)
        clock.advance(10)

        assert cache.get("a") is None
        stats = cache.stats()
        assert stats.expirations == 1
        assert stats.misses == 1
        assert len(cache) == 0

    def test_miss_returns_default(self, cache):
        """Test a missing key returns the default."""
        assert cache.get("missing", "fallback") == "fallback"

    def test_per_entry_ttl(self, cache, clock):
        """Test an explicit TTL overrides the default."""
        cache.set("short", 1, ttl=1)
        cache.set("long", 2)
        clock.advance(2)

        assert "short" not in cache
        assert "long" in cache

    def test_set_replaces_and_resets_age(self, cache, clock):
        """Test re-setting a key restarts its lifetime."""
        cache.set("a", 1)
        clock.advance(8)
        cache.set("a", 2)
        clock.advance(8)

        assert cache.get("a") == 2

    def test_sweep_removes_expired(self, cache, clock):
        """Test sweep drops only expired entries."""
        cache.set("old", 1)
        clock.advance(6)
        cache.set("new", 2)
        clock.advance(5)

        assert cache.sweep() == 1
        assert list(cache.keys()) == ["new"]

    def test_max_size_evicts_oldest(self, clock):
        """Test the oldest entry is evicted when full."""
        cache = TTLCache(ttl_seconds=10, max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert "a" not in cache
        assert cache.stats().evictions == 1

    def test_invalidate_where(self, cache):
        """Test predicate-based invalidation."""
        cache.set(("docs", "ko"), 1)
        cache.set(("docs", "en"), 2)
        cache.set(("music", "ko"), 3)

        removed = cache.invalidate_where(lambda key: key[0] == "docs")

        assert removed == 2
        assert len(cache) == 1

    def test_rejects_non_positive_ttl(self):
        """Test a zero TTL is refused."""
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)


class TestCacheCorruption:
    """Corrupt entries behave like misses."""

    def test_validator_failure_is_miss(self, clock):
        """Test a value failing validation is dropped and recomputable."""
        cache = TTLCache(ttl_seconds=10, clock=clock, validator=lambda v: isinstance(v, list))
        cache.set("listing", "not a list")

        assert cache.get("listing") is None
        stats = cache.stats()
        assert stats.corruptions == 1
        assert stats.misses == 1
        assert "listing" not in cache

        cache.set("listing", ["a"])
        assert cache.get("listing") == ["a"]

    def test_validator_exception_is_miss(self, clock):
        """Test a raising validator is treated as corruption."""
        def explode(value):
            raise RuntimeError("boom")

        cache = TTLCache(ttl_seconds=10, clock=clock, validator=explode)
        cache.set("k", 1)

        assert cache.get("k") is None
        assert cache.stats().corruptions == 1

    def test_foreign_slot_is_miss(self, clock):
        """Test a slot not holding a CacheEntry is dropped."""
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache._entries["k"] = "garbage"

        assert cache.get("k") is None
        assert cache.stats().corruptions == 1


class TestCacheEntry:
    """Tests for CacheEntry."""

    def test_age_and_expiry(self):
        """Test age arithmetic."""
        entry = CacheEntry(value="x", inserted_at=100.0, ttl=5.0)

        assert entry.age(103.0) == 3.0
        assert not entry.is_expired(104.9)
        assert entry.is_expired(105.0)
