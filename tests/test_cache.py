"""
Unit tests for the in-memory TTL cache backing the analytics reports.

Tests cover:
- get / set of report objects
- TTL expiry and FIFO eviction at max_size
- ``analytics:`` prefix invalidation after payout changes
- Disabled mode and statistics
"""

import time
from decimal import Decimal

from aquafin.core.cache import CacheEntry, TTLCache

# ────────────────────────────────────────────────────────────────────────────
# CacheEntry
# ────────────────────────────────────────────────────────────────────────────


class TestCacheEntry:
    def test_fresh_entry_is_live(self):
        assert not CacheEntry({"roi": 25}).is_expired(ttl=10.0)

    def test_backdated_entry_expires(self):
        entry = CacheEntry({"roi": 25})
        entry.created_at = time.monotonic() - 15.0
        assert entry.is_expired(ttl=10.0)


# ────────────────────────────────────────────────────────────────────────────
# TTLCache
# ────────────────────────────────────────────────────────────────────────────


class TestTTLCacheBasic:
    def test_set_and_get_report(self, test_cache: TTLCache):
        report = {"total_invested": Decimal("1000.00"), "roi_pct": Decimal("25.00")}
        test_cache.set("analytics:roi:abc:None:None", report)
        assert test_cache.get("analytics:roi:abc:None:None") is report

    def test_miss_returns_none(self, test_cache: TTLCache):
        assert test_cache.get("analytics:portfolio") is None

    def test_overwrite_key(self, test_cache: TTLCache):
        test_cache.set("analytics:comparative", ["old"])
        test_cache.set("analytics:comparative", ["new"])
        assert test_cache.get("analytics:comparative") == ["new"]


class TestTTLCacheExpiry:
    def test_expired_entry_is_dropped(self):
        cache = TTLCache(ttl=0.01, max_size=100, enabled=True)
        cache.set("analytics:portfolio", "report")
        cache._store["analytics:portfolio"].created_at = time.monotonic() - 1.0

        assert cache.get("analytics:portfolio") is None
        assert "analytics:portfolio" not in cache._store


class TestTTLCacheEviction:
    def test_evicts_oldest_when_full(self):
        cache = TTLCache(ttl=30.0, max_size=2, enabled=True)
        cache.set("analytics:budget:1", 1)
        cache.set("analytics:budget:2", 2)
        cache.set("analytics:budget:3", 3)

        assert cache.get("analytics:budget:1") is None
        assert cache.get("analytics:budget:2") == 2
        assert cache.get("analytics:budget:3") == 3

    def test_updating_existing_key_does_not_evict(self):
        cache = TTLCache(ttl=30.0, max_size=2, enabled=True)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert cache.get("a") == 10
        assert cache.get("b") == 2


class TestTTLCacheInvalidation:
    def test_analytics_prefix_drops_every_report(self, test_cache: TTLCache):
        test_cache.set("analytics:roi:abc:None:None", "roi")
        test_cache.set("analytics:portfolio", "portfolio")
        test_cache.set("health:db", "ok")

        removed = test_cache.invalidate("analytics:")

        assert removed == 2
        assert test_cache.get("analytics:portfolio") is None
        assert test_cache.get("health:db") == "ok"

    def test_multiple_prefixes(self, test_cache: TTLCache):
        test_cache.set("analytics:roi:x", 1)
        test_cache.set("analytics:returns:x", 2)
        test_cache.set("analytics:portfolio", 3)

        assert test_cache.invalidate("analytics:roi:", "analytics:returns:") == 2
        assert test_cache.get("analytics:portfolio") == 3

    def test_no_match(self, test_cache: TTLCache):
        test_cache.set("analytics:portfolio", 1)
        assert test_cache.invalidate("payouts:") == 0

    def test_clear(self, test_cache: TTLCache):
        test_cache.set("analytics:a", 1)
        test_cache.clear()
        assert test_cache.get("analytics:a") is None


class TestTTLCacheDisabled:
    def test_every_operation_is_a_noop(self, disabled_cache: TTLCache):
        disabled_cache.set("analytics:portfolio", "report")
        assert len(disabled_cache._store) == 0
        disabled_cache._store["k"] = CacheEntry("v")
        assert disabled_cache.get("k") is None
        assert disabled_cache.invalidate("k") == 0


class TestTTLCacheStats:
    def test_initial_stats(self, test_cache: TTLCache):
        stats = test_cache.get_stats()
        assert stats["enabled"] is True
        assert stats["size"] == 0
        assert stats["hit_rate"] == "N/A"

    def test_hit_rate(self, test_cache: TTLCache):
        test_cache.set("analytics:portfolio", "report")
        test_cache.get("analytics:portfolio")
        test_cache.get("analytics:comparative")

        stats = test_cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.0%"
