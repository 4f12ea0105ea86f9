"""Unit tests for the simulation result cache."""

import pytest

from src.data.cache.result_cache import CacheKeys, ResultCache


class TestCacheKeys:
    """Tests for deterministic key generation."""

    def test_key_format(self):
        key = ResultCache.make_key("acct-1", "scn-9", {"iterations": 100})

        assert key.startswith("sim_acct-1_scn-9_")
        assert len(key.rsplit("_", 1)[1]) == 16

    def test_default_scenario_label(self):
        assert ResultCache.make_key("acct-1").startswith("sim_acct-1_default_")

    def test_option_order_irrelevant(self):
        a = CacheKeys.simulation("acct-1", None, iterations=100, horizon_days=90)
        b = CacheKeys.simulation("acct-1", None, horizon_days=90, iterations=100)

        assert a == b

    def test_options_change_key(self):
        a = CacheKeys.simulation("acct-1", None, iterations=100)
        b = CacheKeys.simulation("acct-1", None, iterations=200)

        assert a != b

    def test_account_prefix_matches_keys(self):
        key = CacheKeys.simulation("acct-1", None, iterations=100)

        assert key.startswith(CacheKeys.account_prefix("acct-1"))
        assert not key.startswith(CacheKeys.account_prefix("acct-10"))


class TestExpiry:
    """Tests for TTL expiry."""

    @pytest.fixture
    def cache(self, fake_clock):
        return ResultCache(ttl_seconds=300, max_size=10, clock=fake_clock)

    def test_fresh_hit(self, cache, fake_clock):
        cache.set("k", "payload")
        fake_clock.advance(299)

        assert cache.get("k") == "payload"

    def test_expired_miss_removes_entry(self, cache, fake_clock):
        cache.set("k", "payload")
        fake_clock.advance(301)

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_absent_key(self, cache):
        assert cache.get("missing") is None

    def test_overwrite_refreshes_timestamp(self, cache, fake_clock):
        cache.set("k", "old")
        fake_clock.advance(200)
        cache.set("k", "new")
        fake_clock.advance(200)

        assert cache.get("k") == "new"


class TestEviction:
    """Tests for FIFO capacity eviction."""

    def test_oldest_inserted_evicted(self, fake_clock):
        cache = ResultCache(ttl_seconds=300, max_size=2, clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # reads do not refresh position
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_overwrite_keeps_position(self, fake_clock):
        cache = ResultCache(ttl_seconds=300, max_size=2, clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert cache.get("a") is None
        assert len(cache) == 2

    def test_unbounded(self, fake_clock):
        cache = ResultCache(ttl_seconds=300, max_size=None, clock=fake_clock)
        for i in range(500):
            cache.set(f"k{i}", i)

        assert len(cache) == 500


class TestDeletion:
    """Tests for explicit invalidation."""

    def test_delete(self, fake_clock):
        cache = ResultCache(clock=fake_clock)
        cache.set("k", 1)

        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_delete_prefix(self, fake_clock):
        cache = ResultCache(clock=fake_clock)
        cache.set(CacheKeys.simulation("acct-1", None, iterations=1), 1)
        cache.set(CacheKeys.simulation("acct-1", "s1", iterations=1), 2)
        cache.set(CacheKeys.simulation("acct-2", None, iterations=1), 3)

        assert cache.delete_prefix(CacheKeys.account_prefix("acct-1")) == 2
        assert len(cache) == 1

    def test_clear_and_stats(self, fake_clock):
        cache = ResultCache(ttl_seconds=60, max_size=5, clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.stats() == {"size": 2, "max_size": 5, "ttl_seconds": 60}
        assert cache.clear() == 2
        assert len(cache) == 0
