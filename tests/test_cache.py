"""Tests for the response cache."""

from unittest.mock import patch

from scripts.lib import cache as cache_module
from scripts.lib.cache import MemoryCache, SupabaseCache, get_cache, make_cache_key


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestMakeCacheKey:
    def test_list_order_ignored(self):
        assert make_cache_key("v", ["b", "a"]) == make_cache_key("v", ["a", "b"])

    def test_dict_order_ignored(self):
        assert make_cache_key({"x": 1, "y": 2}) == make_cache_key({"y": 2, "x": 1})

    def test_distinct_parameters_distinct_keys(self):
        assert make_cache_key("freesignup", "month:09-2025") != make_cache_key("freesignup", "month:10-2025")


class TestMemoryCache:
    def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("k", {"a": 1}, ttl_seconds=60)
        clock.now += 59
        assert cache.get("k") == {"a": 1}

    def test_miss_after_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("k", 1, ttl_seconds=60)
        clock.now += 61
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_no_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("k", 1, ttl_seconds=0)
        clock.now += 10 ** 6
        assert cache.get("k") == 1

    def test_clear_one_and_all(self):
        cache = MemoryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.clear()
        assert len(cache) == 0


class TestSupabaseCache:
    def test_read_failure_is_miss(self):
        with patch("scripts.lib.supabase_client.fetch_cache_row", side_effect=RuntimeError("down")):
            assert SupabaseCache().get("k") is None

    def test_expired_row_is_miss(self):
        row = {"value": {"a": 1}, "expires_at": "2000-01-01T00:00:00+00:00"}
        with patch("scripts.lib.supabase_client.fetch_cache_row", return_value=row):
            assert SupabaseCache().get("k") is None

    def test_fresh_row_hit(self):
        row = {"value": {"a": 1}, "expires_at": "2999-01-01T00:00:00Z"}
        with patch("scripts.lib.supabase_client.fetch_cache_row", return_value=row):
            assert SupabaseCache().get("k") == {"a": 1}

    def test_write_failure_swallowed(self):
        with patch("scripts.lib.supabase_client.upsert_cache_row", side_effect=RuntimeError("down")):
            SupabaseCache().set("k", 1)


class TestGetCache:
    def test_backend_selection(self):
        with patch.object(cache_module, "_default_cache", None), \
                patch.dict("os.environ", {"CACHE_BACKEND": "supabase"}, clear=False):
            assert isinstance(get_cache(), SupabaseCache)
        with patch.object(cache_module, "_default_cache", None), \
                patch.dict("os.environ", {"CACHE_BACKEND": "memory"}, clear=False):
            assert isinstance(get_cache(), MemoryCache)
