"""
Tests for market_cache.py

Covers:
- MarketDataCache.get (freshness window, refetch after expiry, failure caching)
- per-key independence
- quote_volume / recent_closes helpers against a fake exchange client
- concurrent access from several threads
"""

import threading

from market_cache import CLOSES, VOLUME, CacheEntry, MarketDataCache


class Counter:
    def __init__(self, value=1.0):
        self.calls = 0
        self.value = value

    def __call__(self):
        self.calls += 1
        return self.value


# ---------------------------------------------------------------------------
# CacheEntry
# ---------------------------------------------------------------------------


class TestCacheEntry:
    def test_fresh_inside_window(self):
        assert CacheEntry(1.0, fetched_at=100).is_fresh(159, 60) is True

    def test_stale_at_window_boundary(self):
        assert CacheEntry(1.0, fetched_at=100).is_fresh(160, 60) is False


# ---------------------------------------------------------------------------
# MarketDataCache.get
# ---------------------------------------------------------------------------


class TestGet:
    def test_two_calls_inside_window_fetch_once(self, clock):
        cache = MarketDataCache(clock=clock)
        fetch = Counter(5.0)

        assert cache.get("k", 60, fetch) == 5.0
        clock.advance(30)
        assert cache.get("k", 60, fetch) == 5.0
        assert fetch.calls == 1

    def test_call_after_window_fetches_again(self, clock):
        cache = MarketDataCache(clock=clock)
        fetch = Counter(5.0)

        cache.get("k", 60, fetch)
        clock.advance(60)
        fetch.value = 6.0
        assert cache.get("k", 60, fetch) == 6.0
        assert fetch.calls == 2

    def test_refresh_updates_fetched_at(self, clock):
        cache = MarketDataCache(clock=clock)
        cache.get("k", 60, Counter())
        clock.advance(61)
        cache.get("k", 60, Counter())
        assert cache.peek("k").fetched_at == int(clock.now)

    def test_failed_fetch_result_is_cached(self, clock):
        cache = MarketDataCache(clock=clock)
        fetch = Counter([])

        assert cache.get("k", 60, fetch) == []
        assert cache.get("k", 60, fetch) == []
        assert fetch.calls == 1

    def test_keys_are_independent(self, clock):
        cache = MarketDataCache(clock=clock)
        a, b = Counter(1.0), Counter(2.0)

        assert cache.get("a", 60, a) == 1.0
        assert cache.get("b", 60, b) == 2.0
        assert a.calls == 1 and b.calls == 1
        assert len(cache) == 2

    def test_zero_window_always_refetches(self, clock):
        cache = MarketDataCache(clock=clock)
        fetch = Counter()
        cache.get("k", 0, fetch)
        cache.get("k", 0, fetch)
        assert fetch.calls == 2

    def test_concurrent_misses_store_one_consistent_entry(self, clock):
        cache = MarketDataCache(clock=clock)
        fetch = Counter(7.0)
        results = []

        def worker():
            results.append(cache.get("k", 60, fetch))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == [7.0] * 8
        assert fetch.calls == 1
        assert cache.peek("k").value == 7.0


# ---------------------------------------------------------------------------
# typed helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_quote_volume_cached_per_symbol(self, clock, client):
        client.volumes = {"BTC/USDT": 2e7, "ETH/USDT": 5e6}
        cache = MarketDataCache(clock=clock)

        assert cache.quote_volume(client, "BTC/USDT", 60) == 2e7
        assert cache.quote_volume(client, "BTC/USDT", 60) == 2e7
        assert cache.quote_volume(client, "ETH/USDT", 60) == 5e6
        assert client.count("volume") == 2
        assert cache.peek((VOLUME, "BTC/USDT")).value == 2e7

    def test_recent_closes_keyed_by_interval_and_limit(self, clock, client):
        client.closes = {"BTC/USDT": [1.0, 2.0, 3.0]}
        cache = MarketDataCache(clock=clock)

        cache.recent_closes(client, "BTC/USDT", "15m", 50, 60)
        cache.recent_closes(client, "BTC/USDT", "15m", 50, 60)
        cache.recent_closes(client, "BTC/USDT", "1h", 50, 60)
        cache.recent_closes(client, "BTC/USDT", "15m", 100, 60)

        assert client.count("closes") == 3
        assert cache.peek((CLOSES, "BTC/USDT", "15m", 50)).value == [1.0, 2.0, 3.0]

    def test_zero_volume_failure_not_refetched_inside_window(self, clock, client):
        cache = MarketDataCache(clock=clock)
        assert cache.quote_volume(client, "DOGE/USDT", 60) == 0.0
        clock.advance(59)
        assert cache.quote_volume(client, "DOGE/USDT", 60) == 0.0
        assert client.count("volume") == 1
