"""Tests for cache.py -- TTL query cache and view cooldowns."""
import asyncio


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _counter():
    calls = {"n": 0}

    async def compute():
        calls["n"] += 1
        return calls["n"]

    return calls, compute


class TestQueryCache:

    def test_computes_once_within_ttl(self):
        from comicshelf.cache import QueryCache

        clock = FakeClock()
        cache = QueryCache(ttl=300, clock=clock)
        calls, compute = _counter()

        assert asyncio.run(cache.get_or_compute("total", compute)) == 1
        clock.advance(299)
        assert asyncio.run(cache.get_or_compute("total", compute)) == 1
        assert calls["n"] == 1

    def test_expires_after_ttl(self):
        from comicshelf.cache import QueryCache

        clock = FakeClock()
        cache = QueryCache(ttl=300, clock=clock)
        calls, compute = _counter()

        asyncio.run(cache.get_or_compute("total", compute))
        clock.advance(300)
        assert asyncio.run(cache.get_or_compute("total", compute)) == 2

    def test_invalidate_clears_every_key(self):
        from comicshelf.cache import GENRE_LIST, TOTAL_COUNT, QueryCache, genre_count_key

        cache = QueryCache(ttl=300, clock=FakeClock())
        cache.set(TOTAL_COUNT, 5)
        cache.set(GENRE_LIST, ["Action"])
        cache.set(genre_count_key("Action"), 2)

        cache.invalidate()

        assert TOTAL_COUNT not in cache
        assert cache.get(GENRE_LIST) is None
        assert len(cache) == 0

    def test_falsy_values_are_cached(self):
        from comicshelf.cache import QueryCache

        cache = QueryCache(ttl=300, clock=FakeClock())
        calls = {"n": 0}

        async def zero():
            calls["n"] += 1
            return 0

        asyncio.run(cache.get_or_compute("recent", zero))
        asyncio.run(cache.get_or_compute("recent", zero))
        assert calls["n"] == 1


class TestViewTracker:

    def test_cooldown_per_ip_and_comic(self):
        from comicshelf.cache import ViewTracker

        clock = FakeClock()
        tracker = ViewTracker(cooldown=3600, clock=clock)

        assert tracker.should_count("1.1.1.1", 7) is True
        assert tracker.should_count("1.1.1.1", 7) is False
        assert tracker.should_count("2.2.2.2", 7) is True
        assert tracker.should_count("1.1.1.1", 8) is True

        clock.advance(3601)
        assert tracker.should_count("1.1.1.1", 7) is True

    def test_prunes_expired_entries_when_large(self):
        from comicshelf.cache import ViewTracker

        clock = FakeClock()
        tracker = ViewTracker(cooldown=10, clock=clock)
        tracker.MAX_ENTRIES = 5

        for i in range(5):
            tracker.should_count(f"10.0.0.{i}", 1)
        clock.advance(11)
        tracker.should_count("10.0.0.99", 1)

        # the five stale entries are gone, only the fresh one remains
        assert len(tracker) == 1
