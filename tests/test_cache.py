"""Tests for DataCache."""

import pytest

from mealsync import CacheEntry, CacheStatus, DataCache, NetworkError, cache_key

from conftest import FakeClock


@pytest.fixture
def cache(clock: FakeClock) -> DataCache:
    return DataCache(clock=clock)


class TestCacheKey:
    def test_path_only(self) -> None:
        assert cache_key("/meals") == "/meals"
        assert cache_key("/meals", {}) == "/meals"

    def test_params_are_sorted(self) -> None:
        first = {"start_date": "2025-01-01", "end_date": "2025-01-07"}
        a = cache_key("/nutrition", first)
        b = cache_key("/nutrition", dict(reversed(list(first.items()))))
        assert a == b == "/nutrition?end_date=2025-01-07&start_date=2025-01-01"

    def test_none_dropped_and_bools_lowered(self) -> None:
        assert cache_key("/meals", {"date": None}) == "/meals"
        key = cache_key("/meals", {"favorite": True, "x": None})
        assert key == "/meals?favorite=true"


class TestStaleness:
    """Tests for fresh/stale evaluation."""

    def test_missing_key_is_empty(self, cache: DataCache) -> None:
        entry = cache.get("/meals")
        assert entry.status is CacheStatus.EMPTY
        assert entry.value is None
        assert not entry.has_value
        assert "/meals" not in cache

    def test_fresh_until_window_elapses(
        self, cache: DataCache, clock: FakeClock
    ) -> None:
        cache._mark_fresh("k", ["m1"], 1000)

        clock.advance(999)
        assert cache.get("k").status is CacheStatus.FRESH

        clock.advance(1)
        entry = cache.get("k")
        assert entry.status is CacheStatus.STALE
        assert entry.value == ["m1"]

    def test_stale_is_stored(self, cache: DataCache, clock: FakeClock) -> None:
        cache._mark_fresh("k", 1, 10)
        clock.advance(10)
        cache.get("k")
        assert cache._entries["k"].status is CacheStatus.STALE

    def test_zero_window_is_immediately_stale(self, cache: DataCache) -> None:
        cache._mark_fresh("k", 1, 0)
        assert cache.get("k").status is CacheStatus.STALE

    def test_error_keeps_last_value(self, cache: DataCache) -> None:
        cache._mark_fresh("k", "old", 1000)
        error = NetworkError("down")
        cache._mark_error("k", error)

        entry = cache.get("k")
        assert entry.status is CacheStatus.ERROR
        assert entry.value == "old"
        assert entry.last_error is error
        assert cache.peek("k") == "old"

    def test_fetching_keeps_last_value(self, cache: DataCache) -> None:
        cache._mark_fresh("k", "old", 1000)
        cache._mark_fetching("k", 1000)

        entry = cache.get("k")
        assert entry.status is CacheStatus.FETCHING
        assert entry.value == "old"


class TestObservers:
    """Tests for subscribe/unsubscribe."""

    def test_observer_sees_every_change(self, cache: DataCache) -> None:
        seen: list[CacheEntry] = []
        cache.subscribe("k", seen.append)

        cache._mark_fetching("k", 1000)
        cache._mark_fresh("k", "v", 1000)
        cache.invalidate("k")

        assert [e.status for e in seen] == [
            CacheStatus.FETCHING,
            CacheStatus.FRESH,
            CacheStatus.EMPTY,
        ]
        assert seen[1].value == "v"

    def test_other_keys_are_not_reported(self, cache: DataCache) -> None:
        seen: list[CacheEntry] = []
        cache.subscribe("a", seen.append)
        cache._mark_fresh("b", 1, 1000)
        assert seen == []

    def test_unsubscribe(self, cache: DataCache) -> None:
        seen: list[CacheEntry] = []
        unsubscribe = cache.subscribe("k", seen.append)
        unsubscribe()
        unsubscribe()

        cache._mark_fresh("k", 1, 1000)
        assert seen == []

    def test_failing_observer_does_not_break_others(self, cache: DataCache) -> None:
        def broken(entry: CacheEntry) -> None:
            raise RuntimeError("boom")

        seen: list[CacheEntry] = []
        cache.subscribe("k", broken)
        cache.subscribe("k", seen.append)

        cache._mark_fresh("k", 1, 1000)
        assert len(seen) == 1


class TestInvalidation:
    """Tests for invalidate, invalidate_prefix and clear."""

    def test_invalidate_drops_entry(self, cache: DataCache) -> None:
        cache._mark_fresh("k", 1, 1000)
        cache.invalidate("k")
        assert cache.get("k").status is CacheStatus.EMPTY

    def test_invalidate_moves_generation(self, cache: DataCache) -> None:
        cache._mark_fresh("k", 1, 1000)
        before = cache.generation("k")
        cache.invalidate("k")
        assert cache.generation("k") != before

    def test_invalidating_unknown_keys_records_nothing(self, cache: DataCache) -> None:
        for n in range(100):
            cache.invalidate(f"/meals?date=2025-01-{n}")

        assert cache._generations == {}
        assert cache.generation("/meals?date=2025-01-1") == (0, 0)

    def test_invalidate_missing_key_is_silent(self, cache: DataCache) -> None:
        seen: list[CacheEntry] = []
        cache.subscribe("k", seen.append)
        cache.invalidate("k")
        assert seen == []

    def test_invalidate_prefix(self, cache: DataCache) -> None:
        cache._mark_fresh("/meals?date=2025-01-01", 1, 1000)
        cache._mark_fresh("/meals?date=2025-01-02", 2, 1000)
        cache._mark_fresh("/nutrition", 3, 1000)

        removed = cache.invalidate_prefix("/meals")

        assert sorted(removed) == ["/meals?date=2025-01-01", "/meals?date=2025-01-02"]
        assert cache.keys() == ["/nutrition"]

    def test_clear(self, cache: DataCache) -> None:
        seen: list[CacheEntry] = []
        cache.subscribe("a", seen.append)
        cache._mark_fresh("a", 1, 1000)
        cache._mark_fresh("b", 2, 1000)
        before = cache.generation("a")

        cache.clear()

        assert len(cache) == 0
        assert seen[-1].status is CacheStatus.EMPTY
        assert cache.generation("a") != before


class TestEviction:
    """Tests for prune and the entry limit."""

    def test_prune_evicts_expired_unobserved(
        self, cache: DataCache, clock: FakeClock
    ) -> None:
        cache._mark_fresh("old", 1, 100)
        cache._mark_fresh("watched", 2, 100)
        cache._mark_fresh("new", 3, 10_000)
        cache.subscribe("watched", lambda entry: None)
        clock.advance(500)

        assert cache.prune() == ["old"]
        assert sorted(cache.keys()) == ["new", "watched"]

    def test_prune_keeps_fetching(self, cache: DataCache) -> None:
        cache._mark_fetching("k", 100)
        assert cache.prune() == []

    def test_max_entries_evicts_least_recently_used(self, clock: FakeClock) -> None:
        cache = DataCache(clock=clock, max_entries=2)
        cache._mark_fresh("a", 1, 1000)
        cache._mark_fresh("b", 2, 1000)
        cache.get("a")
        cache._mark_fresh("c", 3, 1000)

        assert sorted(cache.keys()) == ["a", "c"]

    def test_max_entries_spares_fetching(self, clock: FakeClock) -> None:
        cache = DataCache(clock=clock, max_entries=1)
        cache._mark_fetching("a", 1000)
        cache._mark_fresh("b", 2, 1000)

        assert sorted(cache.keys()) == ["a", "b"]
