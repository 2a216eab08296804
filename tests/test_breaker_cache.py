import asyncio

import pytest

from finder.breaker import AvailabilityBreaker
from finder.cache import ResultCache
from finder.models import SearchIntent
from tests.conftest import recipe


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_breaker_opens_at_threshold() -> None:
    breaker = AvailabilityBreaker(3, retry_after=None)
    breaker.record_failure()
    breaker.record_failure()
    assert breaker.is_available()
    breaker.record_failure()
    assert not breaker.is_available()
    assert breaker.consecutive_failures == 3
    assert breaker.state.available is False


def test_breaker_resets_on_success() -> None:
    breaker = AvailabilityBreaker(3, retry_after=None)
    for _ in range(4):
        breaker.record_failure()
    breaker.record_success()
    assert breaker.is_available()
    assert breaker.consecutive_failures == 0


def test_breaker_success_clears_partial_failures() -> None:
    breaker = AvailabilityBreaker(3)
    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    assert breaker.is_available()


def test_open_breaker_lets_one_call_through_after_cool_down() -> None:
    clock = Clock()
    breaker = AvailabilityBreaker(3, retry_after=60, clock=clock)
    for _ in range(3):
        breaker.record_failure()
    assert not breaker.is_available()

    clock.now = 61
    assert breaker.is_available()
    assert breaker.state.available is False
    # only one caller gets through
    assert not breaker.is_available()

    # a failed trial re-arms the cool-down
    breaker.record_failure()
    assert not breaker.is_available()
    clock.now = 122
    assert breaker.is_available()


def test_cache_keys_are_normalized() -> None:
    cache = ResultCache()
    cache.put("  Pasta ", [recipe(1, "Pasta")], method="optimized")
    results, hit = cache.get("pasta")
    assert hit
    assert [r.id for r in results] == [1]
    assert "PASTA" in cache
    assert cache.get("pizza") == ([], False)


def test_cache_keeps_intent_and_method() -> None:
    cache = ResultCache()
    intent = SearchIntent(include_ingredients=["leek"])
    cache.put("leek", [recipe(1, "Leek Pie")], intent, method="ai", explanation="Leeks")
    entry = cache.get_entry("leek")
    assert entry is not None
    assert entry.intent is intent
    assert entry.method == "ai"
    assert entry.explanation == "Leeks"


def test_cache_entries_expire() -> None:
    clock = Clock()
    cache = ResultCache(ttl=30 * 60, clock=clock)
    cache.put("pasta", [recipe(1, "Pasta")])
    clock.now = 29 * 60
    assert cache.get("pasta")[1]
    clock.now = 30 * 60
    assert cache.get("pasta") == ([], False)
    assert len(cache) == 0


def test_sweep_removes_only_expired_entries() -> None:
    clock = Clock()
    cache = ResultCache(ttl=100, clock=clock)
    cache.put("old", [recipe(1, "Old")])
    clock.now = 50
    cache.put("new", [recipe(2, "New")])
    clock.now = 120
    assert cache.sweep() == 1
    assert "new" in cache
    assert "old" not in cache


def test_oldest_entries_are_evicted_first() -> None:
    cache = ResultCache(max_entries=2)
    cache.put("a", [recipe(1, "A")])
    cache.put("b", [recipe(2, "B")])
    cache.put("a", [recipe(3, "A again")])
    cache.put("c", [recipe(4, "C")])
    assert "b" not in cache
    assert "a" in cache
    assert "c" in cache


def test_reading_an_entry_keeps_it_from_eviction() -> None:
    cache = ResultCache(max_entries=2)
    cache.put("a", [recipe(1, "A")])
    cache.put("b", [recipe(2, "B")])
    assert cache.get("a")[1]
    cache.put("c", [recipe(3, "C")])
    assert "a" in cache
    assert "b" not in cache


@pytest.mark.asyncio
async def test_sweeper_runs_in_background() -> None:
    clock = Clock()
    cache = ResultCache(ttl=10, clock=clock)
    cache.put("pasta", [recipe(1, "Pasta")])
    clock.now = 20
    task = asyncio.create_task(cache.run_sweeper(0.01))
    for _ in range(100):
        await asyncio.sleep(0.01)
        if len(cache) == 0:
            break
    task.cancel()
    assert len(cache) == 0
