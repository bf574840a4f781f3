"""Unit tests for TTLCache."""

from utils.cache import TTLCache


def test_entry_expires_after_ttl(clock):
    cache = TTLCache(default_ttl=60.0, clock=clock)
    cache.set("k", "v")

    clock.advance(59.9)
    assert cache.get("k") == "v"

    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_explicit_ttl_overrides_default(clock):
    cache = TTLCache(default_ttl=60.0, clock=clock)
    cache.set("k", "v", ttl=5)
    clock.advance(5)
    assert "k" not in cache


def test_non_positive_ttl_drops_previous_value(clock):
    cache = TTLCache(clock=clock)
    cache.set("k", "old")
    cache.set("k", "new", ttl=0)
    assert cache.get("k", "missing") == "missing"


def test_last_writer_wins(clock):
    cache = TTLCache(clock=clock)
    cache.set("k", 1)
    cache.set("k", 2)
    assert cache.get("k") == 2


def test_delete_and_clear(clock):
    cache = TTLCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    assert "a" not in cache
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_falsy_values_are_cached(clock):
    cache = TTLCache(clock=clock)
    cache.set("empty", {})
    assert "empty" in cache
    assert cache.get("empty", "missing") == {}
