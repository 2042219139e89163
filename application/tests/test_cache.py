"""Unit tests for ResultCache: TTL expiry, sweep, flush."""

from __future__ import annotations

from src.next_appointment.cache import ResultCache
from src.next_appointment.domain import NextAppointmentResult


class FakeClock:
    def __init__(self, t: float = 1000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


def test_round_trip_within_ttl_returns_same_object():
    clock = FakeClock()
    cache = ResultCache(default_ttl=60, clock=clock)
    result = NextAppointmentResult(found=False, display="No availability in next 30 days")
    cache.set("avail:type:1", result)
    clock.t += 59
    assert cache.get("avail:type:1") is result


def test_expired_entry_is_absent_and_evicted():
    clock = FakeClock()
    cache = ResultCache(default_ttl=60, clock=clock)
    cache.set("k", "v")
    clock.t += 60
    assert cache.get("k") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default():
    clock = FakeClock()
    cache = ResultCache(default_ttl=60, clock=clock)
    cache.set("short", "v", ttl=5)
    cache.set("long", "v")
    clock.t += 10
    assert cache.get("short") is None
    assert cache.get("long") == "v"


def test_last_writer_wins():
    cache = ResultCache()
    cache.set("k", "first")
    cache.set("k", "second")
    assert cache.get("k") == "second"


def test_sweep_removes_only_expired():
    clock = FakeClock()
    cache = ResultCache(default_ttl=60, clock=clock)
    cache.set("old", 1)
    clock.t += 30
    cache.set("new", 2)
    clock.t += 31
    assert cache.sweep() == 1
    assert len(cache) == 1
    assert cache.get("new") == 2


def test_flush_all_ignores_expiry():
    cache = ResultCache()
    cache.set("a", 1)
    cache.set("b", 2, ttl=3600)
    assert cache.flush_all() == 2
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_delete_missing_key_is_noop():
    cache = ResultCache()
    cache.delete("nope")
    assert len(cache) == 0
