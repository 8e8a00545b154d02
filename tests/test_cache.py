"""Tests for the single-slot result cache."""

from fakes import FakeClock, sv
from schoolstatus.ingest.sources import Verdict
from schoolstatus.resolution.cache import ResultCache
from schoolstatus.resolution.models import CanonicalStatus, ResolutionResult


def result(status=CanonicalStatus.OPEN, timestamp="2026-01-15T06:00:00+00:00"):
    return ResolutionResult(
        status=status,
        timestamp=timestamp,
        source="consensus of 1 sources",
        results_summary=(sv("A", Verdict.OPEN),),
    )


class TestResultCache:
    def test_empty_is_miss(self):
        assert ResultCache(60).get() is None

    def test_hit_within_ttl_marked_cached(self):
        clock = FakeClock()
        cache = ResultCache(60, clock=clock)
        stored = result()
        cache.put(stored)

        clock.advance(59)
        hit = cache.get()

        assert hit is not None
        assert hit.cached is True
        assert hit.timestamp == stored.timestamp
        assert stored.cached is False

    def test_miss_after_ttl(self):
        clock = FakeClock()
        cache = ResultCache(60, clock=clock)
        cache.put(result())

        clock.advance(60)

        assert cache.get() is None

    def test_put_overwrites_slot(self):
        clock = FakeClock()
        cache = ResultCache(60, clock=clock)
        cache.put(result(CanonicalStatus.OPEN))
        clock.advance(30)
        cache.put(result(CanonicalStatus.CLOSED, timestamp="2026-01-15T06:00:30+00:00"))

        clock.advance(45)
        hit = cache.get()

        assert hit.status == CanonicalStatus.CLOSED

    def test_zero_ttl_disables_cache(self):
        cache = ResultCache(0, clock=FakeClock())
        cache.put(result())
        assert cache.get() is None

    def test_age(self):
        clock = FakeClock()
        cache = ResultCache(60, clock=clock)
        assert cache.age() is None

        cache.put(result())
        clock.advance(12.5)

        assert cache.age() == 12.5
