"""
Recommendation Cache Tests

Tests the in-memory TTL cache: expiry, atomic updates, per-user prefixes
and the stored record format.

Test Scenarios:
---------------
1. Entries expire after their TTL
2. update() keeps the remaining TTL and returns None for missing entries
3. Prefix invalidation only touches the given user (u1 vs u10)
4. Cache keys are stable and independent of type order
5. Stored records tolerate missing optional fields
6. Locks are released once idle and expired entries are swept on put

Run:
----
    pytest tests/test_cache.py -v
"""

import asyncio

import pytest

from recengine.models import RecommendationSet
from recserver.services import InMemoryRecommendationCache, make_cache_key, user_prefix


def _run(coro):
    return asyncio.run(coro)


class TestTTL:
    """Expiry driven by an injected clock."""

    @pytest.fixture(autouse=True)
    def setup(self, fake_clock, rec_set):
        self.clock = fake_clock
        self.cache = InMemoryRecommendationCache(clock=fake_clock)
        self.rec_set = rec_set
        self.key = make_cache_key("u1", ["creator"], 12, True)

    def test_hit_before_expiry(self):
        async def scenario():
            await self.cache.put(self.key, self.rec_set, ttl_seconds=3600)
            self.clock.advance(3599)
            return await self.cache.get(self.key)

        cached = _run(scenario())
        assert cached is not None
        assert [s.id for s in cached.mixed_list] == [s.id for s in self.rec_set.mixed_list]

    def test_miss_after_expiry(self):
        async def scenario():
            await self.cache.put(self.key, self.rec_set, ttl_seconds=3600)
            self.clock.advance(3600)
            return await self.cache.get(self.key)

        assert _run(scenario()) is None

    def test_update_preserves_remaining_ttl(self):
        async def scenario():
            await self.cache.put(self.key, self.rec_set, ttl_seconds=100)
            self.clock.advance(40)
            updated = await self.cache.update(
                self.key, lambda s: s.model_copy(update={"profile_confidence": 0.9})
            )
            return updated, self.cache.remaining_ttl(self.key), await self.cache.get(self.key)

        updated, remaining, cached = _run(scenario())
        assert updated.profile_confidence == 0.9
        assert remaining == pytest.approx(60)
        assert cached.profile_confidence == 0.9

    def test_update_missing_entry(self):
        calls = []

        async def scenario():
            return await self.cache.update(self.key, lambda s: calls.append(s) or s)

        assert _run(scenario()) is None
        assert calls == []


class TestPrefixes:
    """Per-user key prefixes."""

    def test_invalidate_only_matching_user(self, rec_set):
        cache = InMemoryRecommendationCache()

        async def scenario():
            await cache.put(make_cache_key("u1", ["creator"], 12, True), rec_set, 60)
            await cache.put(make_cache_key("u1", ["partner"], 12, True), rec_set, 60)
            await cache.put(make_cache_key("u10", ["creator"], 12, True), rec_set, 60)
            dropped = await cache.invalidate_prefix(user_prefix("u1"))
            return dropped, await cache.keys_with_prefix(user_prefix("u10"))

        dropped, remaining = _run(scenario())
        assert dropped == 2
        assert len(remaining) == 1

    def test_key_stable_and_order_independent(self):
        a = make_cache_key("u1", ["creator", "partner"], 12, True)
        b = make_cache_key("u1", ["partner", "creator"], 12, True)
        assert a == b
        assert a.startswith("rec:u1:")
        assert a != make_cache_key("u1", ["creator", "partner"], 12, False)
        assert a != make_cache_key("u1", ["creator", "partner"], 20, True)


class TestRecords:
    """Flat versioned records."""

    def test_record_is_versioned(self, rec_set):
        record = rec_set.to_record()
        assert record["schema_version"] == 1
        assert record["version"] == "1.0"
        assert isinstance(record["generated_at"], str)

    def test_missing_optional_fields_take_defaults(self, rec_set):
        record = rec_set.to_record()
        for key in ("degraded", "cold_start", "profile_confidence", "schema_version"):
            record.pop(key)
        restored = RecommendationSet.from_record(record)
        assert restored.degraded is False
        assert restored.cold_start is False
        assert restored.generated_at == rec_set.generated_at


class TestHousekeeping:
    """The cache does not grow with keys nobody reads again."""

    def test_locks_released_after_use(self, rec_set):
        cache = InMemoryRecommendationCache()

        async def scenario():
            for i in range(50):
                key = make_cache_key(f"user{i}", ["creator"], 12, True)
                await cache.put(key, rec_set, 60)
                await cache.update(key, lambda s: s)
                await cache.invalidate_prefix(user_prefix(f"user{i}"))

        _run(scenario())
        assert cache.lock_count == 0
        assert len(cache) == 0

    def test_contended_lock_kept_until_last_waiter(self, rec_set):
        cache = InMemoryRecommendationCache()
        key = make_cache_key("u1", ["creator"], 12, True)

        async def scenario():
            await cache.put(key, rec_set, 60)
            results = await asyncio.gather(*[
                cache.update(key, lambda s: s.model_copy(update={"profile_confidence": s.profile_confidence + 0.1}))
                for _ in range(5)
            ])
            return results, await cache.get(key)

        results, cached = _run(scenario())
        assert all(r is not None for r in results)
        assert cached.profile_confidence == pytest.approx(0.5)
        assert cache.lock_count == 0

    def test_put_sweeps_expired_entries(self, fake_clock, rec_set):
        cache = InMemoryRecommendationCache(clock=fake_clock)

        async def scenario():
            for i in range(10):
                await cache.put(make_cache_key(f"user{i}", ["creator"], 12, True), rec_set, 60)
            fake_clock.advance(61)
            await cache.put(make_cache_key("fresh", ["creator"], 12, True), rec_set, 60)

        _run(scenario())
        assert len(cache) == 1
