"""
Recommendation Service Tests

End-to-end tests of get_recommendations / invalidate / refresh_user over the
in-memory stores, catalog and cache.

Test Scenarios:
---------------
1. Cold start: a user without events gets a non-empty default set
2. Personalization: beauty clicks put beauty creators on top
3. Idempotence: a second call within the TTL is served from cache
4. Provider failure: a failing partner catalog leaves the other types intact
5. Single-flight: concurrent identical requests share one computation
6. Invalidate / force_refresh trigger a recomputation
7. Irreversible interactions are excluded
8. Profile failure yields a degraded, empty set
9. A computation in flight during invalidate() is not written back to the cache
10. Cache backend errors are treated as misses
11. generated_at never moves backwards, even when the clock does
12. A click submitted through the service boosts the cached set
13. Bookkeeping for inactive users is dropped
14. refresh_user reports degraded sets as a failure

Run:
----
    pytest tests/test_recommender.py -v
"""

import asyncio
import logging
import random
import threading
import time
from datetime import timedelta

import pytest

from recengine.models import RecommendationConfig, RefreshFailedError, TransientCatalogError
from recserver.models import RecommendationRequest
from recserver.services import (
    CatalogCandidateProvider,
    EventCapture,
    InMemoryBehaviorStore,
    InMemoryCatalog,
    InMemoryRecommendationCache,
    ProfileService,
    RealTimeUpdater,
    RecommendationService,
)

from .conftest import ENTITY_TYPES, NOW, catalog_records, event


class BrokenProvider:
    entity_type = "partner"

    def __init__(self, error: Exception):
        self.error = error

    def fetch(self, spec, pool_size):
        raise self.error


class SlowProvider:
    """Wraps a provider and sleeps before fetching (runs in a worker thread)."""

    def __init__(self, inner, delay: float = 0.05):
        self.entity_type = inner.entity_type
        self._inner = inner
        self._delay = delay
        self.calls = 0
        self.started = threading.Event()

    def fetch(self, spec, pool_size):
        self.calls += 1
        self.started.set()
        time.sleep(self._delay)
        return self._inner.fetch(spec, pool_size)


class FailingProfiles:
    async def get(self, user_id, force=False):
        raise RuntimeError("profile backend down")

    def invalidate(self, user_id):
        pass


class RaisingCache:
    """Cache backend that fails on every call with a non-cache error."""

    def __init__(self, error: Exception):
        self.error = error

    async def get(self, key):
        raise self.error

    async def put(self, key, value, ttl_seconds):
        raise self.error

    async def update(self, key, fn):
        raise self.error

    async def keys_with_prefix(self, prefix):
        raise self.error

    async def invalidate_prefix(self, prefix):
        raise self.error


class RaisingStrategy:
    name = "raising"

    def score(self, candidate, profile):
        raise ValueError("model file missing")


def _build(events=(), providers=None, config=None, clock=None, realtime=False):
    config = config or RecommendationConfig()
    clock = clock or (lambda: NOW)
    store = InMemoryBehaviorStore(clock=lambda: NOW)
    for ev in events:
        store.append(ev)
    catalog = InMemoryCatalog(catalog_records())
    if providers is None:
        providers = {t: CatalogCandidateProvider(t, catalog) for t in ENTITY_TYPES}
    cache = InMemoryRecommendationCache()
    updater = RealTimeUpdater(cache, config) if realtime else None
    service = RecommendationService(
        ProfileService(store, config=config, clock=clock),
        providers,
        cache,
        EventCapture(store, realtime_updater=updater, clock=clock),
        config=config,
        clock=clock,
        rng_factory=lambda user_id: random.Random(0),
    )
    return service, store


def _beauty_clicks(n=10):
    return [
        event(type="click", target_id=f"seen-{i}", days_ago=0.1 * i, category="beauty", tags=["beauty-tips"])
        for i in range(n)
    ]


class TestColdStart:
    """Users without history."""

    def test_new_user_gets_default_set(self):
        service, _ = _build()
        rec_set = asyncio.run(service.get_recommendations("new-user"))
        assert rec_set.cold_start
        assert rec_set.profile_confidence == 0.0
        assert len(rec_set.mixed_list) == 12
        assert not rec_set.degraded

    def test_every_item_explained(self):
        service, _ = _build()
        rec_set = asyncio.run(service.get_recommendations("new-user"))
        assert all(s.explanation for s in rec_set.mixed_list)


class TestPersonalization:
    """Behavior shifts the ranking."""

    def test_beauty_creator_ranked_first(self):
        service, _ = _build(_beauty_clicks())
        rec_set = asyncio.run(service.get_recommendations("u1"))
        assert not rec_set.cold_start
        assert rec_set.profile_confidence == pytest.approx(0.2)
        assert rec_set.per_type["creator"][0].id == "creator-0"

    def test_events_submitted_through_service(self):
        service, store = _build()

        async def scenario():
            for ev in _beauty_clicks(3):
                assert await service.submit_event(ev)
            await service.event_capture.drain()
            return await service.get_recommendations("u1")

        rec_set = asyncio.run(scenario())
        assert store.count("u1") == 3
        assert not rec_set.cold_start


class TestCaching:
    """Idempotence within the TTL; invalidation and force refresh."""

    def test_second_call_served_from_cache(self):
        service, _ = _build(_beauty_clicks())

        async def scenario():
            first = await service.get_recommendations("u1")
            second = await service.get_recommendations("u1")
            return first, second

        first, second = asyncio.run(scenario())
        assert service.computations == 1
        assert second.generated_at == first.generated_at
        assert [s.id for s in second.mixed_list] == [s.id for s in first.mixed_list]

    def test_invalidate_forces_recompute(self):
        service, _ = _build()

        async def scenario():
            await service.get_recommendations("u1")
            dropped = await service.invalidate("u1")
            await service.get_recommendations("u1")
            return dropped

        assert asyncio.run(scenario()) == 1
        assert service.computations == 2

    def test_force_refresh(self):
        service, _ = _build()

        async def scenario():
            await service.get_recommendations("u1")
            await service.get_recommendations("u1", RecommendationRequest(force_refresh=True))

        asyncio.run(scenario())
        assert service.computations == 2

    def test_refresh_user_recomputes_seen_shapes(self):
        service, _ = _build()

        async def scenario():
            await service.get_recommendations("u1")
            await service.get_recommendations("u1", RecommendationRequest(types=["creator"], limit=5))
            return await service.refresh_user("u1")

        assert asyncio.run(scenario()) == 2
        assert service.computations == 4


class TestFailureIsolation:
    """One failing provider does not fail the request."""

    @pytest.mark.parametrize("error", [TransientCatalogError("partner", "timeout"), RuntimeError("boom")])
    def test_failing_partner_catalog(self, error):
        catalog = InMemoryCatalog(catalog_records())
        providers = {t: CatalogCandidateProvider(t, catalog) for t in ENTITY_TYPES}
        providers["partner"] = BrokenProvider(error)
        service, _ = _build(providers=providers)

        rec_set = asyncio.run(service.get_recommendations("u1"))
        assert rec_set.per_type["partner"] == []
        assert rec_set.per_type["creator"]
        assert rec_set.mixed_list
        assert not rec_set.degraded
        assert all(s.entity_type != "partner" for s in rec_set.mixed_list)

    def test_profile_failure_degrades(self):
        service, _ = _build()
        service.profiles = FailingProfiles()
        rec_set = asyncio.run(service.get_recommendations("u1"))
        assert rec_set.degraded
        assert rec_set.mixed_list == []


class TestSingleFlight:
    """Concurrent identical requests are coalesced."""

    def test_one_computation_for_concurrent_requests(self):
        catalog = InMemoryCatalog(catalog_records())
        slow = SlowProvider(CatalogCandidateProvider("creator", catalog))
        service, _ = _build(providers={"creator": slow})
        request = RecommendationRequest(types=["creator"])

        async def scenario():
            return await asyncio.gather(*[service.get_recommendations("u1", request) for _ in range(5)])

        results = asyncio.run(scenario())
        assert service.computations == 1
        assert slow.calls == 1
        assert len({r.generated_at for r in results}) == 1


class TestExclusion:
    """Irreversible interactions remove the target."""

    def test_purchased_item_excluded(self):
        service, _ = _build([event(type="purchase", target_id="creator-0", target_type="creator")])
        rec_set = asyncio.run(service.get_recommendations("u1"))
        assert "creator-0" not in {s.id for items in rec_set.per_type.values() for s in items}

    def test_exclusion_can_be_disabled(self):
        service, _ = _build([event(type="purchase", target_id="creator-0", target_type="creator")])
        request = RecommendationRequest(types=["creator"], exclude_interacted=False)
        rec_set = asyncio.run(service.get_recommendations("u1", request))
        assert "creator-0" in {s.id for s in rec_set.per_type["creator"]}


class TestInvalidateDuringComputation:
    """invalidate() wins over a computation that started before it."""

    def test_stale_result_not_cached(self, caplog):
        catalog = InMemoryCatalog(catalog_records())
        slow = SlowProvider(CatalogCandidateProvider("creator", catalog), delay=0.1)
        service, store = _build(providers={"creator": slow})
        request = RecommendationRequest(types=["creator"])

        async def scenario():
            first = asyncio.create_task(service.get_recommendations("u1", request))
            await asyncio.to_thread(slow.started.wait, 5)
            for ev in _beauty_clicks():
                store.append(ev)
            await service.invalidate("u1")
            second = await service.get_recommendations("u1", request)
            stale = await first
            third = await service.get_recommendations("u1", request)
            return stale, second, third

        with caplog.at_level(logging.INFO):
            stale, second, third = asyncio.run(scenario())
        assert stale.cold_start
        assert not second.cold_start
        assert not third.cold_start
        assert third.generated_at == second.generated_at
        assert service.computations == 2
        assert slow.calls == 2
        assert "STALE_RESULT_DISCARDED" in caplog.text

    def test_profile_rebuilt_before_invalidate_not_kept(self):
        service, store = _build()

        async def scenario():
            rebuild = asyncio.create_task(service.profiles.rebuild("u1"))
            await asyncio.sleep(0)
            service.profiles.invalidate("u1")
            await rebuild
            return service.profiles.profile_count

        assert asyncio.run(scenario()) == 0


class TestCacheFailures:
    """A broken cache backend never fails the request."""

    @pytest.mark.parametrize("error", [ConnectionError("redis down"), ValueError("incompatible record")])
    def test_raising_cache_treated_as_miss(self, error, caplog):
        service, _ = _build()
        service.cache = RaisingCache(error)

        async def scenario():
            rec_set = await service.get_recommendations("u1")
            dropped = await service.invalidate("u1")
            return rec_set, dropped

        rec_set, dropped = asyncio.run(scenario())
        assert not rec_set.degraded
        assert len(rec_set.mixed_list) == 12
        assert dropped == 0
        assert "CACHE_READ_FAILED" in caplog.text
        assert "CACHE_WRITE_FAILED" in caplog.text


class TestGeneratedAt:
    """Monotonic generation timestamps per user."""

    def test_clock_going_backwards(self):
        times = [NOW]
        service, _ = _build(clock=lambda: times[0])

        async def scenario():
            first = await service.get_recommendations("u1")
            times[0] = NOW - timedelta(hours=1)
            second = await service.get_recommendations("u1", RecommendationRequest(force_refresh=True))
            return first, second

        first, second = asyncio.run(scenario())
        assert service.computations == 2
        assert second.generated_at == first.generated_at == NOW


class TestRealTimeBoostThroughService:
    """Events submitted to the service re-weight the cached set."""

    def test_click_boosts_cached_set(self):
        service, _ = _build(realtime=True)

        async def scenario():
            before = await service.get_recommendations("u1")
            accepted = await service.submit_event(
                event(type="click", target_id="creator-0", target_type="creator", tags=["beauty"])
            )
            await service.event_capture.drain()
            after = await service.get_recommendations("u1")
            return accepted, before, after

        accepted, before, after = asyncio.run(scenario())
        assert accepted
        assert service.computations == 1
        before_scores = {s.id: s.total_score for s in before.per_type["creator"]}
        after_scores = {s.id: s.total_score for s in after.per_type["creator"]}
        assert after_scores["creator-0"] > before_scores["creator-0"]
        assert all(after_scores[cid] >= score for cid, score in before_scores.items())
        assert after.generated_at == before.generated_at


class TestForgetInactive:
    """Per-user state does not outlive the user's activity."""

    def test_bookkeeping_dropped_for_inactive_users(self):
        service, _ = _build(providers={})

        async def scenario():
            for i in range(50):
                await service.get_recommendations(f"user{i}")
                await service.invalidate(f"user{i}")
            tracked = service.tracked_user_count
            dropped = service.forget_inactive(["user0"])
            return tracked, dropped

        tracked, dropped = asyncio.run(scenario())
        assert tracked == 50
        assert dropped == 49
        assert service.tracked_user_count == 1
        assert service.cache.lock_count == 0
        assert len(service.cache) == 0

    def test_stale_profiles_pruned(self):
        times = [NOW]
        service, _ = _build(clock=lambda: times[0])

        async def scenario():
            await service.get_recommendations("u1")
            before = service.profiles.profile_count
            times[0] = NOW + timedelta(hours=2)
            service.forget_inactive([])
            return before

        assert asyncio.run(scenario()) == 1
        assert service.profiles.profile_count == 0


class TestRefreshFailures:
    """Degraded refreshes are reported to the caller."""

    def test_refresh_user_raises_on_degraded_set(self):
        service, _ = _build()
        service.strategy = RaisingStrategy()

        with pytest.raises(RefreshFailedError) as exc:
            asyncio.run(service.refresh_user("u1"))
        assert exc.value.failed == 1
        assert exc.value.total == 1
