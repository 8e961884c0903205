"""
Recommendation service — the engine's three external operations:
submit_event, get_recommendations, invalidate (plus refresh_user for the scheduler).

get_recommendations: cache read -> single-flight recompute per cache key ->
profile + per-type candidate fetch in parallel -> scoring/mixing in a worker
thread -> cache write. It never raises: failures yield a degraded, empty set.
invalidate() starts a new per-user generation; results computed under an
older one are not cached.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from recengine.models import (
    BehaviorEvent,
    CacheUnavailable,
    Candidate,
    DEFAULT_CONFIG,
    RecommendationConfig,
    RecommendationSet,
    RefreshFailedError,
    TransientCatalogError,
    UserProfile,
    utc_now,
)
from recengine.stages import ScoringStrategy, create_recommendation_set

from ..models.recommendations import RecommendationRequest
from .cache import RecommendationCache, make_cache_key, user_prefix
from .catalog import CandidateProvider, FilterSpec
from .event_capture import EventCapture
from .profile_service import ProfileService

logger = logging.getLogger(__name__)


class SingleFlight:
    """Coalesces concurrent calls for the same key into one in-flight task."""

    def __init__(self):
        self._inflight: Dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def in_flight_prefix(self, prefix: str) -> bool:
        return any(k.startswith(prefix) for k in self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        # shield: a cancelled waiter must not cancel the shared computation
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            self._inflight.pop(key, None)


def _default_rng_factory(config: RecommendationConfig) -> Callable[[str], random.Random]:
    def factory(user_id: str) -> random.Random:
        if config.exploration_seed is not None:
            return random.Random(config.exploration_seed)
        return random.Random()
    return factory


class RecommendationService:
    """Serves, caches and refreshes recommendation sets."""

    def __init__(
        self,
        profiles: ProfileService,
        providers: Dict[str, CandidateProvider],
        cache: RecommendationCache,
        event_capture: Optional[EventCapture] = None,
        config: RecommendationConfig = DEFAULT_CONFIG,
        strategy: Optional[ScoringStrategy] = None,
        clock: Callable[[], datetime] = utc_now,
        rng_factory: Optional[Callable[[str], random.Random]] = None,
    ):
        self.profiles = profiles
        self.providers = providers
        self.cache = cache
        self.event_capture = event_capture
        self.config = config
        self.strategy = strategy
        self._clock = clock
        self._rng_factory = rng_factory or _default_rng_factory(config)
        self._flights = SingleFlight()
        self._last_generated: Dict[str, datetime] = {}
        # Request shapes seen per user; the scheduler refreshes these
        self._shapes: Dict[str, Dict[str, RecommendationRequest]] = {}
        # Bumped by invalidate(); results computed under an older generation are not cached
        self._generations: Dict[str, int] = {}
        self.computations = 0

    @property
    def tracked_user_count(self) -> int:
        return len(set(self._shapes) | set(self._last_generated) | set(self._generations))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def submit_event(
        self,
        payload: Union[Dict[str, Any], BehaviorEvent],
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if self.event_capture is None:
            logger.warning("[recommend] EVENT_CAPTURE_DISABLED")
            return False
        return await self.event_capture.submit(payload, context)

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def _key(self, user_id: str, request: RecommendationRequest) -> str:
        return make_cache_key(user_id, request.types, request.limit, request.exclude_interacted)

    def _generation(self, user_id: str) -> int:
        return self._generations.get(user_id, 0)

    async def _cached(self, key: str) -> Optional[RecommendationSet]:
        """Cached set, or None on a miss. Any read failure counts as a miss."""
        try:
            return await self.cache.get(key)
        except CacheUnavailable as e:
            logger.warning("[recommend] CACHE_UNAVAILABLE op=get key=%s err=%s", key, e)
        except Exception as e:
            logger.warning("[recommend] CACHE_READ_FAILED key=%s err=%s: %s", key, type(e).__name__, e)
        return None

    async def _store(self, key: str, rec_set: RecommendationSet) -> None:
        try:
            await self.cache.put(key, rec_set, self.config.cache_ttl_minutes * 60)
        except CacheUnavailable as e:
            logger.warning("[recommend] CACHE_UNAVAILABLE op=put key=%s err=%s", key, e)
        except Exception as e:
            logger.warning("[recommend] CACHE_WRITE_FAILED key=%s err=%s: %s", key, type(e).__name__, e)

    async def _fetch(self, entity_type: str, profile: UserProfile, exclude_interacted: bool) -> List[Candidate]:
        """Candidates of one type; any provider failure yields an empty list."""
        provider = self.providers.get(entity_type)
        if provider is None:
            return []
        spec = FilterSpec(
            entity_type=entity_type,
            exclude_ids=set(profile.interacted_entity_ids) if exclude_interacted else set(),
        )
        try:
            return await asyncio.to_thread(provider.fetch, spec, self.config.pool_size_for(entity_type))
        except TransientCatalogError as e:
            logger.warning("[recommend] PROVIDER_FAILED type=%s err=%s", entity_type, e)
        except Exception as e:
            logger.error("[recommend] PROVIDER_ERROR type=%s err=%s", entity_type, e)
        return []

    def _next_generated_at(self, user_id: str) -> datetime:
        """Now, but never earlier than the last set generated for this user."""
        now = self._clock()
        last = self._last_generated.get(user_id)
        generated_at = max(now, last) if last is not None else now
        self._last_generated[user_id] = generated_at
        return generated_at

    async def _compute(
        self,
        user_id: str,
        request: RecommendationRequest,
        key: str,
        force_profile: bool,
        generation: int,
    ) -> RecommendationSet:
        profile = await self.profiles.get(user_id, force=force_profile)
        results = await asyncio.gather(
            *[self._fetch(t, profile, request.exclude_interacted) for t in request.types]
        )
        candidates_by_type = dict(zip(request.types, results))
        rec_set = await asyncio.to_thread(
            create_recommendation_set,
            profile,
            candidates_by_type,
            request.types,
            request.limit,
            request.exclude_interacted,
            self.config,
            self.strategy,
            self._rng_factory(user_id),
            self._next_generated_at(user_id),
        )
        self.computations += 1
        if self._generation(user_id) != generation:
            # invalidate() ran while this was computing
            logger.info("[recommend] STALE_RESULT_DISCARDED user=%s key=%s", user_id, key)
            return rec_set
        await self._store(key, rec_set)
        logger.info(
            "[recommend] COMPUTED user=%s types=%s items=%d cold_start=%s confidence=%.2f",
            user_id, ",".join(request.types), len(rec_set.mixed_list), rec_set.cold_start, rec_set.profile_confidence,
        )
        return rec_set

    def _degraded(self, user_id: str, request: RecommendationRequest) -> RecommendationSet:
        return RecommendationSet(
            user_id=user_id,
            per_type={t: [] for t in request.types},
            mixed_list=[],
            generated_at=self._clock(),
            cold_start=True,
            degraded=True,
        )

    async def _recompute(
        self,
        user_id: str,
        request: RecommendationRequest,
        key: str,
        force_profile: bool = False,
    ) -> RecommendationSet:
        generation = self._generation(user_id)
        try:
            return await self._flights.do(
                f"{key}#{generation}",
                lambda: self._compute(user_id, request, key, force_profile, generation),
            )
        except Exception:
            logger.exception("[recommend] RECOMMENDATION_FAILED user=%s key=%s", user_id, key)
            return self._degraded(user_id, request)

    async def get_recommendations(
        self,
        user_id: str,
        request: Optional[RecommendationRequest] = None,
    ) -> RecommendationSet:
        """Cached set when fresh; otherwise one shared recomputation per cache key."""
        request = request or RecommendationRequest(limit=self.config.default_limit)
        key = self._key(user_id, request)
        self._shapes.setdefault(user_id, {})[key] = request.model_copy(update={"force_refresh": False})
        if not request.force_refresh:
            cached = await self._cached(key)
            if cached is not None:
                return cached
        return await self._recompute(user_id, request, key, force_profile=request.force_refresh)

    async def refresh_user(self, user_id: str) -> int:
        """
        Rebuild the profile and recompute every request shape seen for the user.

        Raises RefreshFailedError when any shape came back degraded, so the
        scheduler can count it as a failure.
        """
        await self.profiles.get(user_id, force=True)
        shapes = self._shapes.get(user_id) or {}
        if not shapes:
            default = RecommendationRequest(limit=self.config.default_limit)
            shapes = {self._key(user_id, default): default}
        failed = 0
        for key, request in list(shapes.items()):
            rec_set = await self._recompute(user_id, request, key)
            if rec_set.degraded:
                failed += 1
        if failed:
            raise RefreshFailedError(user_id, failed, len(shapes))
        return len(shapes)

    async def invalidate(self, user_id: str) -> int:
        """Drop the user's cached sets and profile; the next call recomputes."""
        self._generations[user_id] = self._generation(user_id) + 1
        self.profiles.invalidate(user_id)
        try:
            return await self.cache.invalidate_prefix(user_prefix(user_id))
        except CacheUnavailable as e:
            logger.warning("[recommend] CACHE_UNAVAILABLE op=invalidate user=%s err=%s", user_id, e)
        except Exception as e:
            logger.warning("[recommend] CACHE_INVALIDATE_FAILED user=%s err=%s: %s", user_id, type(e).__name__, e)
        return 0

    def forget_inactive(self, active_user_ids: Iterable[str]) -> int:
        """
        Drop per-user bookkeeping (request shapes, last generated_at,
        generation) for users outside active_user_ids, and stale profiles.
        Users with a computation in flight are kept. Returns users dropped.
        """
        active = set(active_user_ids)
        tracked = set(self._shapes) | set(self._last_generated) | set(self._generations)
        dropped = 0
        for user_id in tracked - active:
            if self._flights.in_flight_prefix(user_prefix(user_id)):
                continue
            self._shapes.pop(user_id, None)
            self._last_generated.pop(user_id, None)
            self._generations.pop(user_id, None)
            dropped += 1
        self.profiles.prune()
        if dropped:
            logger.debug("[recommend] FORGOT_INACTIVE users=%d", dropped)
        return dropped
