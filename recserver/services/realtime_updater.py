"""
Real-time updater: applies in-place boosts to a user's cached
recommendations after a qualifying interaction.

No cached entry means nothing to do; the next full computation picks the
event up through the profile.
"""

import logging
from typing import List

from recengine.models import BehaviorEvent, CacheUnavailable, DEFAULT_CONFIG, RecommendationConfig, RecommendationSet
from recengine.stages import apply_realtime_boost, target_tags

from .cache import RecommendationCache, user_prefix

logger = logging.getLogger(__name__)


class RealTimeUpdater:
    """Boosts cached entries similar to the interacted target."""

    def __init__(self, cache: RecommendationCache, config: RecommendationConfig = DEFAULT_CONFIG):
        self._cache = cache
        self._config = config

    def qualifies(self, event: BehaviorEvent) -> bool:
        return event.type in self._config.realtime_event_types and bool(event.target_id)

    async def on_event(self, event: BehaviorEvent) -> int:
        """Boost every cached entry of the user; returns the number of boosted items."""
        if not self.qualifies(event):
            return 0
        try:
            keys = await self._cache.keys_with_prefix(user_prefix(event.user_id))
        except CacheUnavailable as e:
            logger.warning("[realtime] CACHE_UNAVAILABLE user=%s err=%s", event.user_id, e)
            return 0
        boosted: List[int] = []

        def _apply(rec_set: RecommendationSet) -> RecommendationSet:
            tags = target_tags(rec_set, event.target_id, event.tags())
            updated, count = apply_realtime_boost(rec_set, tags, self._config.realtime_boost_factor)
            boosted.append(count)
            return updated

        for key in keys:
            try:
                await self._cache.update(key, _apply)
            except CacheUnavailable as e:
                logger.warning("[realtime] CACHE_UNAVAILABLE user=%s key=%s err=%s", event.user_id, key, e)
        total = sum(boosted)
        if total:
            logger.debug(
                "[realtime] BOOST_APPLIED user=%s target=%s keys=%d items=%d",
                event.user_id, event.target_id, len(keys), total,
            )
        return total
