"""
Profile service: loads account attributes and the behavior window, builds
the UserProfile and keeps it for profile_refresh_minutes.

Users with too little behavior get the default profile. Store failures
degrade to an empty window rather than failing the request.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from recengine.models import (
    AccountAttributes,
    BehaviorEvent,
    DEFAULT_CONFIG,
    ProfileInsufficientDataError,
    RecommendationConfig,
    UserProfile,
    utc_now,
)
from recengine.stages import build_profile, default_profile

from .account_store import AccountStore
from .behavior_store import BehaviorStore

logger = logging.getLogger(__name__)


class ProfileService:
    """Builds and caches user profiles."""

    def __init__(
        self,
        behavior_store: BehaviorStore,
        account_store: Optional[AccountStore] = None,
        config: RecommendationConfig = DEFAULT_CONFIG,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._behavior_store = behavior_store
        self._account_store = account_store
        self._config = config
        self._clock = clock
        self._profiles: Dict[str, UserProfile] = {}
        # invalidate() bumps the generation; a rebuild that started earlier is not kept
        self._generations: Dict[str, int] = {}
        self._building: Dict[str, int] = {}

    @property
    def profile_count(self) -> int:
        return len(self._profiles)

    def _is_fresh(self, profile: UserProfile) -> bool:
        age = self._clock() - profile.last_updated
        return age < timedelta(minutes=self._config.profile_refresh_minutes)

    async def _load_account(self, user_id: str) -> Optional[AccountAttributes]:
        if self._account_store is None:
            return None
        try:
            return await asyncio.to_thread(self._account_store.get_attributes, user_id)
        except Exception as e:
            logger.warning("[profile] ACCOUNT_LOOKUP_FAILED user=%s err=%s", user_id, e)
            return None

    async def _load_events(self, user_id: str) -> List[BehaviorEvent]:
        try:
            return await asyncio.to_thread(
                self._behavior_store.query,
                user_id,
                self._config.behavior_window_days,
                self._config.profile_event_limit,
            )
        except Exception as e:
            logger.warning("[profile] BEHAVIOR_QUERY_FAILED user=%s err=%s", user_id, e)
            return []

    async def rebuild(self, user_id: str) -> UserProfile:
        generation = self._generations.get(user_id, 0)
        self._building[user_id] = self._building.get(user_id, 0) + 1
        try:
            account, events = await asyncio.gather(
                self._load_account(user_id),
                self._load_events(user_id),
            )
        finally:
            self._building[user_id] -= 1
            if not self._building[user_id]:
                del self._building[user_id]
        now = self._clock()
        try:
            profile = build_profile(user_id, account, events, self._config, now=now)
        except ProfileInsufficientDataError as e:
            logger.info(
                "[profile] PROFILE_FALLBACK user=%s events=%d required=%d",
                user_id, e.event_count, e.required,
            )
            profile = default_profile(user_id, account, events, self._config, now=now)
        if self._generations.get(user_id, 0) == generation:
            self._profiles[user_id] = profile
        return profile

    async def get(self, user_id: str, force: bool = False) -> UserProfile:
        """Cached profile, rebuilt when missing, stale, or force is set."""
        cached = self._profiles.get(user_id)
        if cached is not None and not force and self._is_fresh(cached):
            return cached
        return await self.rebuild(user_id)

    def invalidate(self, user_id: str) -> None:
        self._profiles.pop(user_id, None)
        self._generations[user_id] = self._generations.get(user_id, 0) + 1

    def prune(self) -> int:
        """Drop profiles past profile_refresh_minutes; returns how many were dropped."""
        stale = [uid for uid, profile in self._profiles.items() if not self._is_fresh(profile)]
        for user_id in stale:
            del self._profiles[user_id]
        for user_id in [uid for uid in self._generations if uid not in self._profiles and uid not in self._building]:
            del self._generations[user_id]
        return len(stale)
