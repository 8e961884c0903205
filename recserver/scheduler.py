"""
Periodic refresh of recommendations for recently active users.

Every refresh_interval_minutes the scheduler recomputes the cached sets of
each user active in the last active_user_hours, then has the service forget
users who dropped out of that window. At most refresh_concurrency
users are refreshed at once, so live requests keep priority. A failed
refresh is logged and does not stop the loop.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from recengine.models import DEFAULT_CONFIG, RecommendationConfig, utc_now

from .services.behavior_store import BehaviorStore
from .services.recommender import RecommendationService

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Cancellable asyncio refresh loop."""

    def __init__(
        self,
        service: RecommendationService,
        behavior_store: BehaviorStore,
        config: RecommendationConfig = DEFAULT_CONFIG,
        interval_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._service = service
        self._behavior_store = behavior_store
        self._config = config
        self._interval = interval_seconds if interval_seconds is not None else config.refresh_interval_minutes * 60
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max(1, config.refresh_concurrency))
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _refresh_one(self, user_id: str) -> bool:
        async with self._semaphore:
            try:
                await self._service.refresh_user(user_id)
                return True
            except Exception as e:
                logger.warning("[scheduler] REFRESH_FAILED user=%s err=%s", user_id, e)
                return False
            finally:
                # Yield between users so live requests are not starved
                await asyncio.sleep(0)

    async def run_once(self) -> int:
        """Refresh every recently active user once; returns the number refreshed."""
        since = self._clock() - timedelta(hours=self._config.active_user_hours)
        try:
            users = await asyncio.to_thread(self._behavior_store.active_user_ids, since)
        except Exception as e:
            logger.warning("[scheduler] ACTIVE_USERS_FAILED err=%s", e)
            return 0
        refreshed = 0
        for done in asyncio.as_completed([self._refresh_one(uid) for uid in users]):
            if await done:
                refreshed += 1
        forgotten = self._service.forget_inactive(users)
        self.runs += 1
        logger.info(
            "[scheduler] REFRESH_COMPLETE users=%d refreshed=%d forgotten=%d",
            len(users), refreshed, forgotten,
        )
        return refreshed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("[scheduler] STARTED interval_s=%s", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[scheduler] STOPPED")
