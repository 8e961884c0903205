"""
Event capture: validates and enriches behavior events, then persists them
in the background so the caller never waits on storage.

Delivery is at-most-once: storage failures are logged and the event is
dropped. Qualifying events are also handed to the real-time updater.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Coroutine, Dict, Optional, Set, Tuple, Union

from recengine.models import BehaviorEvent, InvalidEventError, utc_now

from .behavior_store import BehaviorStore
from .realtime_updater import RealTimeUpdater

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("user_id", "type", "target_type")


def validate_event(payload: Union[Dict[str, Any], BehaviorEvent]) -> BehaviorEvent:
    """Return a BehaviorEvent or raise InvalidEventError."""
    data = payload.model_dump() if isinstance(payload, BehaviorEvent) else dict(payload or {})
    missing = [f for f in REQUIRED_FIELDS if not isinstance(data.get(f), str) or not data.get(f).strip()]
    if missing:
        raise InvalidEventError(f"missing required fields: {', '.join(missing)}")
    if isinstance(payload, BehaviorEvent):
        return payload
    try:
        return BehaviorEvent.model_validate(data)
    except ValueError as e:
        raise InvalidEventError(str(e)) from e


class EventCapture:
    """Accepts events from clients; persistence happens off the request path."""

    def __init__(
        self,
        behavior_store: BehaviorStore,
        realtime_updater: Optional[RealTimeUpdater] = None,
        session_timeout_minutes: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = behavior_store
        self._realtime = realtime_updater
        self._session_timeout = timedelta(minutes=session_timeout_minutes)
        self._clock = clock
        self._sessions: Dict[str, Tuple[str, datetime]] = {}
        self._last_prune: Optional[datetime] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _prune_sessions(self, now: datetime) -> None:
        """Forget sessions idle past the timeout; runs at most once per timeout period."""
        if self._last_prune is not None and now - self._last_prune < self._session_timeout:
            return
        self._last_prune = now
        expired = [uid for uid, (_, seen) in self._sessions.items() if now - seen >= self._session_timeout]
        for user_id in expired:
            del self._sessions[user_id]

    def _session_for(self, user_id: str) -> str:
        """Current session id of the user; a new one after session_timeout of inactivity."""
        now = self._clock()
        self._prune_sessions(now)
        current = self._sessions.get(user_id)
        if current is not None and now - current[1] < self._session_timeout:
            session_id = current[0]
        else:
            session_id = f"session_{int(now.timestamp())}_{uuid.uuid4().hex[:8]}"
        self._sessions[user_id] = (session_id, now)
        return session_id

    def _enrich(self, event: BehaviorEvent, context: Optional[Dict[str, Any]]) -> BehaviorEvent:
        context = dict(context or {})
        session_id = event.session_id or context.pop("session_id", None) or self._session_for(event.user_id)
        update: Dict[str, Any] = {"session_id": session_id}
        if context:
            update["metadata"] = {**event.metadata, "context": context}
        return event.model_copy(update=update)

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, event: BehaviorEvent) -> None:
        try:
            await asyncio.to_thread(self._store.append, event)
        except Exception as e:
            logger.error(
                "[events] EVENT_DROPPED user=%s type=%s id=%s err=%s",
                event.user_id, event.type, event.id, e,
            )

    async def _boost(self, event: BehaviorEvent) -> None:
        try:
            await self._realtime.on_event(event)
        except Exception as e:
            logger.warning("[events] REALTIME_UPDATE_FAILED user=%s target=%s err=%s", event.user_id, event.target_id, e)

    async def submit(
        self,
        payload: Union[Dict[str, Any], BehaviorEvent],
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Accept one event. Returns False (and logs) when the event is invalid;
        otherwise schedules persistence and returns True without waiting for it.
        """
        try:
            event = validate_event(payload)
        except InvalidEventError as e:
            logger.warning("[events] INVALID_EVENT err=%s", e)
            return False
        event = self._enrich(event, context)
        self._spawn(self._persist(event))
        if self._realtime is not None and self._realtime.qualifies(event):
            self._spawn(self._boost(event))
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all background persistence and boosts scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
