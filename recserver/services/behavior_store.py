"""
Behavior Store abstraction.

Append-only log of user behavior events, queried per user over a rolling
window, newest first. Implementations: in-memory (local/tests) and Firestore
(users/{user_id}/behavior). No read-after-write guarantee across replicas.
"""

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Union

from recengine.models import BehaviorEvent, utc_now
from recengine.models.event import as_utc

from .firestore import firestore_client, query_descending

logger = logging.getLogger(__name__)

# Hard cap on a single query (most recent N)
EVENTS_READ_LIMIT = 1000


class BehaviorStore(Protocol):
    """Protocol for behavior event persistence."""

    def append(self, event: BehaviorEvent) -> None:
        """Persist one event. May raise on storage failure."""
        ...

    def query(
        self,
        user_id: str,
        window_days: int = 30,
        limit: int = 500,
        type_filter: Optional[Sequence[str]] = None,
    ) -> List[BehaviorEvent]:
        """Events of the user inside the window, ordered by timestamp descending."""
        ...

    def active_user_ids(self, since: datetime) -> List[str]:
        """Users with at least one event at or after since."""
        ...


class InMemoryBehaviorStore:
    """
    Behavior store kept in process memory.
    Events older than retention_days are pruned on append. Thread-safe.
    """

    def __init__(self, retention_days: int = 30, clock: Callable[[], datetime] = utc_now):
        self._retention = timedelta(days=retention_days)
        self._clock = clock
        self._events: Dict[str, List[BehaviorEvent]] = {}
        self._lock = threading.Lock()

    def append(self, event: BehaviorEvent) -> None:
        cutoff = self._clock() - self._retention
        with self._lock:
            events = [e for e in self._events.get(event.user_id, []) if e.timestamp >= cutoff]
            events.append(event)
            self._events[event.user_id] = events

    def query(
        self,
        user_id: str,
        window_days: int = 30,
        limit: int = 500,
        type_filter: Optional[Sequence[str]] = None,
    ) -> List[BehaviorEvent]:
        cutoff = self._clock() - timedelta(days=window_days)
        with self._lock:
            events = list(self._events.get(user_id, []))
        events = [e for e in events if e.timestamp >= cutoff]
        if type_filter:
            events = [e for e in events if e.type in type_filter]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:min(limit, EVENTS_READ_LIMIT)]

    def active_user_ids(self, since: datetime) -> List[str]:
        since = as_utc(since)
        with self._lock:
            return sorted(
                uid for uid, events in self._events.items()
                if any(e.timestamp >= since for e in events)
            )

    def count(self, user_id: str) -> int:
        with self._lock:
            return len(self._events.get(user_id, []))


class FirestoreBehaviorStore:
    """
    Behavior store backed by Firestore subcollection users/{user_id}/behavior.
    Document ID = event id, so retried appends are idempotent.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials_path: Optional[Union[Path, str]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._db = firestore_client(project_id, credentials_path)
        self._clock = clock

    def _behavior_ref(self, user_id: str):
        """Reference to users/{user_id}/behavior subcollection."""
        return self._db.collection("users").document(user_id).collection("behavior")

    def append(self, event: BehaviorEvent) -> None:
        doc = event.model_dump()
        self._behavior_ref(event.user_id).document(event.id).set(doc)

    def query(
        self,
        user_id: str,
        window_days: int = 30,
        limit: int = 500,
        type_filter: Optional[Sequence[str]] = None,
    ) -> List[BehaviorEvent]:
        cutoff = self._clock() - timedelta(days=window_days)
        query = (
            self._behavior_ref(user_id)
            .where("timestamp", ">=", cutoff)
            .order_by("timestamp", direction=query_descending())
            .limit(min(limit, EVENTS_READ_LIMIT))
        )
        out = []
        for doc in query.stream():
            data = doc.to_dict() or {}
            data.setdefault("id", doc.id)
            data.setdefault("user_id", user_id)
            if type_filter and data.get("type") not in type_filter:
                continue
            try:
                out.append(BehaviorEvent.model_validate(data))
            except ValueError as e:
                logger.warning("[behavior_store] MALFORMED_EVENT user=%s doc=%s err=%s", user_id, doc.id, e)
        return out

    def active_user_ids(self, since: datetime) -> List[str]:
        query = self._db.collection_group("behavior").where("timestamp", ">=", as_utc(since))
        users = set()
        for doc in query.stream():
            parent = doc.reference.parent.parent
            if parent is not None:
                users.add(parent.id)
        return sorted(users)
