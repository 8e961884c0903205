"""
Behavior event model: one immutable user interaction.

Built from API payloads or store documents via BehaviorEvent.model_validate(d).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

KNOWN_EVENT_TYPES = (
    "view",
    "click",
    "search",
    "scroll_deep",
    "like",
    "save",
    "share",
    "purchase",
    "applied",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BehaviorEvent(BaseModel):
    """A single user interaction. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    type: str
    target_id: str = ""
    target_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    session_id: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def age_days(self, now: Optional[datetime] = None) -> float:
        """Age in (fractional) days, never negative."""
        now = as_utc(now) if now is not None else utc_now()
        return max(0.0, (now - self.timestamp).total_seconds() / 86400.0)

    def tags(self) -> List[str]:
        """Category and tags recorded on the event metadata, lower-cased, in order."""
        out: List[str] = []
        category = self.metadata.get("category")
        if isinstance(category, str) and category.strip():
            out.append(category.strip().lower())
        tags = self.metadata.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]
        for tag in tags:
            if isinstance(tag, str) and tag.strip() and tag.strip().lower() not in out:
                out.append(tag.strip().lower())
        return out


def ensure_events(events: List[Union[Dict[str, Any], "BehaviorEvent"]]) -> List["BehaviorEvent"]:
    """Convert list of dicts or BehaviorEvents to BehaviorEvent models."""
    return [
        BehaviorEvent.model_validate(e) if isinstance(e, dict) else e
        for e in events
    ]
