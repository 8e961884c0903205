"""Shared fixtures: fixed clock, model factories, and a small four-type catalog."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from recengine.models import BehaviorEvent, Candidate, UserProfile
from recengine.models.scoring import RecommendationSet, ScoredCandidate

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

CATEGORIES = ["beauty", "fitness", "gaming", "travel", "food", "tech"]
ENTITY_TYPES = ["creator", "opportunity", "partner", "content"]


class FakeClock:
    """Monotonic-style clock for cache TTL tests."""

    def __init__(self, start: float = 0.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


def candidate(cid: str, entity_type: str = "creator", tags=(), category=None, **kwargs) -> Candidate:
    return Candidate(id=cid, entity_type=entity_type, tags=list(tags), category=category, **kwargs)


def event(
    user_id: str = "u1",
    type: str = "click",
    target_id: str = "t1",
    target_type: str = "creator",
    days_ago: float = 0.0,
    now: datetime = NOW,
    **metadata,
) -> BehaviorEvent:
    return BehaviorEvent(
        user_id=user_id,
        type=type,
        target_id=target_id,
        target_type=target_type,
        metadata=metadata,
        timestamp=now - timedelta(days=days_ago),
    )


def scored(cid: str, score: float, entity_type: str = "creator", tags=(), category=None) -> ScoredCandidate:
    return ScoredCandidate(
        candidate=candidate(cid, entity_type, tags=tags, category=category),
        total_score=score,
    )


def catalog_records() -> Dict[str, List[dict]]:
    """Six records per entity type, one per category, with varying performance."""
    records: Dict[str, List[dict]] = {}
    for entity_type in ENTITY_TYPES:
        records[entity_type] = [
            {
                "id": f"{entity_type}-{i}",
                "title": f"{entity_type} {category}",
                "category": category,
                "tags": [category, f"{category}-tips"],
                "statistics": {
                    "engagement_rate": float(i),
                    "completion_rate": 0.5,
                    "average_rating": 4.0,
                    "total_volume": 20.0,
                },
            }
            for i, category in enumerate(CATEGORIES)
        ]
    return records


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_candidate():
    return candidate


@pytest.fixture
def make_event():
    return event


@pytest.fixture
def make_scored():
    return scored


@pytest.fixture
def make_profile():
    def _make(user_id: str = "u1", **kwargs) -> UserProfile:
        return UserProfile(user_id=user_id, last_updated=NOW, **kwargs)
    return _make


@pytest.fixture
def records() -> Dict[str, List[dict]]:
    return catalog_records()


@pytest.fixture
def rec_set():
    """Small cached set: two beauty items and one fitness item."""
    items = [
        scored("c-beauty-1", 0.5, tags=["beauty"]),
        scored("c-fitness", 0.6, tags=["fitness"]),
        scored("c-beauty-2", 0.9, tags=["beauty", "makeup"]),
    ]
    return RecommendationSet(
        user_id="u1",
        per_type={"creator": sorted(items, key=lambda s: -s.total_score)},
        mixed_list=sorted(items, key=lambda s: -s.total_score),
        generated_at=NOW,
    )
