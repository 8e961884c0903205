"""
Profile Builder

Derives a UserProfile from explicit account attributes plus the rolling
behavior window. Explicit attributes win; inferred ones fill the gaps.

Each event is weighted by 1 / log2(age_days + 2) when tallying categories
and tags, so recent behavior dominates. confidence = min(1, n / 50).

The public entry points are build_profile and default_profile.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models.config import DEFAULT_CONFIG, RecommendationConfig
from ..models.errors import ProfileInsufficientDataError
from ..models.event import BehaviorEvent, as_utc, utc_now
from ..models.profile import AccountAttributes, Demographics, Location, UserProfile
from ..utils.scores import recency_weight
from ..utils.similarity import normalize_terms

logger = logging.getLogger(__name__)


def select_window(
    events: Iterable[BehaviorEvent],
    config: RecommendationConfig,
    now: datetime,
) -> List[BehaviorEvent]:
    """Events inside the behavior window, most recent first, capped at profile_event_limit."""
    in_window = [
        ev for ev in events
        if ev.age_days(now) <= config.behavior_window_days and ev.timestamp <= now
    ]
    in_window.sort(key=lambda ev: ev.timestamp, reverse=True)
    return in_window[:config.profile_event_limit]


def _top_terms(weights: Dict[str, float], k: int) -> List[str]:
    """Top-k terms by weight, ties broken alphabetically."""
    ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
    return [term for term, _ in ranked[:k]]


def _tally(events: List[BehaviorEvent], now: datetime) -> Tuple[Dict[str, float], Dict[str, float]]:
    """Recency-weighted category and tag tallies."""
    categories: Dict[str, float] = {}
    tags: Dict[str, float] = {}
    for ev in events:
        w = recency_weight(ev.age_days(now))
        category = ev.metadata.get("category")
        if isinstance(category, str) and category.strip():
            key = category.strip().lower()
            categories[key] = categories.get(key, 0.0) + w
        raw_tags = ev.metadata.get("tags") or []
        if isinstance(raw_tags, str):
            raw_tags = [raw_tags]
        for tag in normalize_terms(raw_tags):
            tags[tag] = tags.get(tag, 0.0) + w
    return categories, tags


def _most_frequent(values: Iterable[Any]) -> Optional[Any]:
    counts = Counter(v for v in values if v is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def _metadata_values(events: List[BehaviorEvent], key: str) -> List[Any]:
    return [ev.metadata.get(key) for ev in events if ev.metadata.get(key) is not None]


def _estimate_budget(events: List[BehaviorEvent]) -> Optional[float]:
    values = []
    for v in _metadata_values(events, "budget"):
        try:
            values.append(float(v))
        except (TypeError, ValueError):
            continue
    return _most_frequent(values)


def _estimate_audience_age(events: List[BehaviorEvent]) -> Optional[float]:
    values = []
    for v in _metadata_values(events, "audience_age"):
        try:
            values.append(float(v))
        except (TypeError, ValueError):
            continue
    return _most_frequent(values)


def _estimate_location(events: List[BehaviorEvent]) -> Optional[Location]:
    """Most frequent metadata.location; a plain string is read as a country code."""
    keys = []
    for v in _metadata_values(events, "location"):
        if isinstance(v, str) and v.strip():
            keys.append((None, None, v.strip().upper()))
        elif isinstance(v, dict):
            country = v.get("country")
            keys.append((v.get("city"), v.get("region"), country.upper() if isinstance(country, str) else None))
    best = _most_frequent(keys)
    if best is None:
        return None
    city, region, country = best
    loc = Location(city=city, region=region, country=country)
    return loc if loc.is_known else None


def _estimate_skills(events: List[BehaviorEvent], k: int) -> List[str]:
    counts: Counter = Counter()
    for v in _metadata_values(events, "skills"):
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list):
            counts.update(normalize_terms(v))
    return [s for s, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:k]]


def _merge_explicit(explicit: List[str], inferred: List[str], k: int) -> List[str]:
    """Explicit terms first, then inferred ones, keeping at least every explicit term."""
    merged = normalize_terms(list(explicit) + list(inferred))
    return merged[:max(k, len(normalize_terms(explicit)))]


def _interaction_sets(
    events: List[BehaviorEvent],
    config: RecommendationConfig,
) -> Dict[str, Any]:
    """Viewed, recently clicked and irreversibly interacted target ids from (recency-sorted) events."""
    viewed = set()
    interacted = set()
    clicked: List[str] = []
    click_tags: List[str] = []
    for ev in events:
        if not ev.target_id:
            continue
        if ev.type in config.seen_event_types:
            viewed.add(ev.target_id)
        if ev.type in config.irreversible_event_types:
            interacted.add(ev.target_id)
        if ev.type in config.click_event_types and len(clicked) < config.recent_click_limit:
            if ev.target_id not in clicked:
                clicked.append(ev.target_id)
            for tag in ev.tags():
                if tag not in click_tags:
                    click_tags.append(tag)
    return {
        "viewed_entity_ids": viewed,
        "clicked_entity_ids": clicked,
        "click_tags": click_tags,
        "interacted_entity_ids": interacted,
    }


def default_profile(
    user_id: str,
    account: Optional[AccountAttributes] = None,
    events: Optional[List[BehaviorEvent]] = None,
    config: RecommendationConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
) -> UserProfile:
    """
    Fallback profile for users with too little behavior.

    Uses explicit account attributes where present and documented defaults
    otherwise. Confidence is 0 and is_default is set, which switches scoring
    to the cold start weights.
    """
    now = as_utc(now) if now is not None else utc_now()
    window = select_window(events or [], config, now)
    categories = normalize_terms(account.categories) if account and account.categories else []
    audience = account.target_audience if account and account.target_audience else None
    return UserProfile(
        user_id=user_id,
        preferred_categories=categories or normalize_terms(config.default_categories),
        interests=normalize_terms(config.default_interests),
        demographic_estimate=Demographics(
            primary_age=audience.primary_age if audience else None,
            gender_split=audience.gender_split if audience else None,
            interests=normalize_terms(audience.interests) if audience else [],
        ),
        budget_estimate=account.budget if account and account.budget is not None else config.default_budget,
        skills=normalize_terms(account.skills) if account else [],
        location=account.location if account and account.location and account.location.is_known else None,
        event_count=len(window),
        confidence=0.0,
        last_updated=now,
        is_default=True,
        **_interaction_sets(window, config),
    )


def build_profile(
    user_id: str,
    account: Optional[AccountAttributes],
    events: List[BehaviorEvent],
    config: RecommendationConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
) -> UserProfile:
    """
    Build a profile from account attributes and the user's behavior events.

    Raises ProfileInsufficientDataError when fewer than min_profile_events
    events fall inside the behavior window.
    """
    now = as_utc(now) if now is not None else utc_now()
    window = select_window(events, config, now)
    if len(window) < config.min_profile_events:
        raise ProfileInsufficientDataError(user_id, len(window), config.min_profile_events)

    category_weights, tag_weights = _tally(window, now)
    inferred_categories = _top_terms(category_weights, config.top_categories)
    interests = _top_terms(tag_weights, config.top_interests)

    explicit_categories = account.categories if account else []
    preferred = _merge_explicit(explicit_categories, inferred_categories, config.top_categories)

    # Explicit location wins over the most frequent one seen in behavior
    location = account.location if account and account.location and account.location.is_known else None
    if location is None:
        location = _estimate_location(window)

    budget = account.budget if account and account.budget is not None else _estimate_budget(window)
    if budget is None:
        budget = config.default_budget

    audience = account.target_audience if account and account.target_audience else None
    primary_age = audience.primary_age if audience and audience.primary_age is not None else _estimate_audience_age(window)
    demographic = Demographics(
        primary_age=primary_age,
        gender_split=audience.gender_split if audience else None,
        interests=normalize_terms((audience.interests if audience else []) + interests),
    )

    skills = _merge_explicit(account.skills if account else [], _estimate_skills(window, config.top_skills), config.top_skills)

    confidence = min(1.0, len(window) / float(config.confidence_saturation_events))
    logger.debug(
        "[profile] PROFILE_BUILT user=%s events=%d confidence=%.2f categories=%s",
        user_id, len(window), confidence, preferred,
    )
    return UserProfile(
        user_id=user_id,
        preferred_categories=preferred,
        interests=interests,
        demographic_estimate=demographic,
        budget_estimate=budget,
        skills=skills,
        location=location,
        event_count=len(window),
        confidence=confidence,
        last_updated=now,
        is_default=False,
        **_interaction_sets(window, config),
    )
