"""
Feature scores for one (candidate, profile) pair.

Every feature lands in [0, 1]:
- category_match: share of candidate tags found in the profile (or Jaccard, per type)
- geographic_match: city 1.0 / region 0.8 / country 0.6 / language area 0.4 / none 0.2; unknown 0.5
- performance_score: sum of capped statistic ratios (caps sum to 1.0)
- audience_match: mean of available age, gender and interest overlaps; 0.5 if none
- behavior_match: 1.0 for a clicked entity, else resemblance to clicked items
- novelty_score: 1.0 unseen, 0.1 seen
- budget_match: tiered ratio of the candidate budget to the profile budget (linear for partners); unknown 0.5
- requirements_match: 1.0 times a penalty per unmet skill or country requirement
- urgency_score: 1.0 / 0.8 / 0.6 by days to deadline, else 0.4
- content_freshness: 1.0 / 0.8 / 0.6 / 0.4 by days since publication, else 0.2; unknown 0.5
- content_quality: points for each statistic above its threshold

Time-dependent features measure from profile.last_updated, so scores stay a
pure function of (candidate, profile, config).
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ...models.candidate import Candidate
from ...models.config import RecommendationConfig
from ...models.event import as_utc
from ...models.profile import Location, UserProfile
from ...utils.scores import capped_ratio, clip_unit
from ...utils.similarity import gender_split_overlap, jaccard, normalize_terms, share_of


def category_match(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    terms = profile.match_terms()
    if config.category_match_modes.get(candidate.entity_type) == "jaccard":
        return jaccard(candidate.all_tags(), terms)
    return share_of(candidate.all_tags(), terms)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a and b and a.strip().casefold() == b.strip().casefold())


def _same_language_area(a: str, b: str, config: RecommendationConfig) -> bool:
    for area in config.language_areas:
        codes = {c.upper() for c in area}
        if a.upper() in codes and b.upper() in codes:
            return True
    return False


def geographic_match(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    mine: Optional[Location] = profile.location
    theirs: Optional[Location] = candidate.location
    if mine is None or theirs is None or not mine.is_known or not theirs.is_known:
        return config.geo_unknown
    if not (mine.country and theirs.country):
        # Countries unknown on one side: only a city match is conclusive
        return config.geo_same_city if _same(mine.city, theirs.city) else config.geo_unknown
    if _same(mine.country, theirs.country):
        if _same(mine.city, theirs.city):
            return config.geo_same_city
        if _same(mine.region, theirs.region):
            return config.geo_same_region
        return config.geo_same_country
    if _same_language_area(mine.country, theirs.country, config):
        return config.geo_language_area
    return config.geo_none


def performance_score(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    stats = candidate.statistics or {}
    total = 0.0
    for name, metric in config.performance_metrics.items():
        value = stats.get(name)
        if value is None:
            continue
        total += capped_ratio(float(value), metric.scale, metric.cap)
    return clip_unit(total)


def audience_match(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    target = profile.demographic_estimate
    audience = candidate.demographics
    if audience is None:
        return config.audience_unknown
    factors: List[float] = []
    if target.primary_age is not None and audience.primary_age is not None:
        delta = abs(target.primary_age - audience.primary_age)
        factors.append(max(0.0, 1.0 - delta / config.audience_age_span))
    gender = gender_split_overlap(target.gender_split, audience.gender_split)
    if gender is not None:
        factors.append(gender)
    if target.interests and audience.interests:
        factors.append(jaccard(target.interests, audience.interests))
    if not factors:
        return config.audience_unknown
    return clip_unit(sum(factors) / len(factors))


def behavior_match(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    if candidate.id in profile.clicked_entity_ids:
        return 1.0
    if not profile.click_tags:
        return 0.0
    return clip_unit(config.behavior_resemblance_weight * share_of(candidate.all_tags(), profile.click_tags))


def novelty_score(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    if candidate.id in profile.viewed_entity_ids:
        return config.novelty_seen
    return config.novelty_unseen


def _days_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 86400.0


def _first_tier(value: float, tiers: Sequence[Tuple[float, float]], reached) -> Optional[float]:
    for bound, score in tiers:
        if reached(value, bound):
            return score
    return None


def budget_match(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    if not candidate.budget or not profile.budget_estimate:
        return config.budget_unknown
    ratio = candidate.budget / profile.budget_estimate
    if candidate.entity_type in config.budget_linear_types:
        return min(1.0, ratio)
    score = _first_tier(ratio, config.budget_tiers, lambda v, floor: v >= floor)
    return config.budget_floor if score is None else score


def requirements_match(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    requirements = candidate.requirements
    if requirements is None:
        return 1.0
    score = 1.0
    required_skills = set(normalize_terms(requirements.skills))
    if required_skills and not required_skills.intersection(normalize_terms(profile.skills)):
        score *= config.requirement_skills_penalty
    countries = {c.strip().upper() for c in requirements.countries if c and c.strip()}
    country = profile.location.country if profile.location else None
    if countries and (not country or country.strip().upper() not in countries):
        score *= config.requirement_country_penalty
    return score


def urgency_score(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    if candidate.deadline is None:
        return config.urgency_default
    days_left = _days_between(profile.last_updated, candidate.deadline)
    score = _first_tier(days_left, config.urgency_tiers, lambda v, limit: v <= limit)
    return config.urgency_default if score is None else score


def content_freshness(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    if candidate.published_at is None:
        return config.freshness_unknown
    age = max(0.0, _days_between(candidate.published_at, profile.last_updated))
    score = _first_tier(age, config.freshness_tiers, lambda v, limit: v <= limit)
    return config.freshness_floor if score is None else score


def content_quality(candidate: Candidate, profile: UserProfile, config: RecommendationConfig) -> float:
    stats = candidate.statistics or {}
    total = 0.0
    for name, metric in config.quality_metrics.items():
        value = stats.get(name)
        if value is not None and value > metric.threshold:
            total += metric.points
    return clip_unit(total)


FEATURES = {
    "category_match": category_match,
    "geographic_match": geographic_match,
    "performance_score": performance_score,
    "audience_match": audience_match,
    "behavior_match": behavior_match,
    "novelty_score": novelty_score,
    "budget_match": budget_match,
    "requirements_match": requirements_match,
    "urgency_score": urgency_score,
    "content_freshness": content_freshness,
    "content_quality": content_quality,
}


def compute_features(
    candidate: Candidate,
    profile: UserProfile,
    config: RecommendationConfig,
) -> Dict[str, float]:
    """All feature scores for a candidate, each clipped to [0, 1]."""
    return {name: clip_unit(fn(candidate, profile, config)) for name, fn in FEATURES.items()}
