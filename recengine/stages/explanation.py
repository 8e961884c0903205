"""
Explanation generator — short human-readable reason for a recommendation.

Picks up to max_explanation_reasons features that carry weight for the
entity type and score above the notable threshold (highest first, ties by
fixed feature priority) and renders each through a phrase table. Pure and
deterministic.
"""

from typing import List

from ..models.config import DEFAULT_CONFIG, FEATURE_NAMES, RecommendationConfig
from ..models.profile import UserProfile
from ..models.scoring import ScoredCandidate

GENERIC_EXPLANATION = "Recommended for you"
SURPRISE_TEMPLATE = "Something new: try {category}"

PHRASES = {
    "category_match": "Matches your interest in {terms}",
    "geographic_match": "Located near you",
    "performance_score": "Strong track record",
    "audience_match": "Audience fits your target group",
    "behavior_match": "Similar to what you engaged with recently",
    "novelty_score": "New to you",
    "budget_match": "Budget fits your rates",
    "requirements_match": "You meet the requirements",
    "urgency_score": "Deadline coming up soon",
    "content_freshness": "Freshly published",
    "content_quality": "Popular with readers",
}


def _matching_terms(scored: ScoredCandidate, profile: UserProfile, limit: int = 2) -> List[str]:
    terms = set(profile.match_terms())
    return [t for t in scored.candidate.all_tags() if t in terms][:limit]


def _render(feature: str, scored: ScoredCandidate, profile: UserProfile) -> str:
    if feature == "category_match":
        terms = _matching_terms(scored, profile)
        if not terms:
            return "Matches your interests"
        return PHRASES[feature].format(terms=" and ".join(terms))
    return PHRASES[feature]


def surprise_explanation(scored: ScoredCandidate) -> str:
    category = scored.candidate.primary_category() or scored.candidate.entity_type
    return SURPRISE_TEMPLATE.format(category=category)


def explain(
    scored: ScoredCandidate,
    profile: UserProfile,
    config: RecommendationConfig = DEFAULT_CONFIG,
) -> str:
    """Explanation string for a scored candidate."""
    if scored.is_surprise:
        return surprise_explanation(scored)
    weights = config.weights_for(scored.entity_type, cold_start=profile.is_default)
    notable = [
        (name, scored.feature_scores.get(name, 0.0))
        for name in FEATURE_NAMES
        if weights.get(name, 0.0) > 0 and scored.feature_scores.get(name, 0.0) > config.notable_feature_threshold
    ]
    if not notable:
        return GENERIC_EXPLANATION
    notable.sort(key=lambda item: (-item[1], FEATURE_NAMES.index(item[0])))
    reasons = [_render(name, scored, profile) for name, _ in notable[:config.max_explanation_reasons]]
    return "; ".join(reasons)
