"""Pure helpers: recommendation card formatting."""

from recengine.models import RecommendationSet, ScoredCandidate

from .models import RecommendationCard, RecommendationSetResponse


def to_recommendation_card(scored: ScoredCandidate) -> RecommendationCard:
    """Format a scored candidate for API response."""
    candidate = scored.candidate
    return RecommendationCard(
        id=candidate.id,
        entity_type=candidate.entity_type,
        title=candidate.title,
        category=candidate.category,
        tags=list(candidate.tags),
        score=round(scored.total_score, 4),
        explanation=scored.explanation,
        is_surprise=scored.is_surprise,
        feature_scores={k: round(v, 4) for k, v in scored.feature_scores.items()},
    )


def to_response(rec_set: RecommendationSet) -> RecommendationSetResponse:
    return RecommendationSetResponse(
        user_id=rec_set.user_id,
        generated_at=rec_set.generated_at,
        version=rec_set.version,
        cold_start=rec_set.cold_start,
        profile_confidence=rec_set.profile_confidence,
        degraded=rec_set.degraded,
        items=[to_recommendation_card(s) for s in rec_set.mixed_list],
        per_type={t: [to_recommendation_card(s) for s in items] for t, items in rec_set.per_type.items()},
    )
