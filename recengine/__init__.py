"""
Personalization engine: multi-signal scoring and diversified mixing.

Single entry point for the engine package:
- models/: RecommendationConfig, BehaviorEvent, UserProfile, Candidate, RecommendationSet, errors
- stages/: profile_builder, candidate_pool, scoring, diversity, explanation, realtime, orchestrator
- utils/: recency weighting and overlap measures
"""

from .models import (
    DEFAULT_CONFIG,
    ENTITY_TYPES,
    AccountAttributes,
    BehaviorEvent,
    Candidate,
    RecommendationConfig,
    RecommendationSet,
    ScoredCandidate,
    UserProfile,
    resolve_config,
)
from .stages import (
    HeuristicScoringStrategy,
    ScoringStrategy,
    apply_realtime_boost,
    build_profile,
    create_recommendation_set,
    default_profile,
    explain,
    mix_ranked_lists,
    rank_candidates,
)

__all__ = [
    "AccountAttributes",
    "BehaviorEvent",
    "Candidate",
    "DEFAULT_CONFIG",
    "ENTITY_TYPES",
    "HeuristicScoringStrategy",
    "RecommendationConfig",
    "RecommendationSet",
    "ScoredCandidate",
    "ScoringStrategy",
    "UserProfile",
    "apply_realtime_boost",
    "build_profile",
    "create_recommendation_set",
    "default_profile",
    "explain",
    "mix_ranked_lists",
    "rank_candidates",
    "resolve_config",
]
