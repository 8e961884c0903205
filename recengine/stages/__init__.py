"""Pipeline stages: profile building, candidate pool, scoring, mixing, explanations, real-time boost."""

from .candidate_pool import get_candidate_pool
from .diversity import inject_exploration, mix_ranked_lists, per_type_cap
from .explanation import explain
from .orchestrator import create_recommendation_set
from .profile_builder import build_profile, default_profile
from .realtime import apply_realtime_boost, target_tags
from .scoring import HeuristicScoringStrategy, ScoringStrategy, rank_candidates

__all__ = [
    "HeuristicScoringStrategy",
    "ScoringStrategy",
    "apply_realtime_boost",
    "build_profile",
    "create_recommendation_set",
    "default_profile",
    "explain",
    "get_candidate_pool",
    "inject_exploration",
    "mix_ranked_lists",
    "per_type_cap",
    "rank_candidates",
    "target_tags",
]
