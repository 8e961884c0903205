"""
Pipeline orchestrator — candidate pool, per-type ranking, mixing and
exploration for one user, producing a RecommendationSet.

The main entry point is create_recommendation_set. It is synchronous and
pure apart from the injected rng; the service runs it in a worker thread.
"""

import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.candidate import Candidate, ensure_candidates
from ..models.config import ENTITY_TYPES, RecommendationConfig, resolve_config
from ..models.event import as_utc, utc_now
from ..models.profile import UserProfile
from ..models.scoring import RecommendationSet, ScoredCandidate
from .candidate_pool import get_candidate_pool
from .diversity import inject_exploration, mix_ranked_lists
from .scoring import HeuristicScoringStrategy, ScoringStrategy, rank_candidates


def _rank_per_type(
    profile: UserProfile,
    candidates_by_type: Dict[str, List[Candidate]],
    types: Sequence[str],
    exclude_interacted: bool,
    config: RecommendationConfig,
    strategy: ScoringStrategy,
    now: datetime,
) -> Dict[str, List[ScoredCandidate]]:
    """Pool and rank each requested type independently."""
    excluded = set(profile.interacted_entity_ids) if exclude_interacted else set()
    per_type: Dict[str, List[ScoredCandidate]] = {}
    for entity_type in types:
        pool = get_candidate_pool(entity_type, candidates_by_type.get(entity_type, []), excluded, config, now)
        per_type[entity_type] = rank_candidates(entity_type, pool, profile, config, strategy)
    return per_type


def create_recommendation_set(
    profile: UserProfile,
    candidates_by_type: Dict[str, List[Union[Dict[str, Any], Candidate]]],
    types: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
    exclude_interacted: bool = True,
    config: Optional[RecommendationConfig] = None,
    strategy: Optional[ScoringStrategy] = None,
    rng: Optional[random.Random] = None,
    generated_at: Optional[datetime] = None,
) -> RecommendationSet:
    """
    Build the recommendation set for a profile from per-type candidate lists.

    Args:
        profile: Derived user profile (a default profile switches to cold start scoring).
        candidates_by_type: Candidates (models or catalog dicts) keyed by entity type.
            Missing types count as empty.
        types: Requested entity types; defaults to all four.
        limit: Size of the mixed list; defaults to config.default_limit.
        exclude_interacted: Drop targets of irreversible interactions.
        config: Engine config (DEFAULT_CONFIG when None).
        strategy: Scoring strategy (HeuristicScoringStrategy when None).
        rng: Random source for exploration; seeded from config.exploration_seed when None.
        generated_at: Timestamp to stamp on the set and reference time for
            expired deadlines; now when None.

    Returns:
        RecommendationSet with per-type lists, mixed list and metadata.
    """
    config = resolve_config(config)
    types = list(types) if types else list(ENTITY_TYPES)
    limit = min(limit or config.default_limit, config.max_limit)
    strategy = strategy or HeuristicScoringStrategy(config)
    rng = rng or random.Random(config.exploration_seed)
    generated_at = as_utc(generated_at) if generated_at is not None else utc_now()

    typed = {t: ensure_candidates(candidates_by_type.get(t) or [], t) for t in types}
    per_type = _rank_per_type(profile, typed, types, exclude_interacted, config, strategy, generated_at)

    mixed = mix_ranked_lists(per_type, limit, types)
    mixed = inject_exploration(
        mixed,
        per_type,
        profile,
        limit,
        rng,
        picks=config.exploration_picks,
        score=config.exploration_score,
        types=types,
    )

    return RecommendationSet(
        user_id=profile.user_id,
        per_type=per_type,
        mixed_list=mixed,
        generated_at=generated_at,
        cold_start=profile.is_default,
        profile_confidence=profile.confidence,
    )
