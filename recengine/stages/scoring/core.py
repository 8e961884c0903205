"""
Ranking for one entity type: score, threshold, sort, cap, explain.

Deterministic for a given (profile, candidates, config): no randomness here.
"""

import logging
from typing import List, Optional

from ...models.candidate import Candidate
from ...models.config import DEFAULT_CONFIG, RecommendationConfig
from ...models.profile import UserProfile
from ...models.scoring import ScoredCandidate, sort_scored
from ..explanation import explain
from .strategy import HeuristicScoringStrategy, ScoringStrategy

logger = logging.getLogger(__name__)


def rank_candidates(
    entity_type: str,
    candidates: List[Candidate],
    profile: UserProfile,
    config: RecommendationConfig = DEFAULT_CONFIG,
    strategy: Optional[ScoringStrategy] = None,
) -> List[ScoredCandidate]:
    """
    Rank candidates of one entity type for a profile.

    Candidates below the type's relevance threshold are dropped (cold start
    profiles use cold_start_threshold). The rest are sorted by total_score
    descending, ties broken by id, capped at per_type_limit and given an
    explanation.
    """
    strategy = strategy or HeuristicScoringStrategy(config)
    threshold = config.threshold_for(entity_type, cold_start=profile.is_default)

    scored: List[ScoredCandidate] = []
    dropped = 0
    for candidate in candidates:
        result = strategy.score(candidate, profile)
        if result.total_score < threshold:
            dropped += 1
            continue
        scored.append(result)

    if dropped:
        logger.debug(
            "[ranking] BELOW_THRESHOLD type=%s dropped=%d kept=%d threshold=%.2f",
            entity_type, dropped, len(scored), threshold,
        )

    ranked = sort_scored(scored)[:config.per_type_limit]
    return [
        s.model_copy(update={"explanation": explain(s, profile, config)})
        for s in ranked
    ]
