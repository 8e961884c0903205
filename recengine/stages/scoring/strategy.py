"""
Scoring strategies.

ScoringStrategy is the pluggable seam for alternative scorers (e.g. a learned
or collaborative model). HeuristicScoringStrategy is the weighted-feature
scorer used by default:

    total = clip(dot(weights, features) * bonuses, 0, 1)

Bonuses: verified x1.10, premium partner x1.05, response rate > 0.9 x1.10.
Default (cold start) profiles use the popularity-based cold start weights.
"""

from typing import Dict, Protocol

import numpy as np

from ...models.candidate import Candidate
from ...models.config import DEFAULT_CONFIG, FEATURE_NAMES, RecommendationConfig
from ...models.profile import UserProfile
from ...models.scoring import ScoredCandidate
from ...utils.scores import clip_unit
from .features import compute_features


class ScoringStrategy(Protocol):
    """Protocol for candidate scorers. Implementations must be deterministic and pure."""

    name: str

    def score(self, candidate: Candidate, profile: UserProfile) -> ScoredCandidate:
        """Return the candidate with feature scores and a total_score in [0, 1]."""
        ...


class HeuristicScoringStrategy:
    """Weighted sum of feature scores with multiplicative bonuses."""

    name = "heuristic"

    def __init__(self, config: RecommendationConfig = DEFAULT_CONFIG):
        self.config = config

    def weight_vector(self, entity_type: str, cold_start: bool = False) -> np.ndarray:
        weights = self.config.weights_for(entity_type, cold_start)
        return np.array([float(weights.get(name, 0.0)) for name in FEATURE_NAMES])

    def combine_features(
        self,
        features: Dict[str, float],
        entity_type: str,
        cold_start: bool = False,
    ) -> float:
        """Weighted sum of features, before bonuses."""
        values = np.array([float(features.get(name, 0.0)) for name in FEATURE_NAMES])
        return float(np.dot(self.weight_vector(entity_type, cold_start), values))

    def bonus_multiplier(self, candidate: Candidate) -> float:
        config = self.config
        multiplier = 1.0
        if candidate.verified:
            multiplier *= config.verified_bonus
        if candidate.premium_partner:
            multiplier *= config.premium_partner_bonus
        if candidate.response_rate is not None and candidate.response_rate > config.response_rate_threshold:
            multiplier *= config.response_rate_bonus
        return multiplier

    def score(self, candidate: Candidate, profile: UserProfile) -> ScoredCandidate:
        features = compute_features(candidate, profile, self.config)
        raw = self.combine_features(features, candidate.entity_type, cold_start=profile.is_default)
        total = clip_unit(raw * self.bonus_multiplier(candidate))
        return ScoredCandidate(
            candidate=candidate,
            feature_scores=features,
            total_score=total,
        )
