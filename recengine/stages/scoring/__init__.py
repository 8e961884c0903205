"""
Scoring: feature extraction, pluggable strategies, and per-type ranking.

Submodules: features, strategy, core.
"""

from .core import rank_candidates
from .features import FEATURES, compute_features
from .strategy import HeuristicScoringStrategy, ScoringStrategy

__all__ = [
    "FEATURES",
    "HeuristicScoringStrategy",
    "ScoringStrategy",
    "compute_features",
    "rank_candidates",
]
