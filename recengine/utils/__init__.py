"""Shared helpers for scoring and similarity."""

from .scores import capped_ratio, clip_unit, recency_weight
from .similarity import (
    gender_split_overlap,
    jaccard,
    normalize_terms,
    share_of,
)

__all__ = [
    "capped_ratio",
    "clip_unit",
    "gender_split_overlap",
    "jaccard",
    "normalize_terms",
    "recency_weight",
    "share_of",
]
