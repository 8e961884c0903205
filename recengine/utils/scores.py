"""
Score helpers for recency weighting and clipping.
"""

import math


def recency_weight(age_days: float) -> float:
    """Weight of an event that is age_days old: 1 / log2(age + 2). 1.0 for a fresh event."""
    return 1.0 / math.log2(max(0.0, age_days) + 2.0)


def clip_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if value != value:
        return 0.0
    return max(0.0, min(1.0, value))


def capped_ratio(value: float, scale: float, cap: float) -> float:
    """min(value / scale, cap), never negative."""
    if scale <= 0:
        return 0.0
    return max(0.0, min(value / scale, cap))
