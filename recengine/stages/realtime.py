"""
Real-time re-weighting of a cached RecommendationSet.

After a qualifying interaction, every entry sharing a tag with the target is
multiplied by the boost factor (clipped to 1.0) and lists are re-sorted.
Pure: returns a new set, the input is not mutated. generated_at is kept.
"""

from typing import Iterable, List, Tuple

from ..models.scoring import RecommendationSet, ScoredCandidate, sort_scored
from ..utils.scores import clip_unit
from ..utils.similarity import normalize_terms


def target_tags(
    rec_set: RecommendationSet,
    target_id: str,
    event_tags: Iterable[str] = (),
) -> List[str]:
    """Tags of the interacted target: from the event first, else from its cached entry."""
    tags = normalize_terms(event_tags)
    if tags:
        return tags
    for scored in rec_set.find(target_id):
        tags = scored.candidate.all_tags()
        if tags:
            return tags
    return []


def apply_realtime_boost(
    rec_set: RecommendationSet,
    tags: Iterable[str],
    factor: float = 1.2,
) -> Tuple[RecommendationSet, int]:
    """
    Boost entries sharing any of tags by factor; returns (new set, number of boosted entries).

    Scores never decrease and stay within [0, 1].
    """
    wanted = set(normalize_terms(tags))
    if not wanted or factor <= 1.0:
        return rec_set, 0
    boosted = 0

    def _boost(scored: ScoredCandidate) -> ScoredCandidate:
        nonlocal boosted
        if not wanted.intersection(scored.candidate.all_tags()):
            return scored
        boosted += 1
        return scored.model_copy(update={"total_score": clip_unit(scored.total_score * factor)})

    per_type = {t: sort_scored([_boost(s) for s in items]) for t, items in rec_set.per_type.items()}
    mixed = sort_scored([_boost(s) for s in rec_set.mixed_list])
    return rec_set.model_copy(update={"per_type": per_type, "mixed_list": mixed}), boosted
