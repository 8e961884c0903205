"""
Diversifier / Mixer — merges per-type ranked lists into one capped mixed list.

Greedy capped merge: walk all candidates by total_score (desc); admit one
unless its type already holds per_type_cap = ceil(limit / num_types) items.
Items skipped for the cap are only admitted once every other type is
exhausted. Optional exploration then swaps in surprise picks from
categories the user has not shown interest in.
"""

import logging
import math
import random
from typing import Dict, List, Optional, Set, Tuple

from ..models.profile import UserProfile
from ..models.scoring import ScoredCandidate, sort_scored
from .explanation import surprise_explanation

logger = logging.getLogger(__name__)


def per_type_cap(limit: int, num_types: int) -> int:
    return math.ceil(limit / max(1, num_types))


def _key(scored: ScoredCandidate) -> Tuple[str, str]:
    return (scored.candidate.entity_type, scored.candidate.id)


def _type_counts(items: List[ScoredCandidate]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for s in items:
        counts[s.entity_type] = counts.get(s.entity_type, 0) + 1
    return counts


def mix_ranked_lists(
    per_type: Dict[str, List[ScoredCandidate]],
    limit: int,
    types: Optional[List[str]] = None,
) -> List[ScoredCandidate]:
    """
    Merge per-type ranked lists into at most limit items.

    Args:
        per_type: Ranked lists keyed by entity type. Not mutated.
        limit: Max items in the mixed list.
        types: Requested entity types (defaults to the keys of per_type). The cap
            is computed over the requested types, even empty ones.

    Returns:
        Mixed list ordered by admission (score descending within each pass).
    """
    types = list(types) if types is not None else list(per_type)
    if limit <= 0 or not types:
        return []
    cap = per_type_cap(limit, len(types))
    pool = sort_scored([s for t in types for s in per_type.get(t, [])])

    selected: List[ScoredCandidate] = []
    seen: Set[Tuple[str, str]] = set()
    counts: Dict[str, int] = {}
    skipped: List[ScoredCandidate] = []
    for scored in pool:
        if len(selected) >= limit:
            break
        key = _key(scored)
        if key in seen:
            continue
        if counts.get(scored.entity_type, 0) >= cap:
            skipped.append(scored)
            continue
        selected.append(scored)
        seen.add(key)
        counts[scored.entity_type] = counts.get(scored.entity_type, 0) + 1

    # Every uncapped type is exhausted here; fill the rest from capped types
    for scored in skipped:
        if len(selected) >= limit:
            break
        key = _key(scored)
        if key in seen:
            continue
        selected.append(scored)
        seen.add(key)
    return selected


def inject_exploration(
    mixed: List[ScoredCandidate],
    per_type: Dict[str, List[ScoredCandidate]],
    profile: UserProfile,
    limit: int,
    rng: random.Random,
    picks: int = 1,
    score: float = 0.3,
    types: Optional[List[str]] = None,
) -> List[ScoredCandidate]:
    """
    Add up to picks surprise candidates from categories absent from both the
    profile and the mixed list.

    When the list is full, the lowest-ranked regular item makes room. The
    per-type cap still holds. Surprise items carry is_surprise=True and the
    fixed exploration score. Randomness comes only from rng.
    """
    if picks <= 0 or limit <= 0:
        return list(mixed)
    types = list(types) if types is not None else list(per_type)
    cap = per_type_cap(limit, len(types))

    represented = set(profile.match_terms())
    for s in mixed:
        represented.update(s.candidate.all_tags())
    taken = {_key(s) for s in mixed}

    by_category: Dict[str, List[ScoredCandidate]] = {}
    for scored in sort_scored([s for t in types for s in per_type.get(t, [])]):
        category = scored.candidate.primary_category()
        if not category or _key(scored) in taken:
            continue
        if category.strip().lower() in represented:
            continue
        by_category.setdefault(category.strip().lower(), []).append(scored)
    if not by_category:
        return list(mixed)

    categories = sorted(by_category)
    rng.shuffle(categories)

    result = list(mixed)
    added = 0
    for category in categories:
        if added >= picks:
            break
        dropped: Optional[ScoredCandidate] = None
        dropped_at = -1
        if len(result) >= limit:
            regular = [i for i, s in enumerate(result) if not s.is_surprise]
            if not regular:
                break
            dropped_at = regular[-1]
            dropped = result.pop(dropped_at)
        counts = _type_counts(result)
        pick = next((s for s in by_category[category] if counts.get(s.entity_type, 0) < cap), None)
        if pick is None:
            if dropped is not None:
                result.insert(dropped_at, dropped)
            continue
        surprise = pick.model_copy(update={"is_surprise": True, "total_score": score})
        surprise = surprise.model_copy(update={"explanation": surprise_explanation(surprise)})
        result.append(surprise)
        added += 1
        logger.debug("[diversity] SURPRISE_PICK user=%s id=%s category=%s", profile.user_id, pick.id, category)
    return result
