"""
Candidate Pool

Final eligibility pass over candidates returned by providers before scoring:
drops duplicates, malformed types, irreversibly interacted targets and
closed or expired listings, and caps the pool per entity type.

The public entry point is get_candidate_pool.
"""

from datetime import datetime
from typing import List, Optional, Set

from ..models.candidate import Candidate
from ..models.config import DEFAULT_CONFIG, RecommendationConfig
from ..models.event import as_utc, utc_now


def _dedupe(candidates: List[Candidate]) -> List[Candidate]:
    seen: Set[str] = set()
    out = []
    for c in candidates:
        if c.id in seen:
            continue
        seen.add(c.id)
        out.append(c)
    return out


def _is_open(candidate: Candidate, now: datetime, config: RecommendationConfig) -> bool:
    """False for listings with a closed status or a deadline already passed."""
    if candidate.status is not None and candidate.status.strip().lower() not in config.open_statuses:
        return False
    if candidate.deadline is not None and candidate.deadline <= now:
        return False
    return True


def _filter_eligible_candidates(
    candidates: List[Candidate],
    entity_type: str,
    excluded_ids: Set[str],
    now: datetime,
    config: RecommendationConfig,
) -> List[Candidate]:
    """Open candidates of the right type that are not in the exclusion set."""
    return [
        c for c in candidates
        if c.entity_type == entity_type and c.id not in excluded_ids and _is_open(c, now, config)
    ]


def get_candidate_pool(
    entity_type: str,
    candidates: List[Candidate],
    excluded_ids: Set[str],
    config: RecommendationConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
) -> List[Candidate]:
    """
    Eligible candidates for one entity type, in provider order, capped at the type's pool size.
    """
    now = as_utc(now) if now is not None else utc_now()
    eligible = _filter_eligible_candidates(_dedupe(candidates), entity_type, excluded_ids, now, config)
    return eligible[:config.pool_size_for(entity_type)]
