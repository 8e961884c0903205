"""
Similarity utilities: set overlap measures used by feature scoring.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np


def normalize_terms(terms: Iterable[str]) -> List[str]:
    """Lower-case, strip and de-duplicate terms, keeping first-seen order."""
    out: List[str] = []
    for term in terms or []:
        if not isinstance(term, str):
            continue
        t = term.strip().lower()
        if t and t not in out:
            out.append(t)
    return out


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B|. 0.0 when either side is empty."""
    sa, sb = set(normalize_terms(a)), set(normalize_terms(b))
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb)


def share_of(a: Iterable[str], b: Iterable[str]) -> float:
    """Share of A's terms that also appear in B."""
    sa, sb = set(normalize_terms(a)), set(normalize_terms(b))
    if not sa:
        return 0.0
    return len(sa & sb) / len(sa)


def gender_split_overlap(
    a: Optional[Dict[str, float]],
    b: Optional[Dict[str, float]],
) -> Optional[float]:
    """Sum of per-gender minimums of two percent splits, scaled to [0, 1]. None if either is missing."""
    if not a or not b:
        return None
    keys = sorted(set(a) | set(b))
    va = np.array([float(a.get(k, 0.0)) for k in keys])
    vb = np.array([float(b.get(k, 0.0)) for k in keys])
    return float(np.clip(np.minimum(va, vb).sum() / 100.0, 0.0, 1.0))
