"""
Scoring models — ScoredCandidate and RecommendationSet.

Contains:
- ScoredCandidate: a candidate with its feature scores, total score and explanation
- RecommendationSet: per-type ranked lists plus the diversified mixed list
- to_record / from_record: the flat versioned form stored in the cache
"""

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from .candidate import Candidate
from .event import utc_now

ENGINE_VERSION = "1.0"
RECORD_SCHEMA_VERSION = 1


class ScoredCandidate(BaseModel):
    """A candidate with all its scoring components. total_score is always in [0, 1]."""

    candidate: Candidate
    feature_scores: Dict[str, float] = Field(default_factory=dict)
    total_score: float = Field(ge=0.0, le=1.0)
    explanation: str = ""
    is_surprise: bool = False

    @property
    def id(self) -> str:
        return self.candidate.id

    @property
    def entity_type(self) -> str:
        return self.candidate.entity_type


def sort_scored(items: List[ScoredCandidate]) -> List[ScoredCandidate]:
    """Descending by total_score with a deterministic id tie-break."""
    return sorted(items, key=lambda s: (-s.total_score, s.candidate.id))


class RecommendationSet(BaseModel):
    """Result of one recommendation computation for a user."""

    user_id: str
    per_type: Dict[str, List[ScoredCandidate]] = Field(default_factory=dict)
    mixed_list: List[ScoredCandidate] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)
    version: str = ENGINE_VERSION
    cold_start: bool = False
    profile_confidence: float = 0.0
    degraded: bool = False

    def to_record(self) -> Dict[str, Any]:
        """Flat, JSON-safe, versioned record."""
        record = self.model_dump(mode="json")
        record["schema_version"] = RECORD_SCHEMA_VERSION
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "RecommendationSet":
        """Read a stored record; optional fields missing from older records take defaults."""
        data = {k: v for k, v in record.items() if k in cls.model_fields}
        return cls.model_validate(data)

    def find(self, candidate_id: str) -> List[ScoredCandidate]:
        """All entries (per-type and mixed) for a candidate id."""
        out = [s for items in self.per_type.values() for s in items if s.candidate.id == candidate_id]
        out.extend(s for s in self.mixed_list if s.candidate.id == candidate_id)
        return out
