"""Recommendation request/response models."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from recengine.models import ENTITY_TYPES


class RecommendationRequest(BaseModel):
    """Shape of a recommendation request; also the unit the scheduler refreshes."""

    types: List[str] = Field(default_factory=lambda: list(ENTITY_TYPES))
    limit: int = Field(default=12, ge=1, le=50)
    exclude_interacted: bool = True
    force_refresh: bool = False

    @field_validator("types")
    @classmethod
    def _known_types(cls, value: List[str]) -> List[str]:
        out: List[str] = []
        for t in value or []:
            t = t.strip().lower()
            if t not in ENTITY_TYPES:
                raise ValueError(f"unknown entity type: {t}")
            if t not in out:
                out.append(t)
        return out or list(ENTITY_TYPES)


class RecommendationCard(BaseModel):
    id: str
    entity_type: str
    title: Optional[str] = ""
    category: Optional[str] = None
    tags: List[str] = []
    score: float
    explanation: str
    is_surprise: bool = False
    feature_scores: Dict[str, float] = {}


class RecommendationSetResponse(BaseModel):
    user_id: str
    generated_at: datetime
    version: str
    cold_start: bool
    profile_confidence: float
    degraded: bool = False
    items: List[RecommendationCard]
    per_type: Dict[str, List[RecommendationCard]]


class InvalidateResponse(BaseModel):
    status: str = "ok"
    invalidated: int
