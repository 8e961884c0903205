"""Pydantic models for API requests and responses."""

from .events import EventAccepted, EventRequest
from .recommendations import (
    InvalidateResponse,
    RecommendationCard,
    RecommendationRequest,
    RecommendationSetResponse,
)

__all__ = [
    "EventAccepted",
    "EventRequest",
    "InvalidateResponse",
    "RecommendationCard",
    "RecommendationRequest",
    "RecommendationSetResponse",
]
