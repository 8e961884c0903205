"""Data models for the personalization engine."""

from .candidate import Candidate, Requirements, ensure_candidates
from .config import (
    DEFAULT_CONFIG,
    ENTITY_TYPES,
    FEATURE_NAMES,
    RecommendationConfig,
    resolve_config,
)
from .errors import (
    CacheUnavailable,
    InvalidEventError,
    ProfileInsufficientDataError,
    RecommendationError,
    RefreshFailedError,
    TransientCatalogError,
)
from .event import KNOWN_EVENT_TYPES, BehaviorEvent, ensure_events, utc_now
from .profile import AccountAttributes, Demographics, Location, UserProfile
from .scoring import ENGINE_VERSION, RecommendationSet, ScoredCandidate, sort_scored

__all__ = [
    "AccountAttributes",
    "BehaviorEvent",
    "CacheUnavailable",
    "Candidate",
    "DEFAULT_CONFIG",
    "Demographics",
    "ENGINE_VERSION",
    "ENTITY_TYPES",
    "FEATURE_NAMES",
    "InvalidEventError",
    "KNOWN_EVENT_TYPES",
    "Location",
    "ProfileInsufficientDataError",
    "RecommendationConfig",
    "RecommendationError",
    "RecommendationSet",
    "RefreshFailedError",
    "Requirements",
    "ScoredCandidate",
    "TransientCatalogError",
    "UserProfile",
    "ensure_candidates",
    "ensure_events",
    "resolve_config",
    "sort_scored",
    "utc_now",
]
