"""Backing logic: stores, catalog providers, cache, event capture, recommendation service."""

from .account_store import AccountStore, FirestoreAccountStore, InMemoryAccountStore, JsonAccountStore
from .behavior_store import BehaviorStore, FirestoreBehaviorStore, InMemoryBehaviorStore
from .cache import InMemoryRecommendationCache, RecommendationCache, make_cache_key, user_prefix
from .catalog import (
    Catalog,
    CandidateProvider,
    CatalogCandidateProvider,
    FilterSpec,
    FirestoreCatalog,
    InMemoryCatalog,
    JsonCatalog,
)
from .event_capture import EventCapture, validate_event
from .profile_service import ProfileService
from .realtime_updater import RealTimeUpdater
from .recommender import RecommendationService, SingleFlight

__all__ = [
    "AccountStore",
    "BehaviorStore",
    "CandidateProvider",
    "Catalog",
    "CatalogCandidateProvider",
    "EventCapture",
    "FilterSpec",
    "FirestoreAccountStore",
    "FirestoreBehaviorStore",
    "FirestoreCatalog",
    "InMemoryAccountStore",
    "InMemoryBehaviorStore",
    "InMemoryCatalog",
    "InMemoryRecommendationCache",
    "JsonAccountStore",
    "JsonCatalog",
    "ProfileService",
    "RealTimeUpdater",
    "RecommendationCache",
    "RecommendationService",
    "SingleFlight",
    "make_cache_key",
    "user_prefix",
    "validate_event",
]
