"""Application state: stores, catalog providers, cache and the recommendation service."""

import logging
from typing import Any, Dict, Optional

from recengine.models import ENTITY_TYPES, RecommendationConfig

from .config import ServerConfig, get_config
from .scheduler import RefreshScheduler
from .services import (
    AccountStore,
    BehaviorStore,
    Catalog,
    CatalogCandidateProvider,
    EventCapture,
    FirestoreAccountStore,
    FirestoreBehaviorStore,
    FirestoreCatalog,
    InMemoryAccountStore,
    InMemoryBehaviorStore,
    InMemoryCatalog,
    InMemoryRecommendationCache,
    JsonAccountStore,
    JsonCatalog,
    ProfileService,
    RealTimeUpdater,
    RecommendationCache,
    RecommendationService,
)

logger = logging.getLogger(__name__)


class AppState:
    """Global application state. Components may be injected (tests, embedding apps)."""

    def __init__(
        self,
        config: ServerConfig,
        engine_config: Optional[RecommendationConfig] = None,
        catalog: Optional[Catalog] = None,
        behavior_store: Optional[BehaviorStore] = None,
        account_store: Optional[AccountStore] = None,
        cache: Optional[RecommendationCache] = None,
    ):
        self.config = config
        valid, errors = config.validate()
        if not valid:
            for error in errors:
                logger.warning("[startup] CONFIG_INVALID %s", error)
        self.engine_config = engine_config or config.load_engine_config()

        self.catalog = catalog or self._create_catalog(config)
        self.behavior_store = behavior_store or self._create_behavior_store(config)
        self.account_store = account_store or self._create_account_store(config)
        self.cache = cache or InMemoryRecommendationCache()
        logger.info(
            "[startup] catalog=%s behavior_store=%s account_store=%s",
            type(self.catalog).__name__, type(self.behavior_store).__name__, type(self.account_store).__name__,
        )

        self.providers: Dict[str, Any] = {
            t: CatalogCandidateProvider(t, self.catalog, page_size=self.engine_config.catalog_page_size)
            for t in ENTITY_TYPES
        }
        self.realtime = RealTimeUpdater(self.cache, self.engine_config)
        self.event_capture = EventCapture(self.behavior_store, self.realtime)
        self.profiles = ProfileService(self.behavior_store, self.account_store, self.engine_config)
        self.service = RecommendationService(
            self.profiles,
            self.providers,
            self.cache,
            self.event_capture,
            self.engine_config,
        )
        self.scheduler = RefreshScheduler(self.service, self.behavior_store, self.engine_config)

    def _create_catalog(self, config: ServerConfig) -> Catalog:
        if config.data_source == "firebase" and config.firebase_credentials_path:
            return FirestoreCatalog(config.firebase_project_id, config.firebase_credentials_path)
        if config.data_source == "json" and config.catalog_json_path:
            return JsonCatalog(config.catalog_json_path)
        return InMemoryCatalog()

    def _create_behavior_store(self, config: ServerConfig) -> BehaviorStore:
        if config.data_source == "firebase" and config.firebase_credentials_path:
            return FirestoreBehaviorStore(config.firebase_project_id, config.firebase_credentials_path)
        return InMemoryBehaviorStore(retention_days=self.engine_config.behavior_window_days)

    def _create_account_store(self, config: ServerConfig) -> AccountStore:
        if config.data_source == "firebase" and config.firebase_credentials_path:
            return FirestoreAccountStore(config.firebase_project_id, config.firebase_credentials_path)
        if config.accounts_json_path:
            return JsonAccountStore(config.accounts_json_path)
        return InMemoryAccountStore()


_state: Optional[AppState] = None


def get_state() -> AppState:
    global _state
    if _state is None:
        _state = AppState(get_config())
    return _state


def set_state(state: Optional[AppState]) -> None:
    """Replace the global state (None resets it)."""
    global _state
    _state = state
