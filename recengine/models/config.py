"""
Engine configuration — profile, scoring, mixing, cache and real-time parameters.

RecommendationConfig defaults are defined here. The server may pass a dict
(e.g. from ENGINE_CONFIG_PATH); from_dict() merges nested sections with these defaults.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

ENTITY_TYPES = ("creator", "opportunity", "partner", "content")

FEATURE_NAMES = (
    "category_match",
    "geographic_match",
    "performance_score",
    "audience_match",
    "behavior_match",
    "novelty_score",
    "budget_match",
    "requirements_match",
    "urgency_score",
    "content_freshness",
    "content_quality",
)


def _default_type_weights() -> Dict[str, Dict[str, float]]:
    return {
        "creator": {
            "category_match": 0.30,
            "geographic_match": 0.15,
            "performance_score": 0.15,
            "audience_match": 0.15,
            "behavior_match": 0.15,
            "novelty_score": 0.10,
        },
        "opportunity": {
            "category_match": 0.30,
            "budget_match": 0.15,
            "requirements_match": 0.15,
            "urgency_score": 0.10,
            "geographic_match": 0.05,
            "performance_score": 0.05,
            "behavior_match": 0.10,
            "novelty_score": 0.10,
        },
        "partner": {
            "category_match": 0.35,
            "performance_score": 0.25,
            "budget_match": 0.10,
            "geographic_match": 0.10,
            "audience_match": 0.05,
            "behavior_match": 0.10,
            "novelty_score": 0.05,
        },
        "content": {
            "category_match": 0.35,
            "content_quality": 0.15,
            "content_freshness": 0.15,
            "performance_score": 0.10,
            "audience_match": 0.05,
            "behavior_match": 0.10,
            "novelty_score": 0.10,
        },
    }


class PerformanceMetric(BaseModel):
    """One term of the performance score: min(value / scale, cap)."""

    scale: float
    cap: float


def _default_performance_metrics() -> Dict[str, PerformanceMetric]:
    return {
        "engagement_rate": PerformanceMetric(scale=10.0, cap=0.30),
        "completion_rate": PerformanceMetric(scale=1.0, cap=0.30),
        "average_rating": PerformanceMetric(scale=5.0, cap=0.25),
        "total_volume": PerformanceMetric(scale=50.0, cap=0.15),
    }


class QualityMetric(BaseModel):
    """One term of the content quality score: points when the statistic exceeds threshold."""

    threshold: float
    points: float


def _default_quality_metrics() -> Dict[str, QualityMetric]:
    return {
        "view_count": QualityMetric(threshold=1000, points=0.3),
        "average_rating": QualityMetric(threshold=4.0, points=0.3),
        "comment_count": QualityMetric(threshold=10, points=0.2),
        "share_count": QualityMetric(threshold=50, points=0.2),
    }


class RecommendationConfig(BaseModel):
    """Configuration for the personalization engine."""

    # -------------------------------------------------------------------------
    # Profile Builder
    # -------------------------------------------------------------------------

    # Rolling behavior window. Events older than this are ignored (and pruned by stores).
    behavior_window_days: int = 30

    # Max number of most recent events used to build a profile.
    profile_event_limit: int = 500

    # Number of categories and interests kept on the profile.
    top_categories: int = 5
    top_interests: int = 10
    top_skills: int = 10

    # confidence = min(1, event_count / confidence_saturation_events)
    confidence_saturation_events: int = 50

    # Below this many events the default profile is used.
    min_profile_events: int = 3

    # Profiles older than this are rebuilt on the next request.
    profile_refresh_minutes: int = 30

    # Recently clicked ids kept for behavior matching.
    recent_click_limit: int = 10

    # Defaults for sparse data.
    default_categories: List[str] = Field(
        default_factory=lambda: ["Fashion & Beauty", "Lifestyle"]
    )
    default_interests: List[str] = Field(
        default_factory=lambda: ["beauty", "fashion", "lifestyle"]
    )
    default_budget: float = 15000.0

    # -------------------------------------------------------------------------
    # Candidate pool
    # -------------------------------------------------------------------------

    candidate_pool_sizes: Dict[str, int] = Field(
        default_factory=lambda: {
            "creator": 200,
            "opportunity": 100,
            "partner": 50,
            "content": 200,
        }
    )
    max_pool_size: int = 200
    catalog_page_size: int = 50

    # Event types that remove a target from future recommendations.
    irreversible_event_types: List[str] = Field(
        default_factory=lambda: ["purchase", "applied"]
    )

    # Event types that count as a click for behavior matching.
    click_event_types: List[str] = Field(
        default_factory=lambda: ["click", "like", "save"]
    )

    # Event types that mark a target as already seen.
    seen_event_types: List[str] = Field(
        default_factory=lambda: ["view", "click", "like", "save"]
    )

    # -------------------------------------------------------------------------
    # Scoring
    # total = clip(sum(weight_f * feature_f) * bonuses, 0, 1)
    # -------------------------------------------------------------------------

    type_weights: Dict[str, Dict[str, float]] = Field(default_factory=_default_type_weights)

    # Used instead of type_weights when the profile is a default (cold start) profile.
    cold_start_weights: Dict[str, float] = Field(
        default_factory=lambda: {"performance_score": 0.7, "novelty_score": 0.3}
    )

    # "directional" = share of candidate tags found in the profile; "jaccard" = |A∩B| / |A∪B|
    category_match_modes: Dict[str, str] = Field(
        default_factory=lambda: {
            "creator": "directional",
            "opportunity": "directional",
            "partner": "directional",
            "content": "jaccard",
        }
    )

    relevance_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "creator": 0.3,
            "opportunity": 0.4,
            "partner": 0.3,
            "content": 0.3,
        }
    )
    cold_start_threshold: float = 0.0

    # Max ranked items kept per type.
    per_type_limit: int = 20

    performance_metrics: Dict[str, PerformanceMetric] = Field(
        default_factory=_default_performance_metrics
    )

    # Geographic tiers.
    geo_same_city: float = 1.0
    geo_same_region: float = 0.8
    geo_same_country: float = 0.6
    geo_language_area: float = 0.4
    geo_none: float = 0.2
    geo_unknown: float = 0.5
    language_areas: List[List[str]] = Field(default_factory=lambda: [["CZ", "SK"]])

    # Audience: age term = max(0, 1 - |delta| / audience_age_span)
    audience_age_span: float = 20.0
    audience_unknown: float = 0.5

    # Behavior match for candidates resembling clicked items (direct click = 1.0).
    behavior_resemblance_weight: float = 0.8

    novelty_unseen: float = 1.0
    novelty_seen: float = 0.1

    # Budget: ratio = candidate budget / profile budget_estimate, scored by the
    # first (min_ratio, score) tier reached. Linear types score min(1, ratio).
    budget_tiers: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(1.5, 1.0), (1.2, 0.8), (1.0, 0.6), (0.8, 0.4)]
    )
    budget_floor: float = 0.1
    budget_unknown: float = 0.5
    budget_linear_types: List[str] = Field(default_factory=lambda: ["partner"])

    # Requirements: start at 1.0, multiply by the penalty for each unmet requirement.
    requirement_skills_penalty: float = 0.2
    requirement_country_penalty: float = 0.3

    # Urgency by days to deadline: first (max_days, score) tier reached.
    urgency_tiers: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(2, 1.0), (7, 0.8), (14, 0.6)]
    )
    urgency_default: float = 0.4

    # Content freshness by days since publication: first (max_days, score) tier reached.
    freshness_tiers: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(1, 1.0), (7, 0.8), (30, 0.6), (90, 0.4)]
    )
    freshness_floor: float = 0.2
    freshness_unknown: float = 0.5

    quality_metrics: Dict[str, QualityMetric] = Field(default_factory=_default_quality_metrics)

    # Pool eligibility: a candidate with a status must have one of these,
    # and a candidate with a deadline must not be past it.
    open_statuses: List[str] = Field(default_factory=lambda: ["active"])

    # Multiplicative bonuses.
    verified_bonus: float = 1.10
    premium_partner_bonus: float = 1.05
    response_rate_bonus: float = 1.10
    response_rate_threshold: float = 0.9

    # -------------------------------------------------------------------------
    # Mixing / exploration
    # -------------------------------------------------------------------------

    default_limit: int = 12
    max_limit: int = 50
    exploration_picks: int = 1
    exploration_score: float = 0.3
    # None = unseeded rng per request.
    exploration_seed: Optional[int] = None

    # -------------------------------------------------------------------------
    # Explanations
    # -------------------------------------------------------------------------

    notable_feature_threshold: float = 0.7
    max_explanation_reasons: int = 3

    # -------------------------------------------------------------------------
    # Cache / real-time / refresh
    # -------------------------------------------------------------------------

    cache_ttl_minutes: int = 60
    realtime_event_types: List[str] = Field(
        default_factory=lambda: ["click", "scroll_deep", "like", "save"]
    )
    realtime_boost_factor: float = 1.2
    refresh_interval_minutes: int = 30
    active_user_hours: int = 24
    refresh_concurrency: int = 2

    @model_validator(mode="after")
    def fill_default_weights(self):
        for entity_type, weights in _default_type_weights().items():
            self.type_weights.setdefault(entity_type, weights)
        return self

    @model_validator(mode="after")
    def weights_sum_to_one(self):
        for entity_type, weights in self.type_weights.items():
            unknown = set(weights) - set(FEATURE_NAMES)
            if unknown:
                raise ValueError(f"Unknown features for {entity_type}: {sorted(unknown)}")
            total = sum(weights.values())
            if abs(total - 1.0) > 0.01:
                raise ValueError(f"Scoring weights for {entity_type} must sum to 1.0, got {total}")
        total = sum(self.cold_start_weights.values())
        if abs(total - 1.0) > 0.01:
            raise ValueError(f"Cold start weights must sum to 1.0, got {total}")
        return self

    @model_validator(mode="after")
    def limits_are_sane(self):
        if not 0 <= self.exploration_picks <= 2:
            raise ValueError("exploration_picks must be between 0 and 2")
        if self.default_limit < 1 or self.default_limit > self.max_limit:
            raise ValueError("default_limit must be between 1 and max_limit")
        if self.realtime_boost_factor < 1.0:
            raise ValueError("realtime_boost_factor must be >= 1.0")
        return self

    def weights_for(self, entity_type: str, cold_start: bool = False) -> Dict[str, float]:
        """Weight vector for an entity type (cold start weights when cold_start)."""
        if cold_start:
            return self.cold_start_weights
        return self.type_weights.get(entity_type) or self.type_weights.get("creator", {})

    def threshold_for(self, entity_type: str, cold_start: bool = False) -> float:
        if cold_start:
            return self.cold_start_threshold
        return self.relevance_thresholds.get(entity_type, 0.0)

    def pool_size_for(self, entity_type: str) -> int:
        return min(self.candidate_pool_sizes.get(entity_type, self.max_pool_size), self.max_pool_size)

    @classmethod
    def from_dict(cls, config_dict: Dict) -> "RecommendationConfig":
        """Create config from dictionary (e.g., loaded from JSON). Nested sections are flattened."""
        flat = {}
        for section in ("profile", "candidates", "scoring", "mixing", "explanations", "cache", "realtime"):
            if section in config_dict:
                flat.update(config_dict[section])
        if "weights" in config_dict:
            flat["type_weights"] = config_dict["weights"]
        flat.update({k: v for k, v in config_dict.items() if k in cls.model_fields})
        allowed = set(cls.model_fields)
        filtered = {k: v for k, v in flat.items() if k in allowed}
        return cls.model_validate(filtered)


DEFAULT_CONFIG = RecommendationConfig()


def resolve_config(config: Optional["RecommendationConfig"]) -> "RecommendationConfig":
    """Return config or DEFAULT_CONFIG when none is provided."""
    return config if config is not None else DEFAULT_CONFIG
