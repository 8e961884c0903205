"""Error types raised across the engine and the service layer."""


class RecommendationError(Exception):
    """Base class for engine errors."""


class TransientCatalogError(RecommendationError):
    """A catalog or candidate provider failed; the entity type is skipped for this request."""

    def __init__(self, entity_type: str, message: str = ""):
        self.entity_type = entity_type
        super().__init__(f"catalog failure for {entity_type}: {message}" if message else f"catalog failure for {entity_type}")


class ProfileInsufficientDataError(RecommendationError):
    """Too few behavior events to build a profile; callers fall back to the default profile."""

    def __init__(self, user_id: str, event_count: int, required: int):
        self.user_id = user_id
        self.event_count = event_count
        self.required = required
        super().__init__(f"user {user_id} has {event_count} events, {required} required")


class CacheUnavailable(RecommendationError):
    """The recommendation cache backend cannot be reached."""


class InvalidEventError(RecommendationError):
    """A behavior event is missing required fields or is malformed."""


class RefreshFailedError(RecommendationError):
    """A scheduled refresh produced degraded sets for some of the user's request shapes."""

    def __init__(self, user_id: str, failed: int, total: int):
        self.user_id = user_id
        self.failed = failed
        self.total = total
        super().__init__(f"refresh of {user_id} degraded {failed} of {total} sets")
