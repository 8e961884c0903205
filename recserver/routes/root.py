"""Root and health endpoints."""

from fastapi import APIRouter

from recengine.models import ENGINE_VERSION, ENTITY_TYPES

from ..state import get_state

router = APIRouter()


@router.get("/")
def root():
    state = get_state()
    return {
        "name": "Personalization Engine API",
        "version": ENGINE_VERSION,
        "data_source": state.config.data_source,
        "components": {
            "catalog": type(state.catalog).__name__,
            "behavior_store": type(state.behavior_store).__name__,
            "account_store": type(state.account_store).__name__,
            "cache": type(state.cache).__name__,
        },
        "entity_types": list(ENTITY_TYPES),
        "endpoints": {
            "events": ["/api/events"],
            "recommendations": [
                "/api/recommendations/{user_id}",
                "/api/recommendations/{user_id}/invalidate",
            ],
        },
    }


@router.get("/api/health")
def health():
    state = get_state()
    return {
        "status": "healthy",
        "scheduler_running": state.scheduler.running,
        "pending_events": state.event_capture.pending,
    }
