"""Register all route modules on the FastAPI app."""

from fastapi import FastAPI

from .events import router as events_router
from .recommendations import router as recommendations_router
from .root import router as root_router


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the app."""
    app.include_router(root_router)
    app.include_router(events_router, prefix="/api/events", tags=["events"])
    app.include_router(recommendations_router, prefix="/api/recommendations", tags=["recommendations"])
