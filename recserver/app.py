"""
Personalization Engine API — FastAPI app factory.

Use: uvicorn recserver.app:app
Or:  from recserver import create_app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recengine.models import ENGINE_VERSION

from .config import get_config
from .routes import register_routes
from .state import AppState, get_state, set_state

logger = logging.getLogger(__name__)


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """Build FastAPI app with CORS, routes, and scheduler lifecycle."""
    logging.basicConfig(
        level=getattr(logging, get_config().log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if state is not None:
        set_state(state)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        current = get_state()
        if current.config.scheduler_enabled:
            current.scheduler.start()
        logger.info("[startup] Personalization Engine API started (data_source=%s)", current.config.data_source)
        try:
            yield
        finally:
            await current.scheduler.stop()
            await current.event_capture.drain()
            logger.info("[shutdown] Personalization Engine API stopped")

    app = FastAPI(
        title="Personalization Engine API",
        description="Multi-signal recommendations for creators, opportunities, partners and content",
        version=ENGINE_VERSION,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_routes(app)
    return app


app = create_app()
