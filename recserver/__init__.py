"""
Personalization Engine service: stores, cache, event capture, scheduler and HTTP API.

Use: uvicorn recserver.app:app
"""

from .app import create_app
from .config import ServerConfig, get_config
from .state import AppState, get_state

__all__ = ["AppState", "ServerConfig", "create_app", "get_config", "get_state"]
