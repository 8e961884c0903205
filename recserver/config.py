"""
Server Configuration

Loads configuration from environment variables and provides defaults.
Reads a .env file from the project root using python-dotenv.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from recengine.models import DEFAULT_CONFIG, RecommendationConfig

BASE_DIR = Path(__file__).resolve().parent.parent

_root_env = BASE_DIR / ".env"
if _root_env.exists():
    load_dotenv(_root_env)

DATA_SOURCES = ("memory", "json", "firebase")


def _bool_env(key: str, default: bool) -> bool:
    v = os.getenv(key)
    if v is None or not v.strip():
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _path_env(key: str, default: Optional[Path] = None) -> Optional[Path]:
    v = os.getenv(key)
    if not v:
        return default
    p = Path(v)
    return p if p.is_absolute() else (BASE_DIR / p).resolve()


@dataclass
class ServerConfig:
    """Server configuration."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Data source: "memory" | "json" | "firebase"
    data_source: str = "memory"
    # When data_source=json: catalog (entity type -> records) and accounts files
    catalog_json_path: Optional[Path] = None
    accounts_json_path: Optional[Path] = None
    # When data_source=firebase: path to service account JSON and optional project id
    firebase_credentials_path: Optional[Path] = None
    firebase_project_id: Optional[str] = None

    # Optional JSON file with engine overrides (RecommendationConfig.from_dict)
    engine_config_path: Optional[Path] = None

    # Background refresh of active users
    scheduler_enabled: bool = True

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        data_source = os.getenv("DATA_SOURCE", "").strip().lower() or "memory"
        if data_source not in DATA_SOURCES:
            data_source = "memory"
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            data_source=data_source,
            catalog_json_path=_path_env("CATALOG_JSON_PATH"),
            accounts_json_path=_path_env("ACCOUNTS_JSON_PATH"),
            firebase_credentials_path=_path_env("FIREBASE_CREDENTIALS_PATH") or _path_env("GOOGLE_APPLICATION_CREDENTIALS"),
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
            engine_config_path=_path_env("ENGINE_CONFIG_PATH"),
            scheduler_enabled=_bool_env("SCHEDULER_ENABLED", True),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate the configuration.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []
        if self.data_source == "json" and not self.catalog_json_path:
            errors.append("DATA_SOURCE=json requires CATALOG_JSON_PATH")
        if self.catalog_json_path and not self.catalog_json_path.exists():
            errors.append(f"Catalog JSON not found: {self.catalog_json_path}")
        if self.data_source == "firebase" and not self.firebase_credentials_path:
            errors.append("DATA_SOURCE=firebase requires FIREBASE_CREDENTIALS_PATH")
        if self.engine_config_path and not self.engine_config_path.exists():
            errors.append(f"Engine config not found: {self.engine_config_path}")
        return len(errors) == 0, errors

    def load_engine_config(self) -> RecommendationConfig:
        """Engine config from engine_config_path, or the defaults."""
        if not self.engine_config_path or not self.engine_config_path.exists():
            return DEFAULT_CONFIG
        with open(self.engine_config_path) as f:
            return RecommendationConfig.from_dict(json.load(f))


# Global config instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def reload_config() -> ServerConfig:
    """Reload configuration from environment."""
    global _config
    _config = None
    return get_config()
