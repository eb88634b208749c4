"""Configuration management utilities for the livestock dashboard.

Provides reusable pieces for:
- Reading application settings from environment variables
- Organizing constants and known values (collection names, sentinels)
"""

from pathlib import Path
from typing import Dict, Optional, Any
import os


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Public settings as a dictionary (logged at start-up)."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}


class KnownValues:
    """Container for collection names and fixed vocabulary."""

    # Store collection names, as created by the field data-entry apps.
    FARMERS_COLLECTION = "Livestock Farmers"
    TRAINING_COLLECTION = "Capacity Building"
    INFRASTRUCTURE_COLLECTION = "Infrastructure Data"
    BOREHOLE_COLLECTION = "BoreholeStorage"
    FODDER_COLLECTION = "Fodder Farmers"
    LIVESTOCK_OFFTAKE_COLLECTION = "Livestock Offtake Data"
    FODDER_OFFTAKE_COLLECTION = "Fodder Offtake Data"
    ANIMAL_HEALTH_COLLECTION = "AnimalHealthActivities"

    COLLECTIONS = (
        FARMERS_COLLECTION,
        TRAINING_COLLECTION,
        INFRASTRUCTURE_COLLECTION,
        BOREHOLE_COLLECTION,
        FODDER_COLLECTION,
        LIVESTOCK_OFFTAKE_COLLECTION,
        FODDER_OFFTAKE_COLLECTION,
        ANIMAL_HEALTH_COLLECTION,
    )

    # Categorical filter value meaning "no constraint".
    ALL = "all"

    DEFAULT_PAGE_LIMIT = 15

    # Maximum writes per store batch.
    BATCH_SIZE = 500


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the application works out of the
    box (against an empty in-memory store) without any configuration.

    Environment variables:
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_DATA_SOURCE: "memory" or "firestore" (default: memory)
        APP_SEED_PATH: JSON file seeding the memory source (default: unset)
        APP_FIRESTORE_PROJECT: GCP project for the Firestore client
        APP_SNAPSHOT_TTL: Seconds before a snapshot is re-fetched (default: 300)
        APP_PAGE_LIMIT: Records per page (default: 15)
        APP_SUMMARY_CACHE_TTL: Seconds dashboard summaries stay cached (default: 300)
    """

    def __init__(self) -> None:
        super().__init__()
        self.api_port = _env_int("APP_PORT", 8000)
        self.api_host = os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.data_source = os.getenv("APP_DATA_SOURCE", "memory").lower()
        seed = os.getenv("APP_SEED_PATH", "")
        self.seed_path: Optional[Path] = Path(seed) if seed else None
        self.firestore_project: Optional[str] = os.getenv("APP_FIRESTORE_PROJECT") or None
        self.snapshot_ttl = _env_int("APP_SNAPSHOT_TTL", 300)
        self.page_limit = _env_int("APP_PAGE_LIMIT", KnownValues.DEFAULT_PAGE_LIMIT)
        self.summary_cache_ttl = _env_int("APP_SUMMARY_CACHE_TTL", 300)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
