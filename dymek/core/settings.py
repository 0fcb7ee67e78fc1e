"""
Core settings and environment variables for Dymek.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional

from dymek.services.geohash_index import GeoIndexConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Dymek"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - comma separated list of frontend origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # In-memory record store for local development without Firebase credentials
    USE_MOCK_DB: bool = False

    # Collections
    MARKERS_COLLECTION: str = "markers"
    REPORTS_COLLECTION: str = "reports"
    USERS_COLLECTION: str = "users"

    # Geo index
    # 5 characters is roughly a 5km x 5km cell (neighborhood scale)
    GEOHASH_PRECISION: int = 5
    RADIUS_FALLBACK_NEIGHBORS: bool = True
    MAX_COVERING_CELLS: int = 4096

    # Notifications
    # - PUSH_PROVIDER: "fcm" (Firebase Cloud Messaging) or "simulated" (log only)
    NOTIFICATIONS_ENABLED: bool = True
    PUSH_PROVIDER: str = "fcm"
    NOTIFICATION_TITLE: str = "Report status changed"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    def geo_index_config(self) -> GeoIndexConfig:
        return GeoIndexConfig(
            hash_precision=self.GEOHASH_PRECISION,
            radius_fallback_neighbors=self.RADIUS_FALLBACK_NEIGHBORS,
            max_covering_cells=self.MAX_COVERING_CELLS,
        )

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
