"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the MongoDB connection, collection names, CORS origins, the runtime
environment (which controls how much error detail reaches clients), and
logging options.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from map_server.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.mongodb_url)

    Environment variables can override defaults:
        >>> MONGODB_URL=mongodb://db.internal:27017
        >>> DATABASE_NAME=mapdb
        >>> ENVIRONMENT=development
"""

import functools
from typing import Literal

import pydantic_settings

Environment = Literal["development", "production"]


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    Attributes:
        mongodb_url: MongoDB connection string.
        database_name: Database holding the map collections.
        polygons_collection: Collection name for polygons.
        objects_collection: Collection name for map objects.
        server_selection_timeout_ms: How long the driver waits for a
            reachable server before failing an operation.
        allow_origins: List of allowed CORS origins.
        environment: "development" exposes raw error detail to clients,
            "production" withholds it.
        log_level: Root log level name.
        log_format: Format string for the console handler.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     mongodb_url="mongodb://localhost:27017",
            ...     database_name="test_map",
            ...     environment="development",
            ... )
            >>> settings.is_development
            True
    """

    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "MapServerDb"
    polygons_collection: str = "polygons"
    objects_collection: str = "objects"
    server_selection_timeout_ms: int = 5000
    allow_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    environment: Environment = "production"
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def is_development(self) -> bool:
        """Whether raw diagnostic detail may be shown to clients."""
        return self.environment == "development"


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application.

    Returns:
        Settings instance with all configuration values populated.
    """
    return Settings()
