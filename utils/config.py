"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Resolution order for every field: environment variable, then .env file, then
the default declared here. SEARCH_GEO_DIR falls back to the platform temporary
directory.

Usage:
    from utils.config import settings

    archive_dir = settings.SEARCH_GEO_DIR
    redis_url = settings.REDIS_URL
"""

import tempfile
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Archive Storage
    SEARCH_GEO_DIR: str = Field(default_factory=tempfile.gettempdir)

    # Search API Configuration
    SEARCH_API_BASE: str = Field(default="https://api.twitter.com/1.1/search/tweets.json")
    SEARCH_API_TOKEN: str = Field(default="")
    SEARCH_RESULT_TYPE: str = Field(default="recent")
    SEARCH_PAGE_SIZE: int = Field(default=100, ge=1, le=100)
    API_TIMEOUT: int = Field(default=30)
    API_MAX_RETRIES: int = Field(default=3)

    # Scheduler Configuration
    POLL_SCHEDULE_CRON: str = Field(default="*/15 * * * *")
    SEAL_SCHEDULE_CRON: str = Field(default="5 0 * * *")
    COLLECTOR_WORKERS: int = Field(default=4, ge=1)

    # Database Configuration
    SQLITE_PATH: str = Field(default="/app/data/db/search_geo.db")

    # Redis Configuration (empty URL disables event publishing)
    REDIS_URL: str = Field(default="")
    REDIS_CHANNEL_SEALED: str = Field(default="files.archive_sealed")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # Application Metadata
    ENVIRONMENT: str = Field(default="production")
    APP_NAME: str = Field(default="search-geo-archiver")
    APP_VERSION: str = Field(default="0.1.0")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
