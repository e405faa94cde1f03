"""
Configuration management for the Channel Guide backend.
Uses pydantic-settings for environment variable loading.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "Channel Guide"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS Configuration
    # Default allows all origins for development; set CHANNEL_GUIDE_CORS_ORIGINS for production
    cors_origins: list[str] = ["*"]

    # Rate Limiting
    rate_limit_per_minute: int = 100

    # Ingestion
    playlist_timeout_seconds: float = 15.0
    provider_timeout_seconds: float = 20.0  # Provider APIs are slower than plain playlists
    user_agent: str = "IPTVPlayer/1.0"
    restore_on_startup: bool = True

    # Persistent store
    database_path: str = "data/channel_guide.db"

    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="CHANNEL_GUIDE_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
