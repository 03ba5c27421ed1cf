"""
Configuration settings for the Taskboard backend.
All deployment-specific values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Taskboard"
    debug: bool = Field(default=False)
    environment: str = Field(default="production")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database (PostgreSQL in production, SQLite in tests)
    database_url: str = Field(default="")
    database_echo: bool = Field(default=False)
    db_pool_size: int = Field(default=10)
    db_max_overflow: int = Field(default=20)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    # Redis (shared rate-limit counters). Empty means in-process counters.
    redis_url: str = Field(default="")

    # Sessions
    session_ttl_days: int = Field(default=30)

    # Dashboard
    recent_tasks_limit: int = Field(default=10)
    recent_activity_limit: int = Field(default=20)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
