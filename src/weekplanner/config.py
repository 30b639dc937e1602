"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost/weekplanner"
    repository_backend: str = "sql"  # "sql" or "memory"

    # Recipe catalog (nutrition lookups)
    recipe_api_base_url: str = "http://localhost:8080/api"
    recipe_api_timeout: float = 10.0  # request timeout in seconds
    recipe_api_max_retries: int = 3

    # Calendar
    # "Now" is always evaluated in this zone so every user shares one current week
    reference_timezone: str = "Europe/Berlin"
    navigation_weeks_back: int = 2
    navigation_weeks_ahead: int = 2

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = ""  # "json" forces structured logs
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def uses_memory_backend(self) -> bool:
        """Check if stores should be kept in process memory."""
        return self.repository_backend.lower() == "memory"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
