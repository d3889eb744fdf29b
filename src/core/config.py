"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./database.db"
    database_echo: bool = False
    # Seconds a SQLite writer waits for another writer before giving up
    sqlite_busy_timeout: float = 5.0
    # Schema bootstrap - run create_all on startup (disable when using alembic)
    create_schema_on_startup: bool = True

    # CORS - comma-separated string in env, list in code
    cors_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Redis (rate limiting); the app runs without it
    redis_url: str = "redis://localhost:6379"
    redis_enabled: bool = True

    log_level: str = "INFO"

    # Outbound page fetches (title lookup)
    fetch_timeout: float = 5.0

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated origins, dropping empty entries."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
