"""Bodega WMS - Application configuration via pydantic-settings."""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    COMPANY_NAME: str = "Bodega"

    # Database (embedded SQLite by default; postgresql+asyncpg:// for a server install)
    DATABASE_URL: str = "sqlite+aiosqlite:///./warehouse.db"
    RUN_SCHEMA_AUDIT: bool = True

    # Redis
    REDIS_URL: str = "redis://localhost:6379/1"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"

    # JWT
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_TTL_MINUTES: int = 60 * 12

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:9002"]

    # External collaborators
    ERP_BASE_URL: str = "http://localhost:8800/erp"
    ERP_API_KEY: str | None = None
    CATALOG_BASE_URL: str = "http://localhost:8800/catalog"
    EMAIL_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    EMAIL_API_KEY: str | None = None
    EMAIL_FROM: str = "bodega@localhost"
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # Workflow sessions (Redis snapshots per operator)
    WORKFLOW_SESSION_TTL_SECONDS: int = 12 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
