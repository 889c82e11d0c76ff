"""
Configuration settings for the AEO Tracker.

Uses Pydantic Settings to load environment variables for database connections,
logging, check execution and dashboard defaults.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("aeo_tracker", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE", ge=1)
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE", ge=1)

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    storage_backend: str = Field("postgres", alias="STORAGE_BACKEND")
    default_owner_id: str = Field("local", alias="DEFAULT_OWNER_ID")

    # Check execution
    default_engines: List[str] = Field(
        default_factory=lambda: ["chatgpt", "gemini"], alias="DEFAULT_ENGINES"
    )
    check_delay_seconds: float = Field(1.0, alias="CHECK_DELAY_SECONDS", ge=0.0)
    engine_timeout_seconds: float = Field(30.0, alias="ENGINE_TIMEOUT_SECONDS", gt=0.0)
    engine_max_attempts: int = Field(3, alias="ENGINE_MAX_ATTEMPTS", ge=1)
    engine_backoff_seconds: float = Field(1.0, alias="ENGINE_BACKOFF_SECONDS", ge=0.0)

    # Dashboard defaults
    dashboard_days: int = Field(30, alias="DASHBOARD_DAYS", ge=1)
    checks_page_size: int = Field(50, alias="CHECKS_PAGE_SIZE", ge=1)
    keyword_breakdown_limit: int = Field(10, alias="KEYWORD_BREAKDOWN_LIMIT", ge=1)
    low_visibility_threshold: float = Field(50.0, alias="LOW_VISIBILITY_THRESHOLD")
    low_citations_threshold: float = Field(2.0, alias="LOW_CITATIONS_THRESHOLD")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
