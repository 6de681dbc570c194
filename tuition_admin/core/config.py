"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

import logging
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "Tuition Admin API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "tuitionadmin"
    mongodb_timeout_ms: int = 5000

    # Populate an empty students collection on startup
    seed_sample_data: bool = True

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings = None) -> None:
    """Route application log records to stderr at the configured level."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
