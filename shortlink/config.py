"""Configuration management for the shortlink application.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram: get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache │
    │ (lru_cache) │
    └──────┬──────┘
    HIT?   │
    ┌──────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Build settings at the composition root**::
    from shortlink.config import get_settings
    settings = get_settings()

**Step 2: Hand them to the components that need them**::
    generator = ShortCodeGenerator(settings.SHORT_CODE_LENGTH)
    service = URLShorteningService(generator, store, cache, settings, logger)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Core components never call ``get_settings()`` themselves; they receive a
  ``Settings`` instance through their constructor.
- Out-of-range values raise ``pydantic.ValidationError`` at startup.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "shortlink"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortlink:shortlink@db:5432/shortlink"
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = Field(default=20, ge=1)
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0)

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_ENABLED: bool = True
    CACHE_TTL_SECONDS: int = Field(default=300, ge=1)

    # Short URL config
    SHORT_CODE_LENGTH: int = Field(default=7, ge=4, le=20)
    MAX_COLLISION_RETRIES: int = 5
    MAX_URL_LENGTH: int = Field(default=2048, ge=1)

    # Pagination
    DEFAULT_PAGE_SIZE: int = Field(default=20, ge=1)
    MAX_PAGE_SIZE: int = Field(default=100, ge=1)

    # HTTP layer
    REQUEST_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    # Set by the upstream authentication layer after it verifies the caller.
    USER_ID_HEADER: str = "X-User-ID"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
