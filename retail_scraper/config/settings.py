"""
Application configuration using Pydantic BaseSettings.
"""

from typing import Optional, List
from decimal import Decimal
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def environment(self) -> str:
        """Lowercase environment for compatibility."""
        return self.ENVIRONMENT.lower()

    @property
    def app_version(self) -> str:
        """Application version."""
        return "1.0.0"

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./retail_scraper.db"
    DATABASE_ECHO: bool = False

    # Celery broker / result backend
    REDIS_URL: str = "redis://localhost:6379/0"

    # API Settings
    PROJECT_NAME: str = "Retail Price Scraper"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Browser Configuration
    BROWSER_EXECUTABLE_PATH: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BROWSER_EXECUTABLE_PATH", "CHROME_PATH"),
    )
    BROWSER_HEADLESS: bool = True
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    BROWSER_LOCALE: str = "en-AU"
    BROWSER_TIMEZONE: str = "Australia/Sydney"
    BROWSER_LAUNCH_TIMEOUT_MS: int = 30000
    MAX_CONCURRENT_CONTEXTS: int = 5
    BLOCK_HEAVY_RESOURCES: bool = True

    # Scraping Configuration
    NAVIGATION_TIMEOUT_MS: int = 30000
    SELECTOR_TIMEOUT_MS: int = 5000
    SETTLE_DELAY_SECONDS: float = 2.0
    SCRAPE_RETRY_ATTEMPTS: int = 2
    SCRAPE_RETRY_DELAY_SECONDS: float = 2.0

    # Background jobs
    JOB_MAX_RETRIES: int = 3
    JOB_RETRY_COUNTDOWN_SECONDS: int = 30
    TRACKED_PRODUCT_URLS: List[str] = []
    PRICE_UPDATE_HOUR: int = 2

    # Pricing Configuration
    PHARMACY_MARKUP_THRESHOLD: Decimal = Decimal("10")
    PHARMACY_MARKUP_LOW: Decimal = Decimal("1.50")
    PHARMACY_MARKUP_HIGH: Decimal = Decimal("1.65")

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOG_FILE_PATH: Optional[str] = None

    @field_validator("BROWSER_EXECUTABLE_PATH", mode="before")
    @classmethod
    def validate_optional_paths(cls, v):
        """Convert empty strings to None for optional path fields."""
        if v == "" or v is None:
            return None
        return v

    @field_validator("MAX_CONCURRENT_CONTEXTS")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_CONCURRENT_CONTEXTS must be at least 1")
        return v


@lru_cache()
def get_settings() -> Settings:
    _settings = Settings()
    return _settings


settings = get_settings()
