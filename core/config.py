"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a local .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./regwatch.db"

    # Sources
    SOURCES_FILE: str = "config/sources.yaml"

    # Scraping
    SCRAPE_MAX_WORKERS: int = 3
    SCRAPE_TIMEOUT_MS: int = 30000
    BROWSER_HEADLESS: bool = True
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    SCREENSHOT_ON_ERROR: bool = False
    SCREENSHOT_DIR: str = "./screenshots"

    # Email
    EMAIL_PROVIDER: Literal["smtp", "resend", "log"] = "log"
    EMAIL_FROM: str = "Regwatch <alerts@regwatch.local>"
    EMAIL_MAX_WORKERS: int = 5
    EMAIL_TIMEOUT_SECONDS: float = 30.0
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    RESEND_API_KEY: str | None = None

    # Alerts
    APP_URL: str = "http://localhost:3000"
    DIGEST_WINDOW_HOURS: int = 24
    ALERT_EXPIRY_DAYS: int = 90  # 0 disables automatic expiry dates

    # Operator monitoring
    SLACK_WEBHOOK_URL: str | None = None
    SUCCESS_RATE_THRESHOLD: float = 0.9

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
