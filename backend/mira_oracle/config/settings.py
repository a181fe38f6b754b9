"""
Application Settings for Mira Oracle

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

DEFAULT_SESSION_SECRET = "dev-session-secret-change-in-production"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    STORAGE_BACKEND controls where entities live:
    - memory: process-local store (default when DATABASE_URL is unset)
    - sql: async SQLAlchemy against DATABASE_URL
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:5000"
    allowed_origins: list[str] = [
        "http://localhost:5000",
        "http://localhost:5173",
        "http://127.0.0.1:5000",
    ]

    # Storage
    storage_backend: Optional[Literal["memory", "sql"]] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    # Sessions
    session_secret: str = DEFAULT_SESSION_SECRET
    session_cookie_name: str = "mira_session"
    session_ttl_hours: int = 24
    cookie_domain: Optional[str] = None

    # Password reset
    reset_token_ttl_minutes: int = 60

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    subscription_price_cents: int = 2900
    subscription_product_name: str = "Lunar Oracle Subscription"
    default_currency: str = "usd"

    # Google AI Configuration (accepts GOOGLE_API_KEY or GEMINI_API_KEY)
    google_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    # Email (SMTP)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    mail_from: str = "Mira Oracle <no-reply@mira-oracle.com>"

    # Sample data
    seed_sample_data: bool = True
    admin_username: str = "admin"
    admin_email: str = "admin@mira.com"
    admin_password: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_runtime(self) -> "Settings":
        """Resolve derived values and refuse unsafe production setups."""
        # Normalize gemini_api_key to google_api_key
        if not self.google_api_key and self.gemini_api_key:
            self.google_api_key = self.gemini_api_key

        if self.storage_backend is None:
            self.storage_backend = "sql" if self.database_url else "memory"

        if self.storage_backend == "sql" and not self.database_url:
            raise ValueError("DATABASE_URL required when STORAGE_BACKEND=sql")

        if self.is_production:
            if self.session_secret == DEFAULT_SESSION_SECRET:
                raise ValueError("SESSION_SECRET must be set in production")
            if self.storage_backend == "memory":
                logger.warning("Running production with in-memory storage")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.google_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
