"""
Centralized configuration using Pydantic BaseSettings.
All environment variables are optional to prevent application startup failure.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Persistence
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./sql_app.db", alias="DATABASE_URL")

    # Session credential signing
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")
    # None keeps credentials valid until the signing secret is rotated
    session_token_ttl_seconds: Optional[int] = Field(default=None, alias="SESSION_TOKEN_TTL_SECONDS")
    session_cookie_name: str = Field(default="token", alias="SESSION_COOKIE_NAME")
    session_cookie_max_age: int = Field(default=60 * 60 * 24, alias="SESSION_COOKIE_MAX_AGE")

    # Google identity provider
    google_client_id: Optional[str] = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: Optional[str] = Field(default=None, alias="GOOGLE_CLIENT_SECRET")
    google_redirect_uri: Optional[str] = Field(default=None, alias="GOOGLE_REDIRECT_URI")
    landing_url: str = Field(default="https://chatgpt.com/g/g-dDhU9UEws-cryptobot", alias="LANDING_URL")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_success_url: Optional[str] = Field(default=None, alias="STRIPE_SUCCESS_URL")
    stripe_cancel_url: Optional[str] = Field(default=None, alias="STRIPE_CANCEL_URL")

    # Pricing and quota
    unit_price_cents: int = Field(default=100, alias="UNIT_PRICE_CENTS")
    currency: str = Field(default="usd", alias="CURRENCY")
    product_name: str = Field(default="API Request", alias="PRODUCT_NAME")
    free_quota: int = Field(default=4, alias="FREE_QUOTA")
    paid_access_days: int = Field(default=1, alias="PAID_ACCESS_DAYS")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.env and settings.env.lower() == "production")
