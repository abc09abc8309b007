# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only the Supabase credentials are required. Payment, courier and email
    credentials default to empty strings so the API can boot in development
    without them; the client wrappers raise a configuration error on first use.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="",
        description="Legacy HS256 secret used to verify Supabase access tokens"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Razorpay (payments)
    # -------------------------------------------------------------------------

    RAZORPAY_KEY_ID: str = Field(default="", description="Razorpay key id")
    RAZORPAY_KEY_SECRET: str = Field(
        default="",
        description="Razorpay key secret, also the HMAC key for payment signatures"
    )
    RAZORPAY_CURRENCY: str = Field(default="INR")
    RAZORPAY_API_URL: str = Field(default="https://api.razorpay.com/v1")

    # -------------------------------------------------------------------------
    # Shiprocket (shipping aggregator)
    # -------------------------------------------------------------------------

    SHIPROCKET_EMAIL: str = Field(default="", description="Shiprocket API user email")
    SHIPROCKET_PASSWORD: str = Field(default="", description="Shiprocket API user password")
    SHIPROCKET_API_URL: str = Field(default="https://apiv2.shiprocket.in/v1/external")
    SHIPROCKET_WEBHOOK_TOKEN: str = Field(
        default="",
        description="Expected x-api-key header on tracking webhooks (mismatch is only logged)"
    )
    SHIPROCKET_PICKUP_LOCATION: str = Field(default="Primary")

    # Warehouse used as pickup origin and return destination
    WAREHOUSE_PINCODE: str = Field(default="110031")
    WAREHOUSE_NAME: str = Field(default="AKUSHO Warehouse")
    WAREHOUSE_ADDRESS: str = Field(default="")
    WAREHOUSE_CITY: str = Field(default="Delhi")
    WAREHOUSE_STATE: str = Field(default="Delhi")
    WAREHOUSE_PHONE: str = Field(default="")

    # -------------------------------------------------------------------------
    # Resend (transactional email)
    # -------------------------------------------------------------------------

    RESEND_API_KEY: str = Field(default="", description="Resend API key")
    RESEND_FROM_EMAIL: str = Field(default="AKUSHO <onboarding@resend.dev>")
    ADMIN_NOTIFICATION_EMAIL: str = Field(default="business.akusho@gmail.com")

    EMAIL_DISPATCH_MODE: Literal["inline", "queue"] = Field(
        default="inline",
        description="Send emails in the request ('inline') or via Celery ('queue')"
    )

    # -------------------------------------------------------------------------
    # Storefront Rules
    # -------------------------------------------------------------------------

    SITE_URL: str = Field(default="http://localhost:3000")

    DEFAULT_SHIPPING_COST: float = Field(default=70, ge=0)
    FALLBACK_SHIPPING_COST: float = Field(
        default=99,
        ge=0,
        description="Flat rate quoted when the courier cannot price a pincode"
    )
    FREE_SHIPPING_THRESHOLD: float = Field(default=999, ge=0)
    RETURN_WINDOW_DAYS: int = Field(default=7, ge=0)

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(default="0.0.0.0")

    API_PORT: int = Field(default=8000, ge=1, le=65535)

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://akusho.in" -> ["http://localhost:3000", "https://akusho.in"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def email_queue_enabled(self) -> bool:
        """True when notification emails go through the Celery worker."""
        return self.EMAIL_DISPATCH_MODE == "queue"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
