"""
Configuration management for the Star Café storefront backend.

Settings are read from environment variables (and an optional .env file)
so that store rules like delivery fees can differ per environment without
code changes.
"""

from decimal import Decimal
from functools import lru_cache
from typing import List, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Database Configuration
    database_url: str = "sqlite:///./star_cafe.db"

    # Redis Configuration (server-backed carts)
    redis_url: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 10
    REDIS_SOCKET_TIMEOUT: int = 5

    # Environment Settings
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    cors_origins: Union[List[str], str] = ["http://localhost:5173"]

    # Cart & Pricing Configuration
    CART_CURRENCY: str = "BDT"
    CART_FREE_DELIVERY_THRESHOLD: Decimal = Field(
        default=Decimal("500"), description="Subtotal above which delivery is free"
    )
    CART_DELIVERY_FEE: Decimal = Field(
        default=Decimal("50"), description="Flat delivery fee below the threshold"
    )
    CART_CHARGE_DELIVERY_ON_EMPTY: bool = False
    CART_TAX_RATE: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    CART_STORAGE_BACKEND: str = "memory"  # memory | redis
    CART_STORAGE_PREFIX: str = "cart"

    # Realtime Reconnection Configuration
    REALTIME_MAX_RECONNECT_ATTEMPTS: int = 5
    REALTIME_RECONNECT_BASE_DELAY_MS: int = 1000
    REALTIME_RECONNECT_MAX_DELAY_MS: int = 30000
    REALTIME_HEALTH_CHECK_INTERVAL_MINUTES: int = 30
    REALTIME_JOIN_TIMEOUT_SECONDS: float = 10.0
    REALTIME_MESSAGE_DEBOUNCE_MS: int = 300
    REALTIME_URL: str = "ws://localhost:4000/realtime/v1/websocket"

    # Loyalty / referral
    REFERRAL_ORIGIN: str = "https://star-cafe.app"
    REFERRAL_BONUS_POINTS: int = 250

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("CART_FREE_DELIVERY_THRESHOLD", "CART_DELIVERY_FEE")
    @classmethod
    def validate_non_negative_amount(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Delivery fee and threshold must be non-negative")
        return v

    @field_validator("CART_STORAGE_BACKEND")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError("CART_STORAGE_BACKEND must be 'memory' or 'redis'")
        return v

    @model_validator(mode="after")
    def validate_reconnect_policy(self):
        """Backoff settings must describe a bounded, growing schedule."""
        if self.REALTIME_MAX_RECONNECT_ATTEMPTS < 1:
            raise ValueError("REALTIME_MAX_RECONNECT_ATTEMPTS must be at least 1")
        if self.REALTIME_RECONNECT_BASE_DELAY_MS <= 0:
            raise ValueError("REALTIME_RECONNECT_BASE_DELAY_MS must be positive")
        if self.REALTIME_RECONNECT_MAX_DELAY_MS < self.REALTIME_RECONNECT_BASE_DELAY_MS:
            raise ValueError(
                "REALTIME_RECONNECT_MAX_DELAY_MS must not be below the base delay"
            )
        if self.REALTIME_HEALTH_CHECK_INTERVAL_MINUTES <= 0:
            raise ValueError("REALTIME_HEALTH_CHECK_INTERVAL_MINUTES must be positive")
        if self.REALTIME_MESSAGE_DEBOUNCE_MS < 0:
            raise ValueError("REALTIME_MESSAGE_DEBOUNCE_MS must not be negative")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def redis_enabled(self) -> bool:
        """Check if Redis is configured for cart storage."""
        return self.redis_url is not None


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance with environment variables loaded
    """
    return Settings()


# Export settings instance for easy import
settings = get_settings()


def validate_production_config(config: Optional[Settings] = None):
    """Validate configuration for production deployment."""
    config = config or settings
    if not config.is_production:
        return

    issues = []

    if config.debug:
        issues.append("DEBUG is enabled in production")

    if config.database_url.startswith("sqlite"):
        issues.append("Database URL points at SQLite")

    if config.CART_STORAGE_BACKEND == "redis" and not config.redis_enabled:
        issues.append("CART_STORAGE_BACKEND is redis but REDIS_URL is not set")

    if issues:
        raise ValueError(f"Production configuration issues detected: {', '.join(issues)}")
