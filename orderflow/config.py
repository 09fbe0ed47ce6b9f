"""Configuration management for the order orchestrator."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    cas_max_retries: int = Field(
        default=50, description="Max WATCH retries before a write is reported as a conflict"
    )

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Pricing policy
    currency: str = Field(default="LKR", description="Order currency")
    tax_rate: Decimal = Field(default=Decimal("0.10"), ge=0, description="Tax rate on discounted subtotal")
    discount_rate: Decimal = Field(
        default=Decimal("0.00"), ge=0, le=1, description="Flat discount applied to every order"
    )
    delivery_fee: Decimal = Field(
        default=Decimal("0.00"), ge=0, description="Fee for delivery and room-service orders"
    )

    # Payment gateway (PayHere notify)
    payhere_merchant_id: str = Field(default="", description="PayHere merchant id")
    payhere_merchant_secret: str = Field(default="", description="PayHere merchant secret")

    # Notifications
    notification_transport: Literal["log", "redis", "websocket"] = Field(
        default="websocket", description="Where guest/staff notifications are delivered"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
