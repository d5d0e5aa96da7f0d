"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. Pricing constants live here too so
the free-delivery threshold, flat fee and tax rate can be tuned per deployment.
"""

from decimal import Decimal
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database - defaults to relative path for local dev, override via env
    database_url: str = "sqlite:///./storefront.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # ==========================================================================
    # Email/SMTP Configuration
    # ==========================================================================
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = ""
    smtp_from_name: str = "Tummy Tikki Burger"
    smtp_use_ssl: bool = True

    # ==========================================================================
    # Payment gateway (Razorpay-compatible API)
    # ==========================================================================
    gateway_key_id: str = ""
    gateway_key_secret: str = ""
    gateway_webhook_secret: str = ""
    gateway_api_base_url: str = "https://api.razorpay.com/v1"
    gateway_currency: str = "INR"
    gateway_timeout_seconds: float = 10.0

    # ==========================================================================
    # Hosted object storage for menu images
    # ==========================================================================
    storage_url: str = ""
    storage_service_key: str = ""
    storage_bucket: str = "menu-images"
    storage_timeout_seconds: float = 15.0

    # ==========================================================================
    # Pricing
    # ==========================================================================
    free_delivery_threshold: Decimal = Decimal("200")
    flat_delivery_fee: Decimal = Decimal("30")
    tax_rate: Decimal = Decimal("0.05")
    estimated_delivery_minutes: int = 40
    default_city: str = "Ahmedabad"

    # Used to build "track your order" links in emails
    public_base_url: str = "http://localhost:3000"

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "change-me-in-production":
            import warnings
            warnings.warn(
                "Using default SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator("tax_rate")
    @classmethod
    def validate_tax_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 1:
            raise ValueError(f"tax_rate must be between 0 and 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to start in production mode with an insecure secret key."""
        if not self.debug:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def gateway_configured(self) -> bool:
        return bool(self.gateway_key_id and self.gateway_key_secret)

    @property
    def storage_configured(self) -> bool:
        return bool(self.storage_url and self.storage_service_key)

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # File upload limits
    max_upload_size_mb: int = 5

    # Rate limiting
    rate_limit_enabled: bool = True

    # Optional admin bootstrap (created on startup if no admin exists)
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
