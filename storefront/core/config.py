"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- SECRET_KEY has no default (will fail if not set)
- DATABASE_URL is optional: without it the shipping settings live in memory only
"""
import json
import logging
from typing import List, Optional, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default CORS origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Storefront"
    DEBUG: bool = False  # SECURE DEFAULT: off in production
    ENVIRONMENT: str = "production"  # Explicit env marker
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Database - optional, settings store falls back to memory
    DATABASE_URL: Optional[str] = None

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v):
        """Convert postgres:// URLs to asyncpg format."""
        if not v:
            return None
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Database Pool Configuration
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600  # 1 hour

    # Secrets - NO DEFAULT SECRET KEY (will fail if not set)
    # Used to derive the key that encrypts carrier credentials at rest
    SECRET_KEY: str

    # Admin guard. Empty = no token check (auth handled upstream)
    ADMIN_API_TOKEN: str = ""

    # CORS - accepts JSON array or comma-separated string
    CORS_ORIGINS: Union[str, List[str]] = DEFAULT_CORS_ORIGINS

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            if not v or v.strip() == "":
                return DEFAULT_CORS_ORIGINS
            # Try JSON first
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Fallback to comma-separated
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_SHIPPING: str = "30/minute"
    # Read X-Forwarded-For only when deployed behind our own proxy
    RATE_LIMIT_TRUST_PROXY: bool = False

    # Shipping rate aggregation
    SHIPPING_CARRIER_TIMEOUT_SECONDS: float = 5.0
    SHIPPING_CARRIER_MAX_CONCURRENCY: int = 4
    SHIPPING_SIMULATED_LATENCY_MS: int = 100

    # Store origin (used when a quote request omits origin)
    SHIPPING_ORIGIN_ADDRESS: str = "123 Main St"
    SHIPPING_ORIGIN_CITY: str = "Montreal"
    SHIPPING_ORIGIN_PROVINCE: str = "QC"
    SHIPPING_ORIGIN_POSTAL_CODE: str = "H2X1Y1"
    SHIPPING_ORIGIN_COUNTRY: str = "CA"

    # Canada Post live rating
    CANADA_POST_API_URL: str = "https://soa-gw.canadapost.ca/rs/ship/price"
    CANADA_POST_SANDBOX_URL: str = "https://ct.soa-gw.canadapost.ca/rs/ship/price"
    CANADA_POST_USE_SANDBOX: bool = False

    # UPS live rating
    UPS_API_URL: str = "https://onlinetools.ups.com"
    UPS_SANDBOX_URL: str = "https://wwwcie.ups.com"
    UPS_USE_SANDBOX: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()

if settings.is_production and settings.DEBUG:
    logger.warning("DEBUG is enabled in production - error details will leak to clients")
