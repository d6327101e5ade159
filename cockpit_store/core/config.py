"""
Application configuration

Defaults are fail-safe for production:
- DEBUG defaults to False
- DATABASE_URL has no default (falls back to a local database only outside production)
- Runtime validation catches insecure configurations
"""
import json
import os
import logging
from typing import List, Union
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

DEVELOPMENT_DATABASE_URL = "sqlite+aiosqlite:///./cockpit_store.db"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Cockpit Store"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Database - NO DEFAULT (will fail if not set)
    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v):
        """Convert plain postgres:// URLs to the asyncpg driver."""
        if not v:
            return v
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Database pool
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600  # 1 hour

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
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Cart
    CART_EXPIRY_DAYS: int = 7
    MAX_LINE_QUANTITY: int = 100

    # Region / currency (display only)
    DEFAULT_REGION: str = "us"

    # Catalog schema loads are retried this many times before surfacing
    SCHEMA_LOAD_RETRIES: int = 1

    # Shared configuration links: FRONTEND_URL/share/<code>
    FRONTEND_URL: str = "http://localhost:5173"
    SHARE_CODE_LENGTH: int = 8

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch insecure production configurations."""
        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            if "localhost" in self.DATABASE_URL or "127.0.0.1" in self.DATABASE_URL:
                errors.append(
                    "Localhost DATABASE_URL detected in production. "
                    "Configure proper database connection."
                )

            if self.DATABASE_URL.startswith("sqlite"):
                errors.append("SQLite DATABASE_URL is not supported in production.")

            for origin in self.CORS_ORIGINS:
                if origin == "*":
                    errors.append("Wildcard '*' CORS origin is forbidden in production")
                elif "localhost" in origin or "127.0.0.1" in origin:
                    errors.append(f"Localhost CORS origin '{origin}' is forbidden in production")

            if errors:
                raise ValueError(
                    "PRODUCTION CONFIGURATION VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
                )

        if self.DEFAULT_REGION not in ("us", "eu"):
            raise ValueError(f"DEFAULT_REGION must be 'us' or 'eu', got {self.DEFAULT_REGION!r}")

        return self


# Try to load settings, provide helpful error on failure
try:
    settings = Settings()
except Exception:
    if os.getenv("ENVIRONMENT", "development") == "development":
        logger.warning(
            "Settings validation failed, using development defaults. "
            "Set DATABASE_URL in .env file."
        )
        os.environ.setdefault("DATABASE_URL", DEVELOPMENT_DATABASE_URL)
        os.environ.setdefault("ENVIRONMENT", "development")
        settings = Settings()
    else:
        raise
