"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
import os
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./fileshare.db"


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="File Share API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if DEBUG is not explicitly set."""
        if 'DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Database
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    db_pool_size: int = Field(default=10)
    db_max_overflow: int = Field(default=20)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return DEFAULT_DATABASE_URL
        return v

    # JWT (owner identity is issued elsewhere, this service only verifies it)
    jwt_secret_key: str = Field(default="jwt-secret-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30)

    # S3 compatible object storage
    s3_access_key: str = Field(default="", description="S3 API access key")
    s3_secret_key: str = Field(default="", description="S3 API secret key")
    s3_endpoint_url: str = Field(default="", description="S3 API endpoint URL (empty = AWS)")
    s3_region_name: str = Field(default="us-east-1")
    s3_bucket: str = Field(default="user-files")
    download_url_expire_seconds: int = Field(
        default=300,
        ge=1,
        description="Lifetime of a presigned download URL handed to share consumers (seconds)",
    )
    max_file_size: int = Field(default=100 * 1024 * 1024, description="Max upload size in bytes")

    # Storage / database retry (transient failures are retried once by default)
    storage_retry_attempts: int = Field(default=2, ge=1)
    storage_retry_initial_delay: float = Field(default=0.2)
    storage_retry_max_delay: float = Field(default=2.0)

    # Share links
    share_token_bytes: int = Field(
        default=32,
        ge=16,
        description="Random bytes per share token (16 bytes = 128 bits minimum)",
    )
    share_token_max_attempts: int = Field(default=5, ge=1)
    share_password_min_length: int = Field(default=4, ge=1)
    share_password_max_length: int = Field(default=50, ge=1)
    share_password_hash_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor for share link passwords",
    )

    @model_validator(mode='after')
    def check_password_window(self):
        if self.share_password_min_length > self.share_password_max_length:
            raise ValueError("share_password_min_length must not exceed share_password_max_length")
        return self

    # Rate limiting (public share endpoints)
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_per_minute: int = Field(default=120)
    rate_limit_share_per_minute: int = Field(default=30)

    # Logging: empty disables NDJSON file logs
    log_dir: str = Field(default="", description="Directory for NDJSON log files")
    instance_ip: str = Field(default="", description="Instance identifier for logs (empty = hostname)")

    # Public base URL used to build share URLs (empty = derive from request)
    public_base_url: Optional[str] = Field(default=None)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid re-reading the environment on every request.
    """
    return Settings()
