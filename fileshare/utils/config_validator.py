"""
Startup configuration checks.

Only run in production: the service refuses to start when the database is
unreachable, object storage is not configured or the JWT secret still has
its development default.
"""
import logging
from typing import List

from sqlalchemy import text

from fileshare.config import Environment, Settings, get_settings
from fileshare.database import engine

logger = logging.getLogger("fileshare.config_validator")

DEFAULT_JWT_SECRET = "jwt-secret-change-in-production"


async def validate_configuration() -> None:
    """
    Validate settings and backends before accepting traffic.

    Raises:
        ValueError: one or more checks failed (all failures are listed)
    """
    settings = get_settings()

    if settings.environment != Environment.PRODUCTION:
        logger.info(
            "Config validation skipped (not production)",
            extra={"event": "config", "environment": settings.environment.value},
        )
        return

    logger.info("Starting configuration validation", extra={"event": "config"})

    errors: List[str] = []

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection: OK", extra={"event": "config"})
    except Exception as e:
        error_msg = f"Database connection failed: {e}"
        errors.append(error_msg)
        logger.error(error_msg, extra={"event": "config"}, exc_info=True)

    errors.extend(_validate_storage_config(settings))
    errors.extend(_validate_security_config(settings))

    if errors:
        error_summary = "\n".join(f"  - {e}" for e in errors)
        raise ValueError(
            f"Configuration validation failed:\n{error_summary}\n"
            "Please check your environment variables and configuration."
        )

    logger.info("Configuration validation completed successfully", extra={"event": "config"})


def _validate_storage_config(settings: Settings) -> List[str]:
    """Object storage credentials and bucket."""
    errors: List[str] = []

    if not settings.s3_access_key:
        errors.append("S3_ACCESS_KEY is required")
    if not settings.s3_secret_key:
        errors.append("S3_SECRET_KEY is required")
    if not settings.s3_bucket:
        errors.append("S3_BUCKET is required")

    if not settings.s3_endpoint_url:
        logger.info(
            "S3_ENDPOINT_URL not set, using the AWS endpoint",
            extra={"event": "config"},
        )

    if errors:
        logger.error(
            "Object storage configuration validation failed",
            extra={"event": "config", "errors": errors},
        )
    else:
        logger.info("Object storage configuration: OK", extra={"event": "config"})

    return errors


def _validate_security_config(settings: Settings) -> List[str]:
    """Secrets that must not keep their development defaults."""
    errors: List[str] = []

    if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
        errors.append("JWT_SECRET_KEY must be changed from its default value")

    if settings.share_password_hash_rounds < 10:
        logger.warning(
            "SHARE_PASSWORD_HASH_ROUNDS is below 10",
            extra={"event": "config", "rounds": settings.share_password_hash_rounds},
        )

    return errors
