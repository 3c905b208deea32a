"""
Rate limiting using slowapi.
Slows down token guessing and password brute force on the public share
endpoints.
"""
import logging
from typing import Callable

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fileshare.config import get_settings
from fileshare.utils.client_ip import get_client_ip
from fileshare.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("fileshare.rate_limit")
settings = get_settings()


def get_client_identifier(request: Request) -> str:
    """Rate limit key: client IP as seen through proxies."""
    return get_client_ip(request) or "unknown"


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"] if settings.rate_limit_enabled else [],
    enabled=settings.rate_limit_enabled,
    storage_uri="memory://",  # per process; use a shared backend when scaled out
)


def setup_rate_limit_exception_handler(app) -> None:
    """Register the 429 handler and attach the limiter to the app."""
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        endpoint = request.scope.get("route").path if request.scope.get("route") else "unknown"
        rate_limit_hits_total.labels(endpoint=endpoint).inc()

        logger.warning(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit",
                "client_id": get_client_identifier(request),
                "endpoint": endpoint,
                "limit": getattr(exc, "detail", "unknown"),
            },
        )
        return _rate_limit_exceeded_handler(request, exc)


def get_rate_limit_decorator(limit: str):
    """
    Rate limit decorator for an endpoint.

    Args:
        limit: slowapi limit string (e.g. "10/minute")

    Returns:
        Decorator; a no-op when rate limiting is disabled
    """
    if not settings.rate_limit_enabled:
        def noop_decorator(func: Callable) -> Callable:
            return func
        return noop_decorator

    return limiter.limit(limit)
