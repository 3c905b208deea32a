"""
In-flight request tracking for graceful shutdown.
"""
import asyncio
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fileshare.utils.prometheus_metrics import in_flight_requests

logger = logging.getLogger("fileshare.request_tracking")

# Health checks must keep answering during shutdown
EXCLUDED_PATHS = {"/health", "/health/liveness", "/health/readiness"}

_request_count = 0


def get_in_flight_requests() -> int:
    return _request_count


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Counts requests being processed so shutdown can wait for them."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        global _request_count

        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        _request_count += 1
        in_flight_requests.set(_request_count)
        try:
            return await call_next(request)
        finally:
            _request_count = max(0, _request_count - 1)
            in_flight_requests.set(_request_count)


async def wait_for_requests(timeout: float = 30.0) -> bool:
    """
    Wait until no request is in flight.

    Returns:
        True if all requests completed, False on timeout
    """
    start_time = time.monotonic()
    while True:
        count = get_in_flight_requests()
        if count == 0:
            logger.info("All in-flight requests completed", extra={"event": "lifecycle"})
            return True
        if time.monotonic() - start_time >= timeout:
            logger.warning(
                f"Timeout waiting for requests (remaining: {count})",
                extra={"event": "lifecycle", "remaining_requests": count, "timeout": timeout},
            )
            return False
        await asyncio.sleep(0.5)
