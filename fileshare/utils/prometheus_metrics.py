"""
Prometheus metrics.

- FastAPI: request count and latency (Instrumentator, /metrics)
- Stability: exceptions_total, db_errors_total, external request outcomes
- Share links: issuance, access outcomes, password failures, capabilities
"""
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

# --- Stability ---
exceptions_total = Counter(
    "fileshare_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
db_errors_total = Counter(
    "fileshare_db_errors_total",
    "Total database session/transaction errors",
    registry=REGISTRY,
)
external_request_total = Counter(
    "fileshare_external_request_total",
    "Total external requests by service and outcome",
    ["service", "status"],  # status: success | failure
    registry=REGISTRY,
)
external_request_duration_seconds = Histogram(
    "fileshare_external_request_duration_seconds",
    "External request duration in seconds",
    ["service", "result"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "fileshare_ready",
    "1 when the instance accepts traffic, 0 while shutting down",
    registry=REGISTRY,
)
in_flight_requests = Gauge(
    "fileshare_in_flight_requests",
    "Requests currently being processed",
    registry=REGISTRY,
)

# --- Rate limiting ---
rate_limit_hits_total = Counter(
    "fileshare_rate_limit_hits_total",
    "Total number of rate limited requests",
    ["endpoint"],
    registry=REGISTRY,
)

# --- Share links ---
share_link_issued_total = Counter(
    "fileshare_share_link_issued_total",
    "Share links issued",
    ["protected"],  # protected: yes | no
    registry=REGISTRY,
)
share_link_revoked_total = Counter(
    "fileshare_share_link_revoked_total",
    "Share links revoked by their owner",
    registry=REGISTRY,
)
share_link_access_total = Counter(
    "fileshare_share_link_access_total",
    "Share link access attempts",
    ["token_status", "result"],  # token_status: valid | invalid | expired, result: success | denied
    registry=REGISTRY,
)
share_link_password_failures_total = Counter(
    "fileshare_share_link_password_failures_total",
    "Wrong passwords submitted to protected share links",
    registry=REGISTRY,
)
share_link_access_duration_seconds = Histogram(
    "fileshare_share_link_access_duration_seconds",
    "Share link access duration in seconds (lookup to capability)",
    ["result"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)
download_capability_total = Counter(
    "fileshare_download_capability_total",
    "Presigned download URLs issued",
    ["result"],  # result: success | failure
    registry=REGISTRY,
)

# --- Files ---
file_upload_total = Counter(
    "fileshare_file_upload_total",
    "File uploads",
    ["result"],
    registry=REGISTRY,
)
file_upload_size_bytes = Histogram(
    "fileshare_file_upload_size_bytes",
    "Uploaded file sizes",
    buckets=(1024, 64 * 1024, 1024 * 1024, 10 * 1024 * 1024, 100 * 1024 * 1024),
    registry=REGISTRY,
)


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """
    Record duration and outcome of a call to an external backend
    (object storage, database).
    """
    start = time.perf_counter()
    failed = False
    try:
        yield
    except Exception:
        failed = True
        raise
    finally:
        result = "failure" if failed else "success"
        external_request_total.labels(service=service, status=result).inc()
        external_request_duration_seconds.labels(service=service, result=result).observe(
            time.perf_counter() - start
        )


def setup_prometheus(app) -> None:
    """Instrument the FastAPI app and expose /metrics."""
    Instrumentator(
        excluded_handlers=["/metrics", "/health"],
    ).instrument(app).expose(app, include_in_schema=False)
