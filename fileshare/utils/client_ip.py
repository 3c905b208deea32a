"""
Client address helpers for requests that pass through proxies or load balancers.
"""
from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> Optional[str]:
    """
    Best-effort client IP.

    Checked in order: X-Forwarded-For (first entry), X-Real-IP,
    CF-Connecting-IP, True-Client-IP, then the socket peer.

    The proxy headers are only trustworthy when the edge proxy strips them
    from external requests.
    """
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        client_ip = x_forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    for header in ("X-Real-IP", "CF-Connecting-IP", "True-Client-IP"):
        value = request.headers.get(header)
        if value:
            return value.strip()

    if request.client:
        return request.client.host

    return None


def get_forwarded_proto(request: Request) -> str:
    """Original scheme (http/https), honouring X-Forwarded-Proto."""
    x_forwarded_proto = request.headers.get("X-Forwarded-Proto")
    if x_forwarded_proto:
        return x_forwarded_proto.lower()
    return request.url.scheme


def get_forwarded_host(request: Request) -> str:
    """Original host, honouring X-Forwarded-Host."""
    x_forwarded_host = request.headers.get("X-Forwarded-Host")
    if x_forwarded_host:
        return x_forwarded_host
    return request.headers.get("Host", "")


def build_public_url(request: Request, path: str, base_url: Optional[str] = None) -> str:
    """Absolute URL for ``path`` as seen by the client."""
    if base_url:
        return f"{base_url.rstrip('/')}{path}"
    host = get_forwarded_host(request)
    if not host:
        return path
    return f"{get_forwarded_proto(request)}://{host}{path}"
