"""
Time helpers. All timestamps are stored as naive UTC.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo (matches the DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
