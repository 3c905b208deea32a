"""
Owner identity schemas.
"""
from datetime import datetime

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded owner JWT."""

    sub: int  # owner id
    exp: datetime
