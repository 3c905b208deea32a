"""
Share link related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ShareLinkCreate(BaseModel):
    """Schema for issuing a share link. Password policy is checked by the issuer."""

    password: Optional[str] = Field(
        None,
        description="Optional password required to access the link",
    )
    expires_in_days: Optional[int] = Field(
        None,
        ge=1,
        le=365,
        description="Number of days until the link expires (optional, no default)",
    )


class ShareLinkResponse(BaseModel):
    """Owner view of a share link. The password hash is never returned."""

    id: int
    file_id: int
    token: str
    has_password: bool
    expires_at: Optional[datetime] = None
    is_expired: bool
    accessed_count: int
    created_at: datetime
    share_url: str

    model_config = ConfigDict(from_attributes=True)


class ShareMetadataResponse(BaseModel):
    """
    Public metadata for a token.
    File details are only included when the link is not password protected.
    """

    has_password: bool
    created_at: datetime
    expires_at: Optional[datetime] = None
    filename: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None


class ShareAccessRequest(BaseModel):
    """Password submission for a protected link (ignored for public links)."""

    password: Optional[str] = None


class ShareAccessResponse(BaseModel):
    """Download capability granted after a successful access."""

    download_url: str
    expires_in: int
    expires_at: datetime
    filename: str
    file_size: int
    content_type: str
    accessed_count: int
