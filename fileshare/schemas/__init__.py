"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from fileshare.schemas.auth import TokenPayload
from fileshare.schemas.file import FileResponse
from fileshare.schemas.share import (
    ShareAccessRequest,
    ShareAccessResponse,
    ShareLinkCreate,
    ShareLinkResponse,
    ShareMetadataResponse,
)

__all__ = [
    "TokenPayload",
    "FileResponse",
    "ShareAccessRequest",
    "ShareAccessResponse",
    "ShareLinkCreate",
    "ShareLinkResponse",
    "ShareMetadataResponse",
]
