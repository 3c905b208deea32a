"""
Share router for public file access.

No authentication. Tokens are unguessable and both endpoints are rate
limited per client.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.database import get_db
from fileshare.dependencies.auth import get_blob_store
from fileshare.middlewares.rate_limit_middleware import get_rate_limit_decorator
from fileshare.schemas.share import (
    ShareAccessRequest,
    ShareAccessResponse,
    ShareMetadataResponse,
)
from fileshare.services.object_storage import BlobStore
from fileshare.services.share import ShareService

logger = logging.getLogger("fileshare.share")
router = APIRouter(prefix="/share", tags=["Shared Files"])

share_rate_limit = get_rate_limit_decorator(f"{get_settings().rate_limit_share_per_minute}/minute")


@router.get(
    "/{token}",
    response_model=ShareMetadataResponse,
    summary="Shared file metadata",
)
@share_rate_limit
async def get_shared_file(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
) -> ShareMetadataResponse:
    """
    Describe a shared file without counting an access.

    - **token**: The share link token (from the share URL)

    For password protected links only ``has_password`` and the dates are
    returned; file details are revealed by a successful access.
    """
    share_service = ShareService(db, storage)
    return await share_service.get_metadata(token)


@router.post(
    "/{token}/access",
    response_model=ShareAccessResponse,
    summary="Access shared file",
)
@share_rate_limit
async def access_shared_file(
    token: str,
    request: Request,
    access_data: Optional[ShareAccessRequest] = None,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
) -> ShareAccessResponse:
    """
    Unlock a shared file and get a short-lived download URL.

    - **password**: Required for protected links, ignored otherwise

    Each successful call counts one access. A wrong password returns 401
    and is not counted.
    """
    password = access_data.password if access_data else None

    share_service = ShareService(db, storage)
    access = await share_service.access(token, password)
    await db.commit()

    capability = access.capability
    return ShareAccessResponse(
        download_url=capability.url,
        expires_in=capability.expires_in,
        expires_at=capability.expires_at,
        filename=capability.filename,
        file_size=capability.file_size,
        content_type=capability.content_type,
        accessed_count=access.accessed_count,
    )
