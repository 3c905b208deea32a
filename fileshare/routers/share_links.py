"""
Share link management for file owners.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.database import get_db
from fileshare.dependencies.auth import get_blob_store, get_current_owner_id
from fileshare.models.share import ShareLink
from fileshare.schemas.share import ShareLinkCreate, ShareLinkResponse
from fileshare.services.object_storage import BlobStore
from fileshare.services.share import ShareService
from fileshare.utils.client_ip import build_public_url

logger = logging.getLogger("fileshare.share_links")
router = APIRouter(tags=["Share Links"])


def to_share_link_response(share_link: ShareLink, request: Request) -> ShareLinkResponse:
    """Owner view of a link, including its public URL."""
    share_url = build_public_url(
        request,
        f"/share/{share_link.token}",
        base_url=get_settings().public_base_url,
    )
    return ShareLinkResponse(
        id=share_link.id,
        file_id=share_link.file_id,
        token=share_link.token,
        has_password=share_link.has_password,
        expires_at=share_link.expires_at,
        is_expired=share_link.is_expired(),
        accessed_count=share_link.accessed_count,
        created_at=share_link.created_at,
        share_url=share_url,
    )


@router.post(
    "/files/{file_id}/share-links",
    response_model=ShareLinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create share link",
)
async def create_share_link(
    file_id: int,
    request: Request,
    share_data: Optional[ShareLinkCreate] = None,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> ShareLinkResponse:
    """
    Create a share link for a file.

    - **file_id**: ID of the file to share
    - **password**: Optional password consumers must enter
    - **expires_in_days**: Number of days until the link expires (optional)

    Returns a link that can be opened without authentication.
    """
    if share_data is None:
        share_data = ShareLinkCreate()

    share_service = ShareService(db, storage)
    share_link = await share_service.issue_link(
        owner_id,
        file_id,
        password=share_data.password,
        expires_in_days=share_data.expires_in_days,
    )
    await db.commit()

    return to_share_link_response(share_link, request)


@router.get(
    "/files/{file_id}/share-links",
    response_model=List[ShareLinkResponse],
    summary="Get file share links",
)
async def list_share_links(
    file_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> List[ShareLinkResponse]:
    """All links of a file, newest first, revoked and expired ones included."""
    share_service = ShareService(db, storage)
    share_links = await share_service.list_links(owner_id, file_id)
    return [to_share_link_response(sl, request) for sl in share_links]


@router.post(
    "/share-links/{link_id}/revoke",
    response_model=ShareLinkResponse,
    summary="Revoke share link",
)
async def revoke_share_link(
    link_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> ShareLinkResponse:
    """
    Expire a link now. The record and its access count are kept;
    revoking an already expired link changes nothing.
    """
    share_service = ShareService(db, storage)
    share_link = await share_service.revoke_link(owner_id, link_id)
    await db.commit()
    return to_share_link_response(share_link, request)


@router.delete(
    "/share-links/{link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete share link",
)
async def delete_share_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> None:
    """Delete a link permanently."""
    share_service = ShareService(db, storage)
    await share_service.delete_link(owner_id, link_id)
    await db.commit()
