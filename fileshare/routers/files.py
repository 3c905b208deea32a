"""
Files router for owner file management.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.database import get_db
from fileshare.dependencies.auth import get_blob_store, get_current_owner_id
from fileshare.schemas.file import FileResponse
from fileshare.services.file import FileService
from fileshare.services.object_storage import BlobStore

logger = logging.getLogger("fileshare.files")
router = APIRouter(prefix="/files", tags=["Files"])


@router.post(
    "",
    response_model=FileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
)
async def upload_file(
    file: UploadFile = File(..., description="File to upload"),
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> FileResponse:
    """
    Upload a file that can then be shared.

    The bytes are stored in object storage under ``files/{owner_id}/``;
    the original filename is kept as metadata only.
    """
    content = await file.read()

    file_service = FileService(db, storage)
    file_record = await file_service.upload(
        owner_id=owner_id,
        file_content=content,
        filename=file.filename or "file",
        content_type=file.content_type,
    )
    await db.commit()

    return FileResponse.model_validate(file_record)


@router.get(
    "",
    response_model=List[FileResponse],
    summary="List own files",
)
async def list_files(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1),
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> List[FileResponse]:
    """
    - **skip**: Number of files to skip (pagination)
    - **limit**: Maximum number of files to return (max 100)
    """
    limit = min(limit, 100)

    file_service = FileService(db, storage)
    files = await file_service.list_files(owner_id, skip, limit)
    return [FileResponse.model_validate(f) for f in files]


@router.get(
    "/{file_id}",
    response_model=FileResponse,
    summary="Get file metadata",
)
async def get_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> FileResponse:
    file_service = FileService(db, storage)
    file_record = await file_service.get(owner_id, file_id)
    return FileResponse.model_validate(file_record)


@router.delete(
    "/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a file",
)
async def delete_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    owner_id: int = Depends(get_current_owner_id),
) -> None:
    """
    Delete a file from the database and object storage.
    All share links of the file stop working immediately.
    """
    file_service = FileService(db, storage)
    await file_service.delete(owner_id, file_id)
    await db.commit()
