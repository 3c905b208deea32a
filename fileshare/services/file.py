"""
File service for managing uploaded files.
"""
import logging
import uuid
from pathlib import PurePosixPath
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.exceptions import NotFoundError, StorageError, ValidationError
from fileshare.models.file import FileRecord
from fileshare.services.object_storage import BlobStore, get_storage_service
from fileshare.utils.prometheus_metrics import file_upload_size_bytes, file_upload_total

logger = logging.getLogger("fileshare.file")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class FileService:
    """
    Service for handling file operations.
    Bytes go to the blob store, metadata to the database.
    """

    def __init__(self, db: AsyncSession, storage: Optional[BlobStore] = None):
        self.db = db
        self.storage = storage or get_storage_service()
        self.settings = get_settings()

    @staticmethod
    def build_storage_path(owner_id: int, original_filename: str) -> str:
        """files/{owner_id}/{random hex}{ext}. The original name never reaches the key."""
        suffix = PurePosixPath(original_filename).suffix.lower()
        if len(suffix) > 16:
            suffix = ""
        return f"files/{owner_id}/{uuid.uuid4().hex}{suffix}"

    async def upload(
        self,
        owner_id: int,
        file_content: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """
        Store a file and record its metadata.

        Args:
            owner_id: Uploading principal
            file_content: File bytes
            filename: Original filename as given by the client
            content_type: Declared MIME type

        Returns:
            Created FileRecord

        Raises:
            ValidationError: empty or oversized file
            StorageError: blob store failure after retry
        """
        if not file_content:
            raise ValidationError("File is empty", constraint="non_empty")
        if len(file_content) > self.settings.max_file_size:
            raise ValidationError(
                f"File exceeds {self.settings.max_file_size} bytes",
                constraint="max_file_size",
            )

        original_filename = PurePosixPath(filename.replace("\\", "/")).name or "file"
        storage_path = self.build_storage_path(owner_id, original_filename)
        content_type = content_type or DEFAULT_CONTENT_TYPE

        try:
            await self.storage.upload_file(
                file_content=file_content,
                object_name=storage_path,
                content_type=content_type,
            )
        except StorageError:
            file_upload_total.labels(result="failure").inc()
            raise

        file_record = FileRecord(
            owner_id=owner_id,
            filename=PurePosixPath(storage_path).name,
            original_filename=original_filename[:255],
            content_type=content_type[:255],
            file_size=len(file_content),
            storage_path=storage_path,
        )
        self.db.add(file_record)
        await self.db.flush()
        await self.db.refresh(file_record)

        file_upload_total.labels(result="success").inc()
        file_upload_size_bytes.observe(len(file_content))
        logger.info(
            "File uploaded",
            extra={"event": "file", "file_id": file_record.id, "owner_id": owner_id},
        )
        return file_record

    async def get(self, owner_id: int, file_id: int) -> FileRecord:
        """Get an owned file or raise NotFoundError."""
        result = await self.db.execute(
            select(FileRecord)
            .where(FileRecord.id == file_id)
            .where(FileRecord.owner_id == owner_id)
        )
        file_record = result.scalar_one_or_none()
        if file_record is None:
            raise NotFoundError("File not found")
        return file_record

    async def list_files(self, owner_id: int, skip: int = 0, limit: int = 50) -> List[FileRecord]:
        """Owned files, newest first."""
        result = await self.db.execute(
            select(FileRecord)
            .where(FileRecord.owner_id == owner_id)
            .order_by(FileRecord.created_at.desc(), FileRecord.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete(self, owner_id: int, file_id: int) -> None:
        """
        Delete a file. Its share links go with it (FK cascade); the blob is
        removed afterwards and a failure there is only logged.
        """
        file_record = await self.get(owner_id, file_id)
        storage_path = file_record.storage_path

        await self.db.delete(file_record)
        await self.db.flush()

        try:
            await self.storage.delete_file(storage_path)
        except StorageError as e:
            logger.error(
                "Blob deletion failed, object orphaned",
                exc_info=e,
                extra={"event": "file", "file_id": file_id, "path": storage_path},
            )

        logger.info("File deleted", extra={"event": "file", "file_id": file_id, "owner_id": owner_id})
