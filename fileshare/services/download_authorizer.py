"""
Download capability brokering.

Consumers of a share link never receive bytes from this service. Once the
gate is UNLOCKED they get a presigned URL from the blob store that expires
after a short, configured lifetime.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.exceptions import NotAuthorizedError, NotFoundError, StorageError
from fileshare.models.file import FileRecord
from fileshare.services.object_storage import BlobStore, get_storage_service
from fileshare.services.password_gate import GateState
from fileshare.services.share_store import ShareLinkStore
from fileshare.utils.clock import utcnow
from fileshare.utils.prometheus_metrics import download_capability_total

logger = logging.getLogger("fileshare.download")


@dataclass(frozen=True)
class DownloadCapability:
    """Short-lived reference to a file's bytes plus what to show the user."""

    url: str
    expires_in: int
    expires_at: datetime
    filename: str
    file_size: int
    content_type: str


class DownloadAuthorizer:
    """Turns an UNLOCKED gate into a presigned download URL."""

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[ShareLinkStore] = None,
        storage: Optional[BlobStore] = None,
    ):
        self.db = db
        self.store = store or ShareLinkStore(db)
        self.storage = storage or get_storage_service()
        self.settings = get_settings()

    async def authorize(self, token: str, gate_state: GateState) -> DownloadCapability:
        """
        Grant a download capability for ``token``.

        Raises:
            NotAuthorizedError: gate is not UNLOCKED
            ExpiredLinkError: the link expired after it was looked up
            NotFoundError: link or file no longer exists
            StorageError: the blob store could not sign a URL
        """
        if gate_state is not GateState.UNLOCKED:
            logger.warning("Download requested while locked", extra={"event": "share"})
            raise NotAuthorizedError()

        # Expiry is checked again here, not only at lookup time
        share_link = await self.store.lookup(token)

        result = await self.db.execute(
            select(FileRecord).where(FileRecord.id == share_link.file_id)
        )
        file_record = result.scalar_one_or_none()
        if file_record is None:
            raise NotFoundError("File not found")

        expires_in = self.settings.download_url_expire_seconds
        try:
            url = await self.storage.generate_presigned_download_url(
                file_record.storage_path,
                expires_in=expires_in,
                filename=file_record.original_filename,
            )
        except StorageError:
            download_capability_total.labels(result="failure").inc()
            raise

        download_capability_total.labels(result="success").inc()
        logger.info(
            "Download capability issued",
            extra={"event": "share", "share_id": share_link.id, "file_id": file_record.id},
        )
        return DownloadCapability(
            url=url,
            expires_in=expires_in,
            expires_at=utcnow() + timedelta(seconds=expires_in),
            filename=file_record.original_filename,
            file_size=file_record.file_size,
            content_type=file_record.content_type,
        )
