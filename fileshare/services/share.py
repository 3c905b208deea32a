"""
Share service: owner side link management and the public access sequence.
"""
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.exceptions import ExpiredLinkError, NotFoundError, ShareError
from fileshare.models.file import FileRecord
from fileshare.models.share import ShareLink
from fileshare.schemas.share import ShareMetadataResponse
from fileshare.services.access_counter import AccessCounter
from fileshare.services.download_authorizer import DownloadAuthorizer, DownloadCapability
from fileshare.services.object_storage import BlobStore, get_storage_service
from fileshare.services.password_gate import PasswordGate
from fileshare.services.share_store import ShareLinkStore
from fileshare.services.token_issuer import TokenIssuer
from fileshare.utils.clock import utcnow
from fileshare.utils.prometheus_metrics import (
    share_link_access_duration_seconds,
    share_link_access_total,
    share_link_revoked_total,
)

logger = logging.getLogger("fileshare.share")


@dataclass(frozen=True)
class ShareAccess:
    """Result of a successful public access."""

    capability: DownloadCapability
    accessed_count: int


class ShareService:
    """
    Composes issuer, store, gate, counter and authorizer.

    Public access is one short sequence per request:
    lookup -> verify -> increment -> authorize. Nothing is kept between
    requests; the database is the only shared state.
    """

    def __init__(self, db: AsyncSession, storage: Optional[BlobStore] = None):
        self.db = db
        self.storage = storage or get_storage_service()
        self.store = ShareLinkStore(db)
        self.issuer = TokenIssuer(db, self.store)
        self.gate = PasswordGate(self.store)
        self.counter = AccessCounter(self.store)
        self.authorizer = DownloadAuthorizer(db, self.store, self.storage)

    # ============== Owner operations ==============

    async def issue_link(
        self,
        owner_id: int,
        file_id: int,
        password: Optional[str] = None,
        expires_in_days: Optional[int] = None,
    ) -> ShareLink:
        """Issue a link; ``expires_in_days`` is optional and has no default."""
        expires_at = None
        if expires_in_days:
            expires_at = utcnow() + timedelta(days=expires_in_days)
        return await self.issuer.issue(file_id, owner_id, password=password, expires_at=expires_at)

    async def _get_owned_link(self, owner_id: int, link_id: int) -> ShareLink:
        share_link = await self.store.get_by_id(link_id)
        result = await self.db.execute(
            select(FileRecord.id)
            .where(FileRecord.id == share_link.file_id)
            .where(FileRecord.owner_id == owner_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Share link not found")
        return share_link

    async def list_links(self, owner_id: int, file_id: int) -> List[ShareLink]:
        """All links of an owned file, newest first."""
        result = await self.db.execute(
            select(FileRecord.id)
            .where(FileRecord.id == file_id)
            .where(FileRecord.owner_id == owner_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("File not found")
        return await self.store.list_for_file(file_id)

    async def revoke_link(self, owner_id: int, link_id: int) -> ShareLink:
        """Soft-expire an owned link now. Revoking twice is a no-op."""
        share_link = await self._get_owned_link(owner_id, link_id)
        was_active = not share_link.is_expired()
        share_link = await self.store.revoke(link_id)
        if was_active:
            share_link_revoked_total.inc()
        return share_link

    async def delete_link(self, owner_id: int, link_id: int) -> None:
        """Delete an owned link permanently."""
        share_link = await self._get_owned_link(owner_id, link_id)
        await self.store.delete(share_link)
        logger.info("Share link deleted", extra={"event": "share", "share_id": link_id})

    # ============== Public operations ==============

    async def get_metadata(self, token: str) -> ShareMetadataResponse:
        """
        Public metadata for a token. Does not count as an access.
        File details are withheld until a protected link is unlocked.
        """
        share_link = await self.store.lookup(token)
        metadata = ShareMetadataResponse(
            has_password=share_link.has_password,
            created_at=share_link.created_at,
            expires_at=share_link.expires_at,
        )
        if not share_link.has_password:
            result = await self.db.execute(
                select(FileRecord).where(FileRecord.id == share_link.file_id)
            )
            file_record = result.scalar_one_or_none()
            if file_record is None:
                raise NotFoundError("File not found")
            metadata.filename = file_record.original_filename
            metadata.file_size = file_record.file_size
            metadata.content_type = file_record.content_type
        return metadata

    async def access(self, token: str, password: Optional[str] = None) -> ShareAccess:
        """
        Unlock, count and authorize one access.

        Raises:
            NotFoundError / ExpiredLinkError / AuthenticationError /
            NotAuthorizedError / StorageError
        """
        start_time = time.perf_counter()
        try:
            unlock = await self.gate.verify(token, password)
            accessed_count = await self.counter.increment_on_unlock(unlock)
            capability = await self.authorizer.authorize(token, unlock.state)
        except ShareError as e:
            if isinstance(e, ExpiredLinkError):
                token_status = "expired"
            elif isinstance(e, NotFoundError):
                token_status = "invalid"
            else:
                token_status = "valid"
            share_link_access_total.labels(token_status=token_status, result="denied").inc()
            share_link_access_duration_seconds.labels(result="denied").observe(
                time.perf_counter() - start_time
            )
            raise

        share_link_access_total.labels(token_status="valid", result="success").inc()
        share_link_access_duration_seconds.labels(result="success").observe(
            time.perf_counter() - start_time
        )
        logger.info(
            "Share link accessed",
            extra={
                "event": "share",
                "share_id": unlock.share_link.id,
                "accessed_count": accessed_count,
                "bypassed": unlock.bypassed,
            },
        )
        return ShareAccess(capability=capability, accessed_count=accessed_count)
