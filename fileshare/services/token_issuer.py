"""
Share link issuance.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.exceptions import ConflictError, NotFoundError, ValidationError
from fileshare.models.file import FileRecord
from fileshare.models.share import ShareLink
from fileshare.services.share_store import ShareLinkStore
from fileshare.utils.prometheus_metrics import share_link_issued_total
from fileshare.utils.security import BCRYPT_MAX_BYTES, generate_share_token, hash_password

logger = logging.getLogger("fileshare.issuer")


class TokenIssuer:
    """
    Creates share links: verifies file ownership, applies the password
    policy, mints a random token and hashes the optional password.
    """

    def __init__(self, db: AsyncSession, store: Optional[ShareLinkStore] = None):
        self.db = db
        self.store = store or ShareLinkStore(db)
        self.settings = get_settings()

    def validate_password(self, password: str) -> None:
        """
        Check a share password against the configured policy window.

        Raises:
            ValidationError: with ``constraint`` set to the violated rule
        """
        min_len = self.settings.share_password_min_length
        max_len = self.settings.share_password_max_length
        if len(password) < min_len:
            raise ValidationError(
                f"Password must be at least {min_len} characters",
                constraint="min_length",
            )
        if len(password) > max_len:
            raise ValidationError(
                f"Password must be at most {max_len} characters",
                constraint="max_length",
            )
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValidationError(
                f"Password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded",
                constraint="max_bytes",
            )
        if "\x00" in password:
            raise ValidationError(
                "Password must not contain NUL characters",
                constraint="invalid_characters",
            )

    async def _get_owned_file(self, file_id: int, owner_id: int) -> FileRecord:
        result = await self.db.execute(
            select(FileRecord)
            .where(FileRecord.id == file_id)
            .where(FileRecord.owner_id == owner_id)
        )
        file_record = result.scalar_one_or_none()
        if file_record is None:
            raise NotFoundError("File not found")
        return file_record

    async def issue(
        self,
        file_id: int,
        owner_id: int,
        password: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> ShareLink:
        """
        Create a share link for a file owned by ``owner_id``.

        Args:
            file_id: File to share
            owner_id: Principal issuing the link
            password: Optional plain text password gating the link
            expires_at: Optional expiry (naive UTC), no default duration

        Returns:
            The persisted ShareLink with ``accessed_count == 0``

        Raises:
            NotFoundError: file missing or owned by someone else
            ValidationError: password outside the policy window
            ConflictError: no unique token after the configured attempts
        """
        await self._get_owned_file(file_id, owner_id)

        password_hash = None
        if password is not None:
            self.validate_password(password)
            password_hash = await asyncio.to_thread(hash_password, password)

        max_attempts = self.settings.share_token_max_attempts
        for attempt in range(1, max_attempts + 1):
            share_link = ShareLink(
                file_id=file_id,
                token=generate_share_token(),
                has_password=password_hash is not None,
                password_hash=password_hash,
                expires_at=expires_at,
                accessed_count=0,
            )
            try:
                share_link = await self.store.insert(share_link)
            except IntegrityError:
                logger.warning(
                    "Share token collision, regenerating",
                    extra={"event": "share", "attempt": attempt, "file_id": file_id},
                )
                continue

            share_link_issued_total.labels(
                protected="yes" if share_link.has_password else "no"
            ).inc()
            logger.info(
                "Share link created",
                extra={
                    "event": "share",
                    "share_id": share_link.id,
                    "file_id": file_id,
                    "protected": share_link.has_password,
                },
            )
            return share_link

        logger.error(
            "Share token allocation exhausted",
            extra={"event": "share", "file_id": file_id, "attempts": max_attempts},
        )
        raise ConflictError()
