"""
Share link persistence.

The store is the single source of truth for share links: token uniqueness is
a database constraint and the access counter is only ever changed by a single
atomic UPDATE. Expired links stay in the table for history but are reported
as ExpiredLinkError by every token based operation.
"""
import logging
from typing import Any, Awaitable, Callable, List, TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.exceptions import ExpiredLinkError, NotFoundError, StorageError
from fileshare.models.share import ShareLink
from fileshare.utils.clock import utcnow
from fileshare.utils.logger import token_hint
from fileshare.utils.retry import retry_with_backoff

logger = logging.getLogger("fileshare.share_store")

T = TypeVar("T")

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError)


class ShareLinkStore:
    """Database access for ShareLink records."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def _run(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Retry transient database failures once, surface the rest as StorageError."""
        try:
            return await retry_with_backoff(
                func,
                max_attempts=self.settings.storage_retry_attempts,
                initial_delay=self.settings.storage_retry_initial_delay,
                max_delay=self.settings.storage_retry_max_delay,
                retryable_exceptions=TRANSIENT_DB_ERRORS,
                target=f"db.{operation}",
            )
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"Share link {operation} failed",
                exc_info=e,
                extra={"event": "db", "operation": operation},
            )
            raise StorageError("Share link store unavailable") from e

    async def insert(self, share_link: ShareLink) -> ShareLink:
        """
        Persist a new link inside a savepoint.

        Raises:
            IntegrityError: token already taken (the savepoint is rolled
                back, the surrounding transaction stays usable)
        """

        async def _insert() -> ShareLink:
            async with self.db.begin_nested():
                self.db.add(share_link)
                await self.db.flush()
            await self.db.refresh(share_link)
            return share_link

        return await self._run("insert", _insert)

    async def _select_by_token(self, token: str):
        async def _select():
            result = await self.db.execute(
                select(ShareLink)
                .where(ShareLink.token == token)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        return await self._run("lookup", _select)

    async def lookup(self, token: str) -> ShareLink:
        """
        Get an active link by token.

        Raises:
            NotFoundError: unknown token
            ExpiredLinkError: the link exists but its expiry has passed
        """
        share_link = await self._select_by_token(token)
        if share_link is None:
            logger.warning(
                "Share link not found",
                extra={"event": "share", "token_hint": token_hint(token)},
            )
            raise NotFoundError("Share link not found")
        if share_link.is_expired():
            logger.warning(
                "Share link expired",
                extra={"event": "share", "share_id": share_link.id},
            )
            raise ExpiredLinkError()
        return share_link

    async def get_by_id(self, link_id: int) -> ShareLink:
        """Get a link by id regardless of expiry (owner side)."""

        async def _get():
            result = await self.db.execute(
                select(ShareLink)
                .where(ShareLink.id == link_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        share_link = await self._run("get", _get)
        if share_link is None:
            raise NotFoundError("Share link not found")
        return share_link

    async def list_for_file(self, file_id: int) -> List[ShareLink]:
        """All links of a file, newest first, expired ones included."""

        async def _list():
            result = await self.db.execute(
                select(ShareLink)
                .where(ShareLink.file_id == file_id)
                .order_by(ShareLink.created_at.desc(), ShareLink.id.desc())
            )
            return list(result.scalars().all())

        return await self._run("list", _list)

    async def revoke(self, link_id: int) -> ShareLink:
        """
        Soft-invalidate a link by setting ``expires_at`` to now.
        Idempotent: an already expired link keeps its original expiry.
        """
        now = utcnow()

        async def _revoke():
            await self.db.execute(
                update(ShareLink)
                .where(ShareLink.id == link_id)
                .where(or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now))
                .values(expires_at=now)
                .execution_options(synchronize_session=False)
            )

        await self.get_by_id(link_id)
        await self._run("revoke", _revoke)
        share_link = await self.get_by_id(link_id)
        logger.info("Share link revoked", extra={"event": "share", "share_id": link_id})
        return share_link

    async def increment_counter(self, token: str) -> int:
        """
        Atomically add one to ``accessed_count`` of an active link.

        The increment and the expiry check are a single UPDATE so concurrent
        consumers in any process never lose or double an update.

        Returns:
            The counter value written by this increment

        Raises:
            NotFoundError / ExpiredLinkError: no active link for the token
        """
        now = utcnow()

        async def _increment():
            result = await self.db.execute(
                update(ShareLink)
                .where(ShareLink.token == token)
                .where(or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now))
                .values(accessed_count=ShareLink.accessed_count + 1)
                .returning(ShareLink.accessed_count)
                .execution_options(synchronize_session=False)
            )
            return result.scalar_one_or_none()

        count = await self._run("increment", _increment)
        if count is None:
            # Tells unknown and expired apart
            await self.lookup(token)
            raise ExpiredLinkError()
        return count

    async def delete(self, share_link: ShareLink) -> None:
        """Physically delete a link (explicit owner request)."""

        async def _delete():
            await self.db.delete(share_link)
            await self.db.flush()

        await self._run("delete", _delete)
