"""
Tests for access accounting, including concurrent consumers.
"""
import asyncio
from datetime import timedelta

import pytest

from fileshare.exceptions import ExpiredLinkError, NotAuthorizedError
from fileshare.services.access_counter import AccessCounter
from fileshare.services.password_gate import GateState, PasswordGate, UnlockResult
from fileshare.services.share import ShareService
from fileshare.services.share_store import ShareLinkStore
from fileshare.services.token_issuer import TokenIssuer
from fileshare.utils.clock import utcnow
from tests.conftest import OWNER_ID


@pytest.fixture
def store(db):
    return ShareLinkStore(db)


class TestIncrementOnUnlock:

    @pytest.mark.asyncio
    async def test_counts_one_per_unlock(self, db, store, file_record):
        share_link = await TokenIssuer(db, store).issue(file_record.id, OWNER_ID)
        gate = PasswordGate(store)
        counter = AccessCounter(store)

        for expected in (1, 2, 3):
            result = await gate.verify(share_link.token)
            assert await counter.increment_on_unlock(result) == expected

    @pytest.mark.asyncio
    async def test_same_result_counts_once(self, db, store, file_record):
        share_link = await TokenIssuer(db, store).issue(file_record.id, OWNER_ID)
        result = await PasswordGate(store).verify(share_link.token)
        counter = AccessCounter(store)

        assert await counter.increment_on_unlock(result) == 1
        assert await counter.increment_on_unlock(result) == 1
        assert (await store.get_by_id(share_link.id)).accessed_count == 1

    @pytest.mark.asyncio
    async def test_locked_result_rejected(self, db, store, file_record):
        share_link = await TokenIssuer(db, store).issue(file_record.id, OWNER_ID, password="pa55word")
        locked = UnlockResult(share_link=share_link, state=GateState.LOCKED)

        with pytest.raises(NotAuthorizedError):
            await AccessCounter(store).increment_on_unlock(locked)
        assert (await store.get_by_id(share_link.id)).accessed_count == 0

    @pytest.mark.asyncio
    async def test_link_expired_after_unlock(self, db, store, file_record):
        share_link = await TokenIssuer(db, store).issue(file_record.id, OWNER_ID)
        result = await PasswordGate(store).verify(share_link.token)
        await store.revoke(share_link.id)

        with pytest.raises(ExpiredLinkError):
            await AccessCounter(store).increment_on_unlock(result)


class TestConcurrentAccess:
    """Independent sessions hitting the same token never lose an update."""

    @pytest.mark.asyncio
    async def test_ten_concurrent_accesses(self, db, session_maker, blob_store, file_record):
        share_link = await TokenIssuer(db).issue(file_record.id, OWNER_ID)
        token, link_id = share_link.token, share_link.id
        await db.commit()

        async def access_once() -> int:
            async with session_maker() as session:
                access = await ShareService(session, blob_store).access(token)
                await session.commit()
                return access.accessed_count

        counts = await asyncio.gather(*(access_once() for _ in range(10)))

        assert sorted(counts) == list(range(1, 11))
        async with session_maker() as session:
            final = await ShareLinkStore(session).get_by_id(link_id)
            assert final.accessed_count == 10

    @pytest.mark.asyncio
    async def test_concurrent_protected_accesses(self, db, session_maker, blob_store, file_record):
        share_link = await TokenIssuer(db).issue(
            file_record.id, OWNER_ID, password="pa55word", expires_at=utcnow() + timedelta(days=1)
        )
        token, link_id = share_link.token, share_link.id
        await db.commit()

        async def access_once() -> int:
            async with session_maker() as session:
                access = await ShareService(session, blob_store).access(token, "pa55word")
                await session.commit()
                return access.accessed_count

        counts = await asyncio.gather(*(access_once() for _ in range(10)))

        assert sorted(counts) == list(range(1, 11))
        async with session_maker() as session:
            assert (await ShareLinkStore(session).get_by_id(link_id)).accessed_count == 10
