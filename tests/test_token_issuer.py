"""
Tests for share link issuance.
"""
import asyncio
from datetime import timedelta

import pytest

from fileshare.exceptions import ConflictError, NotFoundError, ValidationError
from fileshare.services import token_issuer as token_issuer_module
from fileshare.services.token_issuer import TokenIssuer
from fileshare.utils.clock import utcnow
from fileshare.utils.security import verify_password
from tests.conftest import OTHER_OWNER_ID, OWNER_ID


class TestIssue:
    """Creating links for owned files."""

    @pytest.mark.asyncio
    async def test_public_link(self, db, file_record):
        """A link without password starts unprotected with a zero counter."""
        share_link = await TokenIssuer(db).issue(file_record.id, OWNER_ID)

        assert share_link.id is not None
        assert share_link.file_id == file_record.id
        assert share_link.has_password is False
        assert share_link.password_hash is None
        assert share_link.expires_at is None
        assert share_link.accessed_count == 0

    @pytest.mark.asyncio
    async def test_token_is_long_and_url_safe(self, db, file_record):
        share_link = await TokenIssuer(db).issue(file_record.id, OWNER_ID)

        # 32 random bytes -> 43 base64url characters
        assert len(share_link.token) >= 43
        assert all(c.isalnum() or c in "-_" for c in share_link.token)

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, db, file_record):
        issuer = TokenIssuer(db)
        tokens = {(await issuer.issue(file_record.id, OWNER_ID)).token for _ in range(5)}
        assert len(tokens) == 5

    @pytest.mark.asyncio
    async def test_protected_link_stores_hash_only(self, db, file_record):
        """The stored value is a salted bcrypt hash, never the password."""
        share_link = await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="s3cret")

        assert share_link.has_password is True
        assert share_link.password_hash != "s3cret"
        assert share_link.password_hash.startswith("$2")
        assert verify_password("s3cret", share_link.password_hash)

    @pytest.mark.asyncio
    async def test_same_password_different_hashes(self, db, file_record):
        issuer = TokenIssuer(db)
        first = await issuer.issue(file_record.id, OWNER_ID, password="same-pass")
        second = await issuer.issue(file_record.id, OWNER_ID, password="same-pass")
        assert first.password_hash != second.password_hash

    @pytest.mark.asyncio
    async def test_expiry_is_kept(self, db, file_record):
        expires_at = utcnow() + timedelta(days=7)
        share_link = await TokenIssuer(db).issue(file_record.id, OWNER_ID, expires_at=expires_at)
        assert share_link.expires_at == expires_at

    @pytest.mark.asyncio
    async def test_unknown_file(self, db, file_record):
        with pytest.raises(NotFoundError):
            await TokenIssuer(db).issue(file_record.id + 1000, OWNER_ID)

    @pytest.mark.asyncio
    async def test_file_of_another_owner(self, db, file_record):
        """Ownership mismatch looks exactly like a missing file."""
        with pytest.raises(NotFoundError):
            await TokenIssuer(db).issue(file_record.id, OTHER_OWNER_ID)


class TestPasswordPolicy:
    """Password window checks happen before anything is written."""

    @pytest.mark.asyncio
    async def test_too_short(self, db, file_record):
        with pytest.raises(ValidationError) as exc_info:
            await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="abc")
        assert exc_info.value.constraint == "min_length"

    @pytest.mark.asyncio
    async def test_too_long(self, db, file_record):
        with pytest.raises(ValidationError) as exc_info:
            await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="x" * 51)
        assert exc_info.value.constraint == "max_length"

    @pytest.mark.asyncio
    async def test_bounds_are_inclusive(self, db, file_record):
        issuer = TokenIssuer(db)
        assert (await issuer.issue(file_record.id, OWNER_ID, password="abcd")).has_password
        assert (await issuer.issue(file_record.id, OWNER_ID, password="y" * 50)).has_password

    @pytest.mark.asyncio
    async def test_too_many_bytes(self, db, file_record):
        """30 characters but 90 UTF-8 bytes, beyond what bcrypt reads."""
        with pytest.raises(ValidationError) as exc_info:
            await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="한" * 30)
        assert exc_info.value.constraint == "max_bytes"

    @pytest.mark.asyncio
    async def test_exactly_72_bytes_is_accepted(self, db, file_record):
        share_link = await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="€" * 24)
        assert verify_password("€" * 24, share_link.password_hash)

    @pytest.mark.asyncio
    async def test_nul_character(self, db, file_record):
        with pytest.raises(ValidationError) as exc_info:
            await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="ab\x00cd")
        assert exc_info.value.constraint == "invalid_characters"

    @pytest.mark.asyncio
    async def test_empty_password_is_rejected(self, db, file_record):
        with pytest.raises(ValidationError):
            await TokenIssuer(db).issue(file_record.id, OWNER_ID, password="")

    @pytest.mark.asyncio
    async def test_nothing_persisted_on_rejection(self, db, file_record):
        issuer = TokenIssuer(db)
        with pytest.raises(ValidationError):
            await issuer.issue(file_record.id, OWNER_ID, password="abc")
        assert await issuer.store.list_for_file(file_record.id) == []


class TestTokenCollision:
    """Duplicate tokens are regenerated up to the configured attempts."""

    @pytest.mark.asyncio
    async def test_regenerates_on_collision(self, db, file_record, monkeypatch):
        issuer = TokenIssuer(db)
        existing = await issuer.issue(file_record.id, OWNER_ID)

        tokens = iter([existing.token, "fresh-token-value-0123456789abcdefghijklmnop"])
        monkeypatch.setattr(token_issuer_module, "generate_share_token", lambda: next(tokens))

        share_link = await issuer.issue(file_record.id, OWNER_ID)
        assert share_link.token == "fresh-token-value-0123456789abcdefghijklmnop"

        links = await issuer.store.list_for_file(file_record.id)
        assert len(links) == 2

    @pytest.mark.asyncio
    async def test_conflict_after_exhausting_attempts(self, db, file_record, monkeypatch):
        issuer = TokenIssuer(db)
        existing = await issuer.issue(file_record.id, OWNER_ID)
        taken = existing.token
        monkeypatch.setattr(token_issuer_module, "generate_share_token", lambda: taken)

        with pytest.raises(ConflictError):
            await issuer.issue(file_record.id, OWNER_ID)

        # The surrounding transaction is still usable
        links = await issuer.store.list_for_file(file_record.id)
        assert [link.token for link in links] == [taken]


class TestConcurrentIssue:

    @pytest.mark.asyncio
    async def test_concurrent_issues_distinct_tokens(self, session_maker, file_record):
        async def issue_once() -> str:
            async with session_maker() as session:
                share_link = await TokenIssuer(session).issue(file_record.id, OWNER_ID)
                await session.commit()
                return share_link.token

        tokens = await asyncio.gather(*(issue_once() for _ in range(8)))
        assert len(set(tokens)) == 8
