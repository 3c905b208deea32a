"""
Shared fixtures: a throwaway SQLite database per test, an in-memory blob
store and an HTTP client bound to the app.
"""
# Settings are read once and cached, so the environment is prepared before
# anything from fileshare is imported.
import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="fileshare-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["ENVIRONMENT"] = "DEV"
os.environ["SHARE_PASSWORD_HASH_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_DIR"] = ""
os.environ["STORAGE_RETRY_INITIAL_DELAY"] = "0"
os.environ["STORAGE_RETRY_MAX_DELAY"] = "0"
os.environ["JWT_SECRET_KEY"] = "test-secret"

from typing import Dict, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import fileshare.models  # noqa: F401
from fileshare.database import Base, create_engine_for_url, get_db
from fileshare.dependencies.auth import get_blob_store
from fileshare.exceptions import StorageError
from fileshare.main import app
from fileshare.models.file import FileRecord
from fileshare.services.file import FileService
from fileshare.utils.security import create_access_token

OWNER_ID = 1
OTHER_OWNER_ID = 2


class FakeBlobStore:
    """In-memory blob store with switchable failures."""

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.deleted = []
        self.presigned = []
        self.fail_upload = False
        self.fail_delete = False
        self.fail_presign = False

    async def upload_file(self, file_content: bytes, object_name: str, content_type: str) -> str:
        if self.fail_upload:
            raise StorageError("upload failed")
        self.objects[object_name] = (file_content, content_type)
        return object_name

    async def download_file(self, object_name: str) -> bytes:
        return self.objects[object_name][0]

    async def delete_file(self, object_name: str) -> bool:
        if self.fail_delete:
            raise StorageError("delete failed")
        self.objects.pop(object_name, None)
        self.deleted.append(object_name)
        return True

    async def generate_presigned_download_url(
        self,
        object_name: str,
        expires_in: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> str:
        if self.fail_presign:
            raise StorageError("presign failed")
        self.presigned.append((object_name, expires_in, filename))
        return f"https://blobs.example.test/{object_name}?X-Expires={expires_in}"


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database file per test (foreign keys on, busy timeout set)."""
    test_engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest_asyncio.fixture
async def file_record(db, blob_store) -> FileRecord:
    """A committed 11 byte text file owned by OWNER_ID."""
    service = FileService(db, blob_store)
    record = await service.upload(OWNER_ID, b"hello world", "report.txt", "text/plain")
    await db.commit()
    return record


@pytest_asyncio.fixture
async def client(session_maker, blob_store):
    """HTTP client talking to the app in-process."""

    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers():
    return {"Authorization": f"Bearer {create_access_token(OWNER_ID)}"}


@pytest.fixture
def other_owner_headers():
    return {"Authorization": f"Bearer {create_access_token(OTHER_OWNER_ID)}"}
