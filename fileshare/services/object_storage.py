"""
S3 compatible object storage integration.
Handles upload, download, deletion and presigned download URLs.

boto3 is blocking, so every call is pushed to a worker thread. Network level
failures are retried (once by default) and whatever survives the retry is
raised as StorageError.
"""
import asyncio
import logging
from typing import Any, Callable, Optional, Protocol, runtime_checkable
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
)

from fileshare.config import get_settings
from fileshare.exceptions import StorageError
from fileshare.utils.prometheus_metrics import record_external_request
from fileshare.utils.retry import retry_with_backoff

logger = logging.getLogger("fileshare.storage")

# Failures worth a second attempt
TRANSIENT_ERRORS = (BotoConnectionError, HTTPClientError, ConnectionError, TimeoutError)


@runtime_checkable
class BlobStore(Protocol):
    """Byte-level blob store consumed by the file and share services."""

    async def upload_file(self, file_content: bytes, object_name: str, content_type: str) -> str: ...
    async def download_file(self, object_name: str) -> bytes: ...
    async def delete_file(self, object_name: str) -> bool: ...
    async def generate_presigned_download_url(
        self,
        object_name: str,
        expires_in: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> str: ...


class ObjectStorageService:
    """
    Blob store backed by an S3 compatible API.

    Objects live in a single bucket under ``files/{owner_id}/{name}``.
    Consumers of share links never receive bucket credentials, only
    short-lived presigned GET URLs.
    """

    def __init__(self, client: Any = None):
        self.settings = get_settings()
        self._s3_client = client

    def _get_s3_client(self):
        """Get or create the boto3 S3 client."""
        if self._s3_client is not None:
            return self._s3_client

        if not self.settings.s3_access_key or not self.settings.s3_secret_key:
            raise StorageError("Object storage credentials are not configured")

        self._s3_client = boto3.client(
            "s3",
            aws_access_key_id=self.settings.s3_access_key,
            aws_secret_access_key=self.settings.s3_secret_key,
            endpoint_url=self.settings.s3_endpoint_url or None,
            region_name=self.settings.s3_region_name,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
        )
        return self._s3_client

    async def _call(self, operation: str, func: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking client call in a thread with retry and metrics."""

        async def _attempt():
            async with record_external_request("object_storage"):
                return await asyncio.to_thread(func, **kwargs)

        try:
            return await retry_with_backoff(
                _attempt,
                max_attempts=self.settings.storage_retry_attempts,
                initial_delay=self.settings.storage_retry_initial_delay,
                max_delay=self.settings.storage_retry_max_delay,
                retryable_exceptions=TRANSIENT_ERRORS,
                target=f"storage.{operation}",
            )
        except (BotoCoreError, ClientError, *TRANSIENT_ERRORS) as e:
            logger.error(
                f"Object storage {operation} failed",
                exc_info=e,
                extra={"event": "storage", "operation": operation, "object": kwargs.get("Key")},
            )
            raise StorageError(f"Object storage {operation} failed") from e

    async def upload_file(
        self,
        file_content: bytes,
        object_name: str,
        content_type: str,
    ) -> str:
        """
        Upload bytes to the bucket.

        Args:
            file_content: The file content
            object_name: Object key (e.g. files/1/3f2a...c9.pdf)
            content_type: MIME type stored with the object

        Returns:
            The object key
        """
        client = self._get_s3_client()
        await self._call(
            "upload",
            client.put_object,
            Bucket=self.settings.s3_bucket,
            Key=object_name,
            Body=file_content,
            ContentType=content_type,
        )
        return object_name

    async def download_file(self, object_name: str) -> bytes:
        """Download an object's bytes. Share consumers never go through here."""
        client = self._get_s3_client()
        response = await self._call(
            "download",
            client.get_object,
            Bucket=self.settings.s3_bucket,
            Key=object_name,
        )
        body = response["Body"]
        try:
            return await asyncio.to_thread(body.read)
        finally:
            body.close()

    async def delete_file(self, object_name: str) -> bool:
        """Delete an object. Deleting a missing key succeeds."""
        client = self._get_s3_client()
        await self._call(
            "delete",
            client.delete_object,
            Bucket=self.settings.s3_bucket,
            Key=object_name,
        )
        return True

    async def generate_presigned_download_url(
        self,
        object_name: str,
        expires_in: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> str:
        """
        Generate a presigned GET URL for an object.

        Args:
            object_name: Object key
            expires_in: URL lifetime in seconds (default from settings)
            filename: Name offered to the browser via Content-Disposition

        Returns:
            The presigned URL
        """
        if expires_in is None:
            expires_in = self.settings.download_url_expire_seconds

        params = {"Bucket": self.settings.s3_bucket, "Key": object_name}
        if filename:
            params["ResponseContentDisposition"] = (
                f"attachment; filename*=UTF-8''{quote(filename)}"
            )

        client = self._get_s3_client()
        return await self._call(
            "presign",
            client.generate_presigned_url,
            ClientMethod="get_object",
            Params=params,
            ExpiresIn=expires_in,
            HttpMethod="GET",
        )


# Singleton instance
_storage_service: Optional[ObjectStorageService] = None


def get_storage_service() -> ObjectStorageService:
    """Get the singleton storage service instance."""
    global _storage_service
    if _storage_service is None:
        _storage_service = ObjectStorageService()
    return _storage_service
