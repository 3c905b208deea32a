"""
Tests for the S3 backed blob store.
"""
import io
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import boto3
import pytest
from botocore.client import Config
from botocore.exceptions import ClientError, EndpointConnectionError
from botocore.response import StreamingBody
from botocore.stub import Stubber

from fileshare.exceptions import StorageError
from fileshare.services.object_storage import BlobStore, ObjectStorageService


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id="test-access",
        aws_secret_access_key="test-secret",
        region_name="us-east-1",
        endpoint_url="https://objects.example.test",
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class TestObjectStorageService:

    def test_satisfies_protocol(self):
        assert isinstance(ObjectStorageService(client=MagicMock()), BlobStore)

    @pytest.mark.asyncio
    async def test_upload(self, s3_client):
        service = ObjectStorageService(client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_response("put_object", {})
            key = await service.upload_file(b"hello", "files/1/abc.txt", "text/plain")
            stubber.assert_no_pending_responses()
        assert key == "files/1/abc.txt"

    @pytest.mark.asyncio
    async def test_download(self, s3_client):
        service = ObjectStorageService(client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "get_object",
                {"Body": StreamingBody(io.BytesIO(b"hello"), 5), "ContentLength": 5},
            )
            assert await service.download_file("files/1/abc.txt") == b"hello"
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_download_missing_object(self, s3_client):
        service = ObjectStorageService(client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
            with pytest.raises(StorageError):
                await service.download_file("files/1/missing.txt")

    @pytest.mark.asyncio
    async def test_delete(self, s3_client):
        service = ObjectStorageService(client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "delete_object",
                {},
                {"Bucket": service.settings.s3_bucket, "Key": "files/1/abc.txt"},
            )
            assert await service.delete_file("files/1/abc.txt") is True

    @pytest.mark.asyncio
    async def test_client_error_becomes_storage_error(self, s3_client):
        service = ObjectStorageService(client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_client_error("put_object", service_error_code="NoSuchBucket")
            with pytest.raises(StorageError):
                await service.upload_file(b"hello", "files/1/abc.txt", "text/plain")

    @pytest.mark.asyncio
    async def test_presigned_url(self, s3_client):
        service = ObjectStorageService(client=s3_client)

        url = await service.generate_presigned_download_url(
            "files/1/abc.pdf", expires_in=120, filename="Résumé 2024.pdf"
        )

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert parsed.path.endswith("/files/1/abc.pdf")
        assert query["X-Amz-Expires"] == ["120"]
        assert "X-Amz-Signature" in query
        assert query["response-content-disposition"][0].startswith("attachment; filename*=UTF-8''")

    @pytest.mark.asyncio
    async def test_presigned_default_lifetime(self, s3_client):
        service = ObjectStorageService(client=s3_client)
        url = await service.generate_presigned_download_url("files/1/abc.pdf")
        query = parse_qs(urlparse(url).query)
        assert query["X-Amz-Expires"] == [str(service.settings.download_url_expire_seconds)]


class TestTransientFailures:
    """Network level failures are retried once."""

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        client = MagicMock()
        client.put_object.side_effect = [
            EndpointConnectionError(endpoint_url="https://objects.example.test"),
            {},
        ]
        service = ObjectStorageService(client=client)

        await service.upload_file(b"data", "files/1/x.bin", "application/octet-stream")

        assert client.put_object.call_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure(self):
        client = MagicMock()
        client.put_object.side_effect = EndpointConnectionError(
            endpoint_url="https://objects.example.test"
        )
        service = ObjectStorageService(client=client)

        with pytest.raises(StorageError):
            await service.upload_file(b"data", "files/1/x.bin", "application/octet-stream")
        assert client.put_object.call_count == service.settings.storage_retry_attempts

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        client = MagicMock()
        client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )
        service = ObjectStorageService(client=client)

        with pytest.raises(StorageError):
            await service.delete_file("files/1/x.bin")
        assert client.delete_object.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch):
        service = ObjectStorageService()
        monkeypatch.setattr(service.settings, "s3_access_key", "")
        with pytest.raises(StorageError):
            await service.upload_file(b"data", "files/1/x.bin", "text/plain")

    @pytest.mark.asyncio
    async def test_upload_parameters(self):
        client = MagicMock()
        client.put_object.return_value = {}
        service = ObjectStorageService(client=client)

        await service.upload_file(b"hello", "files/1/abc.txt", "text/plain")

        client.put_object.assert_called_once_with(
            Bucket=service.settings.s3_bucket,
            Key="files/1/abc.txt",
            Body=b"hello",
            ContentType="text/plain",
        )
