"""Tests for the proof video object store.

Tests cover:
- Bucket creation and idempotence
- Uploads with SHA-256 digest in metadata
- Random keys under the configured prefix
- URL construction for MinIO, public base URLs and AWS
- Deletes
- Error mapping (missing bucket, client errors)

Uses moto for S3 mocking to enable fast unit tests without Docker.
"""

import hashlib
import os
import re
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from shipproof.core.config import S3Settings
from shipproof.services.storage import (
    BucketNotFoundError,
    ObjectStoreClient,
    StorageError,
    UploadResult,
)

BUCKET = "shipproof-test"


def object_exists(client: ObjectStoreClient, key: str) -> bool:
    listing = client._client.list_objects_v2(Bucket=client.bucket, Prefix=key)
    return any(item["Key"] == key for item in listing.get("Contents", []))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_s3_client():
    """ObjectStoreClient backed by a moto-mocked boto3 client.

    moto cannot intercept a custom endpoint_url, so the wrapper is built with
    one (for URL construction) and its internal client is swapped out.
    """
    with mock_aws():
        import boto3

        s3_client = boto3.client(
            "s3",
            aws_access_key_id="test_access_key",
            aws_secret_access_key="test_secret_key",  # noqa: S106
            region_name="us-east-1",
        )

        client = ObjectStoreClient(
            endpoint_url="http://minio:9000",
            access_key="test_access_key",
            secret_key="test_secret_key",  # noqa: S106
            bucket=BUCKET,
        )
        client._client = s3_client
        yield client


@pytest.fixture
def mock_s3_client_with_bucket(mock_s3_client):
    mock_s3_client.ensure_bucket()
    return mock_s3_client


@pytest.fixture
def sample_content() -> bytes:
    return b"\x00\x00\x00\x18ftypmp42 sample proof video"


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------
class TestObjectStoreClientInit:
    """Tests for client construction."""

    def test_from_settings(self):
        settings = S3Settings(
            endpoint="http://localhost:9000",
            access_key="key",
            secret_key="secret",  # noqa: S106
            bucket="proofs-bucket",
            key_prefix="/videos/",
        )

        client = ObjectStoreClient.from_settings(settings)

        assert client.bucket == "proofs-bucket"
        assert client.key_prefix == "videos"

    def test_object_url_uses_endpoint(self):
        client = ObjectStoreClient("http://minio:9000/", "k", "s", BUCKET)
        assert client.object_url("a/b.mp4") == f"http://minio:9000/{BUCKET}/a/b.mp4"

    def test_object_url_prefers_public_base(self):
        client = ObjectStoreClient(
            "http://minio:9000", "k", "s", BUCKET, public_base_url="https://cdn.example.com/"
        )
        assert client.object_url("a/b.mp4") == "https://cdn.example.com/a/b.mp4"

    def test_object_url_for_aws(self):
        client = ObjectStoreClient(None, "k", "s", BUCKET, region="eu-west-1")
        assert client.object_url("k.mp4") == f"https://{BUCKET}.s3.eu-west-1.amazonaws.com/k.mp4"


class TestBucketManagement:
    """Tests for ensure_bucket."""

    def test_ensure_bucket_creates_new(self, mock_s3_client):
        assert mock_s3_client.ensure_bucket() is True

    def test_ensure_bucket_existing(self, mock_s3_client):
        mock_s3_client.ensure_bucket()
        assert mock_s3_client.ensure_bucket() is False

    def test_ensure_bucket_access_denied(self):
        client = ObjectStoreClient("http://minio:9000", "k", "s", BUCKET)
        client._client = MagicMock()
        client._client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket"
        )

        with pytest.raises(StorageError) as exc_info:
            client.ensure_bucket()

        assert exc_info.value.operation == "head_bucket"
        client._client.create_bucket.assert_not_called()

    def test_ensure_bucket_unreachable_endpoint(self):
        client = ObjectStoreClient("http://minio:9000", "k", "s", BUCKET)
        client._client = MagicMock()
        client._client.head_bucket.side_effect = EndpointConnectionError(
            endpoint_url="http://minio:9000"
        )

        with pytest.raises(StorageError) as exc_info:
            client.ensure_bucket()

        assert exc_info.value.operation == "head_bucket"
        assert exc_info.value.bucket == BUCKET

    def test_ensure_bucket_create_transport_failure(self):
        client = ObjectStoreClient("http://minio:9000", "k", "s", BUCKET)
        client._client = MagicMock()
        client._client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket"
        )
        client._client.create_bucket.side_effect = EndpointConnectionError(
            endpoint_url="http://minio:9000"
        )

        with pytest.raises(StorageError) as exc_info:
            client.ensure_bucket()

        assert exc_info.value.operation == "create_bucket"


class TestUpload:
    """Tests for upload and store_proof_video."""

    def test_upload_records_digest(self, mock_s3_client_with_bucket, sample_content):
        result = mock_s3_client_with_bucket.upload(
            "proof-videos/x.mp4", sample_content, content_type="video/mp4"
        )

        assert isinstance(result, UploadResult)
        assert result.bucket == BUCKET
        assert result.sha256_digest == hashlib.sha256(sample_content).hexdigest()
        assert result.size_bytes == len(sample_content)
        assert result.url == f"http://minio:9000/{BUCKET}/proof-videos/x.mp4"

        head = mock_s3_client_with_bucket._client.head_object(
            Bucket=BUCKET, Key="proof-videos/x.mp4"
        )
        assert head["ContentType"] == "video/mp4"
        assert head["Metadata"]["sha256-digest"] == result.sha256_digest

    def test_upload_with_metadata(self, mock_s3_client_with_bucket, sample_content):
        mock_s3_client_with_bucket.upload(
            "k.mp4", sample_content, metadata={"shipment-id": "abc"}
        )

        head = mock_s3_client_with_bucket._client.head_object(Bucket=BUCKET, Key="k.mp4")
        assert head["Metadata"]["shipment-id"] == "abc"

    def test_upload_to_missing_bucket(self, mock_s3_client, sample_content):
        with pytest.raises(BucketNotFoundError) as exc_info:
            mock_s3_client.upload("k.mp4", sample_content)

        assert exc_info.value.bucket == BUCKET
        assert exc_info.value.operation == "upload"

    def test_store_proof_video_uses_random_prefixed_key(
        self, mock_s3_client_with_bucket, sample_content
    ):
        first = mock_s3_client_with_bucket.store_proof_video(
            sample_content, extension="MP4", content_type="video/mp4"
        )
        second = mock_s3_client_with_bucket.store_proof_video(
            sample_content, extension="mp4", content_type="video/mp4"
        )

        pattern = re.compile(r"^proof-videos/[0-9a-f-]{36}\.mp4$")
        assert pattern.match(first.key)
        assert pattern.match(second.key)
        assert first.key != second.key
        assert first.sha256_digest == second.sha256_digest


class TestDelete:
    """Tests for delete."""

    def test_delete_existing_object(self, mock_s3_client_with_bucket, sample_content):
        mock_s3_client_with_bucket.upload("k.mp4", sample_content)

        assert mock_s3_client_with_bucket.delete("k.mp4") is True
        assert object_exists(mock_s3_client_with_bucket, "k.mp4") is False

    def test_delete_is_idempotent(self, mock_s3_client_with_bucket):
        assert mock_s3_client_with_bucket.delete("never-written.mp4") is True

    def test_delete_leaves_other_objects(self, mock_s3_client_with_bucket, sample_content):
        mock_s3_client_with_bucket.upload("k.mp4", sample_content)
        mock_s3_client_with_bucket.upload("other.mp4", sample_content)

        mock_s3_client_with_bucket.delete("k.mp4")

        assert object_exists(mock_s3_client_with_bucket, "other.mp4") is True

    def test_delete_failure_wrapped(self):
        client = ObjectStoreClient("http://minio:9000", "k", "s", BUCKET)
        client._client = MagicMock()
        client._client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteObject"
        )

        with pytest.raises(StorageError) as exc_info:
            client.delete("k.mp4")

        assert exc_info.value.key == "k.mp4"
        assert exc_info.value.operation == "delete"


@pytest.mark.integration
class TestMinIOIntegration:
    """Round trip against a running MinIO (``-m integration``)."""

    def test_store_and_delete(self, test_settings, sample_content):
        client = ObjectStoreClient(
            os.environ.get("TEST_S3_ENDPOINT", "http://localhost:9000"),
            os.environ.get("TEST_S3_ACCESS_KEY", "minioadmin"),
            os.environ.get("TEST_S3_SECRET_KEY", "minioadmin"),
            test_settings.s3.bucket,
        )
        client.ensure_bucket()

        stored = client.store_proof_video(
            sample_content, extension="mp4", content_type="video/mp4"
        )

        assert object_exists(client, stored.key)
        client.delete(stored.key)
        assert not object_exists(client, stored.key)
