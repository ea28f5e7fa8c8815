"""Object store integration for proof videos.

Proof video payloads go to an S3-compatible bucket (MinIO in development)
under ``{key_prefix}/{uuid}.{ext}``. The SHA-256 of every payload is computed
before the write and stored as object metadata, so the digest recorded on the
ProofVideo row can be checked against the blob later.

Example:
    from shipproof.core.settings import get_settings
    from shipproof.services.storage import ObjectStoreClient

    client = ObjectStoreClient.from_settings(get_settings().s3)
    stored = client.store_proof_video(payload, extension="mp4", content_type="video/mp4")
    print(stored.url, stored.sha256_digest)
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

    from shipproof.core.config import S3Settings

logger = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = frozenset({"404", "NoSuchBucket"})


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


@dataclass(frozen=True)
class UploadResult:
    """What the object store holds after a successful write.

    ``url`` is what gets recorded as the proof video's ``video_url``;
    ``etag`` is kept as returned by S3 (quoted).
    """

    key: str
    bucket: str
    sha256_digest: str
    size_bytes: int
    etag: str
    url: str


class StorageError(Exception):
    """An object store call failed.

    ``operation`` names the S3 call (``upload``, ``delete``, ``head_bucket``...)
    and ``bucket``/``key`` identify the target when known.
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key
        self.operation = operation


class BucketNotFoundError(StorageError):
    """The configured bucket is missing; run ``shipproof ensure-bucket``."""


class ObjectStoreClient:
    """S3-compatible client bound to the proof video bucket.

    boto3 is synchronous; async callers run these methods in a worker thread.

    Args:
        endpoint_url: MinIO or other S3-compatible endpoint, None for AWS.
        access_key: Access key ID.
        secret_key: Secret access key.
        bucket: Bucket holding proof videos.
        region: Region name; MinIO accepts us-east-1.
        key_prefix: Prefix for proof video keys, slashes stripped.
        public_base_url: Base for object URLs when clients reach the bucket
            through something other than the endpoint (a CDN, a proxy).
        connect_timeout: Seconds to wait for a connection.
        read_timeout: Seconds to wait on a response.
        max_retries: Attempts for retryable failures.
    """

    def __init__(
        self,
        endpoint_url: str | None,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
        *,
        key_prefix: str = "proof-videos",
        public_base_url: str | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        max_retries: int = 3,
    ) -> None:
        self.bucket = bucket
        self.key_prefix = key_prefix.strip("/")
        self._endpoint_url = endpoint_url
        self._region = region
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

        self._client: S3Client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(
                signature_version="s3v4",
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"mode": "standard", "max_attempts": max_retries},
            ),
        )
        logger.debug("Object store ready: endpoint=%s bucket=%s", endpoint_url or "aws", bucket)

    @classmethod
    def from_settings(cls, settings: S3Settings) -> ObjectStoreClient:
        return cls(
            settings.endpoint,
            settings.access_key.get_secret_value(),
            settings.secret_key.get_secret_value(),
            settings.bucket,
            settings.region,
            key_prefix=settings.key_prefix,
            public_base_url=settings.public_base_url,
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
        )

    def _failure(
        self, operation: str, error: Exception, key: str | None = None
    ) -> StorageError:
        return StorageError(
            f"{operation} failed: {error}",
            bucket=self.bucket,
            key=key,
            operation=operation,
        )

    def object_url(self, key: str) -> str:
        """URL under which ``key`` can be fetched."""
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self._region}.amazonaws.com/{key}"

    def ensure_bucket(self) -> bool:
        """Create the bucket unless it already exists.

        Returns True when the bucket was created by this call.

        Raises:
            StorageError: If the bucket cannot be inspected or created.
        """
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            if _error_code(e) not in _MISSING_BUCKET_CODES:
                raise self._failure("head_bucket", e) from e
        except BotoCoreError as e:
            raise self._failure("head_bucket", e) from e
        else:
            return False

        create_args: dict = {"Bucket": self.bucket}
        # us-east-1 rejects an explicit LocationConstraint
        if self._region != "us-east-1":
            create_args["CreateBucketConfiguration"] = {"LocationConstraint": self._region}

        try:
            self._client.create_bucket(**create_args)
        except (ClientError, BotoCoreError) as e:
            raise self._failure("create_bucket", e) from e

        logger.info("Created bucket %s", self.bucket)
        return True

    def upload(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> UploadResult:
        """Write ``data`` to ``key`` with its SHA-256 digest in the metadata.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            StorageError: On any other client or transport failure.
        """
        digest = hashlib.sha256(data).hexdigest()
        object_metadata = {**(metadata or {}), "sha256-digest": digest}

        try:
            response = self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=object_metadata,
            )
        except ClientError as e:
            if _error_code(e) == "NoSuchBucket":
                raise BucketNotFoundError(
                    f"Bucket does not exist: {self.bucket}",
                    bucket=self.bucket,
                    key=key,
                    operation="upload",
                ) from e
            raise self._failure("upload", e, key) from e
        except BotoCoreError as e:
            raise self._failure("upload", e, key) from e

        logger.debug(
            "Stored %s/%s: %d bytes, sha256=%s...",
            self.bucket,
            key,
            len(data),
            digest[:16],
        )
        return UploadResult(
            key=key,
            bucket=self.bucket,
            sha256_digest=digest,
            size_bytes=len(data),
            etag=response.get("ETag", ""),
            url=self.object_url(key),
        )

    def store_proof_video(
        self,
        data: bytes,
        *,
        extension: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> UploadResult:
        """Store a proof video under a fresh random key."""
        name = f"{uuid.uuid4()}.{extension.lower()}"
        key = f"{self.key_prefix}/{name}" if self.key_prefix else name
        return self.upload(key, data, content_type=content_type, metadata=metadata)

    def delete(self, key: str) -> bool:
        """Remove ``key``; deleting a missing key succeeds.

        Raises:
            StorageError: If the store rejects the delete.
        """
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._failure("delete", e, key) from e

        logger.debug("Deleted %s/%s", self.bucket, key)
        return True
