"""S3-compatible object storage for document content.

The client is bound to the single documents bucket. Every object carries
its SHA-256 digest in user metadata, and downloads are checked against it
(or against the digest recorded on the document row).

Example:
    client = ObjectStoreClient.from_settings(get_settings().s3)
    client.ensure_bucket()
    stored = client.put("users/<id>/documents/<doc>/<version>", data, content_type="image/png")
    data, stored = client.get(stored.key, expected_digest=stored.sha256_digest)
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lendflow.services.errors import StorageError

if TYPE_CHECKING:
    from lendflow.core.config import S3Settings

logger = logging.getLogger(__name__)

DIGEST_METADATA_KEY = "sha256-digest"

_MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey"})
_MISSING_BUCKET_CODES = frozenset({"404", "NoSuchBucket"})


@dataclass(frozen=True, slots=True)
class StoredObject:
    """What the bucket holds under a key."""

    key: str
    sha256_digest: str
    size_bytes: int
    content_type: str


class ObjectStoreError(StorageError):
    """Object storage failure, carrying the bucket and key involved."""

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(message, operation=operation, entity_id=key)


class ObjectNotFoundError(ObjectStoreError):
    """No object under the key."""


class BucketNotFoundError(ObjectStoreError):
    """The documents bucket does not exist."""


class ContentIntegrityError(ObjectStoreError):
    """Downloaded bytes do not match the recorded digest."""


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class ObjectStoreClient:
    """Synchronous boto3 client for the documents bucket.

    Async callers run these methods in an executor.
    """

    def __init__(
        self,
        endpoint_url: str | None,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        self.bucket = bucket
        self._region = region
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": max_retries, "mode": "standard"},
                signature_version="s3v4",
            ),
        )
        logger.debug("Object store bound to bucket %s at %s", bucket, endpoint_url or "AWS")

    @classmethod
    def from_settings(cls, settings: S3Settings) -> ObjectStoreClient:
        return cls(
            endpoint_url=settings.endpoint,
            access_key=settings.access_key.get_secret_value(),
            secret_key=settings.secret_key.get_secret_value(),
            bucket=settings.bucket,
            region=settings.region,
        )

    def _call(self, operation: str, key: str | None, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a boto3 call, mapping failures to ObjectStoreError subclasses."""
        try:
            return fn(Bucket=self.bucket, **kwargs)
        except ClientError as e:
            code = _error_code(e)
            if key is not None and code in _MISSING_OBJECT_CODES and operation != "put":
                error_cls: type[ObjectStoreError] = ObjectNotFoundError
                message = f"No object {self.bucket}/{key}"
            elif code == "NoSuchBucket":
                error_cls = BucketNotFoundError
                message = f"Bucket does not exist: {self.bucket}"
            else:
                error_cls = ObjectStoreError
                message = f"{operation} failed: {e}"
            raise error_cls(message, bucket=self.bucket, key=key, operation=operation) from e
        except BotoCoreError as e:
            raise ObjectStoreError(
                f"{operation} failed: {e}", bucket=self.bucket, key=key, operation=operation
            ) from e

    def ensure_bucket(self) -> bool:
        """Create the bucket if missing. Returns True when it was created."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
            return False
        except ClientError as e:
            if _error_code(e) not in _MISSING_BUCKET_CODES:
                raise ObjectStoreError(
                    f"Cannot check bucket: {e}", bucket=self.bucket, operation="head_bucket"
                ) from e

        # us-east-1 rejects an explicit LocationConstraint
        location = (
            {}
            if self._region == "us-east-1"
            else {"CreateBucketConfiguration": {"LocationConstraint": self._region}}
        )
        self._call("create_bucket", None, self._client.create_bucket, **location)
        logger.info("Created documents bucket %s", self.bucket)
        return True

    def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        """Store content under a key, recording its digest.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            ObjectStoreError: If the upload fails.
        """
        digest = sha256_hex(data)
        self._call(
            "put",
            key,
            self._client.put_object,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata={**(metadata or {}), DIGEST_METADATA_KEY: digest},
        )
        logger.debug("Stored %s (%d bytes, sha256=%s)", key, len(data), digest[:16])
        return StoredObject(
            key=key, sha256_digest=digest, size_bytes=len(data), content_type=content_type
        )

    def get(self, key: str, *, expected_digest: str | None = None) -> tuple[bytes, StoredObject]:
        """Fetch content and verify it.

        expected_digest, when given, takes precedence over the digest stored
        with the object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ContentIntegrityError: If the bytes do not match the digest.
            ObjectStoreError: If the download fails.
        """
        response = self._call("get", key, self._client.get_object, Key=key)
        data = response["Body"].read()

        digest = sha256_hex(data)
        recorded = expected_digest or response.get("Metadata", {}).get(DIGEST_METADATA_KEY)
        if recorded and recorded != digest:
            raise ContentIntegrityError(
                f"Digest mismatch for {key}: recorded {recorded[:16]}, got {digest[:16]}",
                bucket=self.bucket,
                key=key,
                operation="get",
            )

        return data, StoredObject(
            key=key,
            sha256_digest=digest,
            size_bytes=len(data),
            content_type=response.get("ContentType", "application/octet-stream"),
        )

    def delete(self, key: str) -> None:
        """Delete an object. A missing key is not an error."""
        self._call("delete", key, self._client.delete_object, Key=key)
        logger.debug("Deleted %s", key)
