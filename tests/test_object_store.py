"""Tests for the S3-compatible object store client.

Tests cover:
- Bucket creation
- Put and get with SHA-256 integrity verification
- Error mapping (missing objects, missing bucket, tampered content)
- Delete

Uses moto for S3 mocking, so no MinIO instance is needed.
"""

import hashlib

import pytest
from moto import mock_aws

from lendflow.core.config import S3Settings
from lendflow.services.errors import StorageError
from lendflow.services.object_store import (
    DIGEST_METADATA_KEY,
    BucketNotFoundError,
    ContentIntegrityError,
    ObjectNotFoundError,
    ObjectStoreClient,
    ObjectStoreError,
    sha256_hex,
)
from tests.factories import stored_keys

BUCKET = "lendflow-test-documents"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def client():
    """ObjectStoreClient talking to moto.

    endpoint_url is left unset so moto intercepts every request.
    """
    with mock_aws():
        yield ObjectStoreClient(
            endpoint_url=None,
            access_key="test_access_key",
            secret_key="test_secret_key",  # noqa: S106
            bucket=BUCKET,
        )


@pytest.fixture
def client_with_bucket(client):
    client.ensure_bucket()
    return client


@pytest.fixture
def sample_content():
    return b"\x89PNG\r\n\x1a\nidentity document scan"


# ---------------------------------------------------------------------------
# Construction and buckets
# ---------------------------------------------------------------------------
class TestConstruction:
    """Tests for building clients."""

    def test_from_settings(self):
        settings = S3Settings(bucket="documents-bucket", access_key="k", secret_key="s")
        with mock_aws():
            client = ObjectStoreClient.from_settings(settings)
        assert client.bucket == "documents-bucket"

    def test_sha256_hex(self, sample_content):
        assert sha256_hex(sample_content) == hashlib.sha256(sample_content).hexdigest()


class TestEnsureBucket:
    """Tests for bucket creation."""

    def test_creates_missing_bucket(self, client):
        assert client.ensure_bucket() is True

    def test_existing_bucket(self, client):
        client.ensure_bucket()
        assert client.ensure_bucket() is False


# ---------------------------------------------------------------------------
# Put / Get
# ---------------------------------------------------------------------------
class TestPutAndGet:
    """Tests for storing and fetching content."""

    def test_put_returns_digest(self, client_with_bucket, sample_content):
        result = client_with_bucket.put(
            "users/u/documents/d/v1", sample_content, content_type="image/png"
        )
        assert result.key == "users/u/documents/d/v1"
        assert result.content_type == "image/png"
        assert result.sha256_digest == hashlib.sha256(sample_content).hexdigest()
        assert result.size_bytes == len(sample_content)

    def test_get_returns_content_and_metadata(self, client_with_bucket, sample_content):
        client_with_bucket.put(
            "users/u/documents/d/v1",
            sample_content,
            content_type="image/png",
            metadata={"user-id": "u"},
        )

        data, metadata = client_with_bucket.get("users/u/documents/d/v1")

        assert data == sample_content
        assert metadata.content_type == "image/png"
        assert metadata.sha256_digest == hashlib.sha256(sample_content).hexdigest()
        assert metadata.size_bytes == len(sample_content)

    def test_digest_is_stored_as_metadata(self, client_with_bucket, sample_content):
        client_with_bucket.put("key", sample_content)
        head = client_with_bucket._client.head_object(Bucket=BUCKET, Key="key")
        assert head["Metadata"][DIGEST_METADATA_KEY] == hashlib.sha256(sample_content).hexdigest()

    def test_expected_digest_mismatch(self, client_with_bucket, sample_content):
        client_with_bucket.put("key", sample_content)
        with pytest.raises(ContentIntegrityError):
            client_with_bucket.get("key", expected_digest="0" * 64)

    def test_stored_digest_mismatch(self, client_with_bucket, sample_content):
        # Overwrite the body behind the client's back, keeping the old digest
        client_with_bucket._client.put_object(
            Bucket=BUCKET,
            Key="key",
            Body=b"swapped",
            Metadata={DIGEST_METADATA_KEY: hashlib.sha256(sample_content).hexdigest()},
        )
        with pytest.raises(ContentIntegrityError):
            client_with_bucket.get("key")

    def test_missing_object(self, client_with_bucket):
        with pytest.raises(ObjectNotFoundError) as exc_info:
            client_with_bucket.get("does/not/exist")
        assert exc_info.value.key == "does/not/exist"
        assert exc_info.value.bucket == BUCKET

    def test_put_without_bucket(self, client, sample_content):
        with pytest.raises(BucketNotFoundError):
            client.put("key", sample_content)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------
class TestDelete:
    """Tests for deletion."""

    def test_delete(self, client_with_bucket, sample_content):
        client_with_bucket.put("key", sample_content)
        assert stored_keys(client_with_bucket) == ["key"]

        client_with_bucket.delete("key")

        assert stored_keys(client_with_bucket) == []

    def test_delete_missing_key_is_not_an_error(self, client_with_bucket):
        client_with_bucket.delete("never-stored")


class TestErrorHierarchy:
    """Tests for the error types."""

    def test_object_store_errors_are_storage_errors(self):
        error = ObjectNotFoundError("gone", bucket=BUCKET, key="k", operation="get")
        assert isinstance(error, ObjectStoreError)
        assert isinstance(error, StorageError)
        assert error.operation == "get"
        assert error.entity_id == "k"
