"""Tests for identity document storage.

Tests cover:
- Upload validation (type, size, filename)
- Inline storage: save, read, list, replace, delete
- Object storage (moto): content placement, replacement ordering, cleanup
- Ownership checks and read deadlines
- Backend selection from configuration
"""

import asyncio
import base64
import hashlib
from uuid import uuid4

import pytest
from moto import mock_aws
from sqlalchemy.exc import SQLAlchemyError

from lendflow.core.config import DocumentSettings, S3Settings, Settings, StorageBackend
from lendflow.db.models import (
    ActivationAuditLog,
    AuditActionType,
    DocumentCategory,
    DocumentType,
    StorageKind,
    VerificationStatus,
)
from lendflow.services.documents import (
    InlineDocumentStore,
    ObjectStorageDocumentStore,
    create_document_store,
    validate_upload,
)
from lendflow.services.errors import (
    DocumentReadTimeoutError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from lendflow.services.object_store import ContentIntegrityError, ObjectStoreClient
from tests.factories import (
    PNG_BYTES,
    added_objects,
    build_document,
    make_session,
    stored_keys,
)

MB = 1024 * 1024
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x01" * 128


@pytest.fixture
def doc_settings() -> DocumentSettings:
    return DocumentSettings()


@pytest.fixture
def object_client():
    """ObjectStoreClient bound to a moto bucket."""
    with mock_aws():
        client = ObjectStoreClient.from_settings(
            S3Settings(
                access_key="testing",
                secret_key="testing",
                bucket="lendflow-test-documents",
            )
        )
        client.ensure_bucket()
        yield client


def error_codes(exc_info) -> dict[str, str]:
    return {error.field: error.code for error in exc_info.value.errors}


# =============================================================================
# Upload Validation
# =============================================================================


class TestValidateUpload:
    """Tests for upload rules."""

    def check(self, data=PNG_BYTES, mime_type="image/png", filename="id.png", max_bytes=10 * MB):
        validate_upload(
            data,
            mime_type,
            filename,
            allowed_mime_types=DocumentSettings().allowed_mime_types,
            max_bytes=max_bytes,
        )

    def test_valid_upload(self):
        self.check()

    def test_mime_type_case_insensitive(self):
        self.check(mime_type="IMAGE/PNG")

    def test_empty_file_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.check(data=b"")
        assert error_codes(exc_info) == {"file": "empty_file"}

    def test_oversized_file_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.check(data=b"x" * (MB + 1), max_bytes=MB)
        assert error_codes(exc_info) == {"file": "file_too_large"}

    def test_file_at_limit_accepted(self):
        self.check(data=b"x" * MB, max_bytes=MB)

    def test_non_image_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.check(mime_type="application/pdf")
        assert error_codes(exc_info) == {"mime_type": "invalid_file_type"}

    @pytest.mark.parametrize("filename", ["payload.exe", "photo.js.png", "run.BAT"])
    def test_dangerous_filename_rejected(self, filename):
        with pytest.raises(ValidationError) as exc_info:
            self.check(filename=filename)
        assert error_codes(exc_info) == {"filename": "invalid_filename"}

    def test_long_filename_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.check(filename="a" * 252 + ".png")
        assert error_codes(exc_info) == {"filename": "filename_too_long"}

    def test_every_violation_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            self.check(data=b"", mime_type="text/html", filename="")
        assert error_codes(exc_info) == {
            "file": "empty_file",
            "mime_type": "invalid_file_type",
            "filename": "required",
        }


# =============================================================================
# Inline Storage
# =============================================================================


class TestInlineSave:
    """Tests for saving documents inline."""

    @pytest.mark.asyncio
    async def test_save_encodes_content_in_row(self, doc_settings, user_id):
        session = make_session()
        store = InlineDocumentStore(session, doc_settings)

        document = await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")

        assert document.user_id == user_id
        assert document.document_type == DocumentType.SELFIE
        assert document.document_category == DocumentCategory.IDENTITY
        assert document.storage_kind == StorageKind.INLINE
        assert document.storage_key is None
        assert base64.b64decode(document.inline_data) == PNG_BYTES
        assert document.file_size == len(PNG_BYTES)
        assert document.file_hash == hashlib.sha256(PNG_BYTES).hexdigest()
        assert document.verification_status == VerificationStatus.PENDING
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_save_records_audit_entry(self, doc_settings, user_id):
        session = make_session()
        store = InlineDocumentStore(session, doc_settings)

        document = await store.save(user_id, PNG_BYTES, "image/png", "id_front", "front.png")

        (entry,) = added_objects(session, ActivationAuditLog)
        assert entry.action_type == AuditActionType.DOCUMENT_UPLOAD
        assert entry.new_value["document_id"] == str(document.id)
        assert entry.new_value["document_type"] == "id_front"

    @pytest.mark.asyncio
    async def test_invalid_upload_writes_nothing(self, doc_settings, user_id):
        session = make_session()
        store = InlineDocumentStore(session, doc_settings)

        with pytest.raises(ValidationError):
            await store.save(user_id, PNG_BYTES, "application/pdf", "selfie", "me.pdf")

        session.add.assert_not_called()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_document_type(self, doc_settings, user_id):
        store = InlineDocumentStore(make_session(), doc_settings)
        with pytest.raises(ValidationError) as exc_info:
            await store.save(user_id, PNG_BYTES, "image/png", "utility_bill", "bill.png")
        assert error_codes(exc_info) == {"document_type": "invalid_document_type"}

    @pytest.mark.asyncio
    async def test_six_megabytes_accepted_on_upload(self, doc_settings, user_id):
        store = InlineDocumentStore(make_session(), doc_settings)
        document = await store.save(user_id, b"x" * (6 * MB), "image/jpeg", "selfie", "me.jpg")
        assert document.file_size == 6 * MB

    @pytest.mark.asyncio
    async def test_commit_failure_raises_storage_error(self, doc_settings, user_id):
        session = make_session()
        session.commit.side_effect = SQLAlchemyError("deadlock detected")
        store = InlineDocumentStore(session, doc_settings)

        with pytest.raises(StorageError) as exc_info:
            await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")

        session.rollback.assert_awaited_once()
        assert exc_info.value.operation == "save_document"


class TestInlineRead:
    """Tests for reading inline documents."""

    @pytest.mark.asyncio
    async def test_get_data_returns_content(self, doc_settings, user_id):
        document = build_document(user_id)
        store = InlineDocumentStore(make_session(document), doc_settings)

        content = await store.get_data(document.id, user_id)

        assert content.data == PNG_BYTES
        assert content.mime_type == "image/png"
        assert content.as_data_url() == (
            "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
        )

    @pytest.mark.asyncio
    async def test_other_users_document_is_not_found(self, doc_settings):
        # The ownership filter makes the query come back empty
        store = InlineDocumentStore(make_session(None), doc_settings)
        with pytest.raises(NotFoundError):
            await store.get_data(uuid4(), uuid4())

    @pytest.mark.asyncio
    async def test_corrupted_inline_content(self, doc_settings, user_id):
        document = build_document(user_id)
        document.inline_data = "not base64!!"
        store = InlineDocumentStore(make_session(document), doc_settings)

        with pytest.raises(StorageError):
            await store.get_data(document.id, user_id)

    @pytest.mark.asyncio
    async def test_slow_read_times_out(self, user_id):
        session = make_session()

        async def slow_execute(query):
            await asyncio.sleep(1)

        session.execute = slow_execute
        store = InlineDocumentStore(session, DocumentSettings(read_timeout_seconds=0.05))

        document_id = uuid4()
        with pytest.raises(DocumentReadTimeoutError) as exc_info:
            await store.get_data(document_id, user_id)
        assert exc_info.value.document_id == document_id

    @pytest.mark.asyncio
    async def test_list_for_user(self, doc_settings, user_id):
        documents = [build_document(user_id), build_document(user_id)]
        store = InlineDocumentStore(make_session(documents), doc_settings)

        assert await store.list_for_user(user_id) == documents


class TestInlineReplaceAndDelete:
    """Tests for admin replace and delete on inline documents."""

    @pytest.mark.asyncio
    async def test_replace_swaps_content_and_resets_review(self, doc_settings, user_id):
        document = build_document(user_id, verification_status=VerificationStatus.VERIFIED)
        session = make_session(document)
        store = InlineDocumentStore(session, doc_settings)
        admin_id = uuid4()

        result = await store.replace(
            document.id, user_id, JPEG_BYTES, "image/jpeg", "new.jpg", actor_id=admin_id
        )

        assert base64.b64decode(result.inline_data) == JPEG_BYTES
        assert result.mime_type == "image/jpeg"
        assert result.original_filename == "new.jpg"
        assert result.file_hash == hashlib.sha256(JPEG_BYTES).hexdigest()
        assert result.verification_status == VerificationStatus.PENDING
        (entry,) = added_objects(session, ActivationAuditLog)
        assert entry.action_type == AuditActionType.DOCUMENT_REPLACE
        assert entry.actor_id == admin_id

    @pytest.mark.asyncio
    async def test_replace_ceiling_is_lower_than_upload(self, doc_settings, user_id):
        document = build_document(user_id)
        session = make_session(document)
        store = InlineDocumentStore(session, doc_settings)

        with pytest.raises(ValidationError) as exc_info:
            await store.replace(document.id, user_id, b"x" * (6 * MB), "image/png", "big.png")

        assert error_codes(exc_info) == {"file": "file_too_large"}
        assert base64.b64decode(document.inline_data) == PNG_BYTES
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_replace_missing_document(self, doc_settings):
        store = InlineDocumentStore(make_session(None), doc_settings)
        with pytest.raises(NotFoundError):
            await store.replace(uuid4(), uuid4(), PNG_BYTES, "image/png", "x.png")

    @pytest.mark.asyncio
    async def test_delete(self, doc_settings, user_id):
        document = build_document(user_id)
        session = make_session(document)
        store = InlineDocumentStore(session, doc_settings)

        await store.delete(document.id, user_id, actor_id=uuid4())

        session.delete.assert_awaited_once_with(document)
        session.commit.assert_awaited_once()
        (entry,) = added_objects(session, ActivationAuditLog)
        assert entry.action_type == AuditActionType.DOCUMENT_DELETE


# =============================================================================
# Object Storage
# =============================================================================


class TestObjectStorage:
    """Tests for the S3-backed document store."""

    @pytest.mark.asyncio
    async def test_save_puts_content_in_bucket(self, doc_settings, object_client, user_id):
        store = ObjectStorageDocumentStore(make_session(), doc_settings, object_client)

        document = await store.save(user_id, PNG_BYTES, "image/png", "id_back", "back.png")

        assert document.storage_kind == StorageKind.OBJECT_KEY
        assert document.inline_data is None
        assert document.storage_key.startswith(f"users/{user_id}/documents/{document.id}/")
        data, _ = object_client.get(document.storage_key)
        assert data == PNG_BYTES

    @pytest.mark.asyncio
    async def test_get_data_reads_from_bucket(self, doc_settings, object_client, user_id):
        store = ObjectStorageDocumentStore(make_session(), doc_settings, object_client)
        document = await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")

        reader = ObjectStorageDocumentStore(make_session(document), doc_settings, object_client)
        content = await reader.get_data(document.id, user_id)

        assert content.data == PNG_BYTES

    @pytest.mark.asyncio
    async def test_tampered_content_is_detected(self, doc_settings, object_client, user_id):
        document = build_document(
            user_id, storage_kind=StorageKind.OBJECT_KEY, storage_key="users/x/documents/y/z"
        )
        object_client.put(document.storage_key, b"something else", content_type="image/png")
        store = ObjectStorageDocumentStore(make_session(document), doc_settings, object_client)

        with pytest.raises(ContentIntegrityError):
            await store.get_data(document.id, user_id)

    @pytest.mark.asyncio
    async def test_replace_stores_new_object_then_removes_old(
        self, doc_settings, object_client, user_id
    ):
        store = ObjectStorageDocumentStore(make_session(), doc_settings, object_client)
        document = await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")
        old_key = document.storage_key

        replacer = ObjectStorageDocumentStore(make_session(document), doc_settings, object_client)
        result = await replacer.replace(document.id, user_id, JPEG_BYTES, "image/jpeg", "new.jpg")

        assert result.storage_key != old_key
        keys = stored_keys(object_client, f"users/{user_id}/")
        assert keys == [result.storage_key]

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_old_object(self, doc_settings, object_client, user_id):
        store = ObjectStorageDocumentStore(make_session(), doc_settings, object_client)
        document = await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")
        old_key = document.storage_key

        session = make_session(document)
        session.commit.side_effect = SQLAlchemyError("serialization failure")
        replacer = ObjectStorageDocumentStore(session, doc_settings, object_client)

        with pytest.raises(StorageError):
            await replacer.replace(document.id, user_id, JPEG_BYTES, "image/jpeg", "new.jpg")

        session.rollback.assert_awaited_once()
        prefix = f"users/{user_id}/documents/{document.id}/"
        assert stored_keys(object_client, prefix) == [old_key]

    @pytest.mark.asyncio
    async def test_failed_save_removes_uploaded_object(self, doc_settings, object_client, user_id):
        session = make_session()
        session.commit.side_effect = SQLAlchemyError("connection reset")
        store = ObjectStorageDocumentStore(session, doc_settings, object_client)

        with pytest.raises(StorageError):
            await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")

        assert stored_keys(object_client, f"users/{user_id}/") == []

    @pytest.mark.asyncio
    async def test_delete_removes_object(self, doc_settings, object_client, user_id):
        store = ObjectStorageDocumentStore(make_session(), doc_settings, object_client)
        document = await store.save(user_id, PNG_BYTES, "image/png", "selfie", "me.png")

        deleter = ObjectStorageDocumentStore(make_session(document), doc_settings, object_client)
        await deleter.delete(document.id, user_id)

        assert document.storage_key not in stored_keys(object_client)


# =============================================================================
# Backend Selection
# =============================================================================


class TestCreateDocumentStore:
    """Tests for choosing the backend from configuration."""

    def test_inline_by_default(self):
        store = create_document_store(make_session(), Settings())
        assert isinstance(store, InlineDocumentStore)

    def test_object_store_backend(self, object_client):
        settings = Settings(documents=DocumentSettings(backend=StorageBackend.OBJECT_STORE))
        store = create_document_store(make_session(), settings, client=object_client)
        assert isinstance(store, ObjectStorageDocumentStore)
