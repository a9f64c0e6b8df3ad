"""Identity document storage.

DocumentStore holds the record logic shared by both physical encodings:
upload validation, ownership checks, listing, replacement ordering and
deletion. Subclasses only decide where the bytes live:

- InlineDocumentStore keeps a base64 payload in the document row.
- ObjectStorageDocumentStore puts the bytes in S3-compatible storage and
  keeps the object key in the row.

The backend is chosen once, from configuration, by create_document_store().
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import defer

from lendflow.core.config import StorageBackend
from lendflow.db.models import (
    ActivationAuditLog,
    AuditActionType,
    DocumentType,
    StorageKind,
    UserDocument,
    VerificationStatus,
)
from lendflow.services.errors import (
    DocumentReadTimeoutError,
    FieldError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from lendflow.services.object_store import ObjectStoreClient

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from lendflow.core.config import DocumentSettings, Settings

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255
DANGEROUS_EXTENSIONS = (".exe", ".bat", ".cmd", ".scr", ".pif", ".js", ".vbs")


@dataclass(frozen=True, slots=True)
class DocumentContent:
    """A document record together with its decoded bytes."""

    document: UserDocument
    data: bytes

    @property
    def mime_type(self) -> str:
        return self.document.mime_type

    def as_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def validate_upload(
    data: bytes,
    mime_type: str,
    filename: str,
    *,
    allowed_mime_types: list[str],
    max_bytes: int,
) -> None:
    """Check a file against type, size and filename rules.

    Raises:
        ValidationError: Listing every violated rule.
    """
    errors = []
    if not data:
        errors.append(FieldError("file", "empty_file", "No file content provided"))
    elif len(data) > max_bytes:
        errors.append(
            FieldError(
                "file",
                "file_too_large",
                f"File size exceeds the {max_bytes // (1024 * 1024)}MB limit",
            )
        )
    if (mime_type or "").lower() not in allowed_mime_types:
        errors.append(
            FieldError(
                "mime_type",
                "invalid_file_type",
                f"Invalid file type. Allowed types: {', '.join(allowed_mime_types)}",
            )
        )
    if not filename:
        errors.append(FieldError("filename", "required", "Filename is required"))
    elif len(filename) > MAX_FILENAME_LENGTH:
        errors.append(
            FieldError("filename", "filename_too_long", "Filename is too long")
        )
    elif any(ext in filename.lower() for ext in DANGEROUS_EXTENSIONS):
        errors.append(
            FieldError(
                "filename",
                "invalid_filename",
                "File name contains invalid characters or extensions",
            )
        )
    if errors:
        raise ValidationError(errors, "Invalid document upload")


def parse_document_type(value: DocumentType | str) -> DocumentType:
    """Coerce a document type, raising ValidationError when unknown."""
    if isinstance(value, DocumentType):
        return value
    try:
        return DocumentType(value)
    except ValueError:
        raise ValidationError(
            [
                FieldError(
                    "document_type",
                    "invalid_document_type",
                    f"Unknown document type: {value}",
                )
            ],
            "Invalid document upload",
        ) from None


class DocumentStore(ABC):
    """Stores and retrieves a user's identity documents.

    Every lookup filters by owner. A document that exists but belongs to
    someone else raises the same NotFoundError as a missing one.
    """

    storage_kind: StorageKind

    def __init__(self, session: AsyncSession, settings: DocumentSettings) -> None:
        self._session = session
        self._settings = settings

    # -------------------------------------------------------------------------
    # Backend hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def _put_content(
        self, user_id: UUID, document_id: UUID, data: bytes, mime_type: str
    ) -> dict[str, Any]:
        """Store bytes and return the storage descriptor columns."""

    @abstractmethod
    async def _read_content(self, document: UserDocument) -> bytes:
        """Load the bytes described by a document record."""

    @abstractmethod
    async def _discard_content(self, descriptor: dict[str, Any]) -> None:
        """Remove bytes previously stored under a descriptor."""

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def save(
        self,
        user_id: UUID,
        data: bytes,
        mime_type: str,
        document_type: DocumentType | str,
        filename: str,
        activation_profile_id: UUID | None = None,
    ) -> UserDocument:
        """Validate and store a new upload.

        Raises:
            ValidationError: If the file breaks type, size or name rules.
            StorageError: If the content or record cannot be stored.
        """
        doc_type = parse_document_type(document_type)
        validate_upload(
            data,
            mime_type,
            filename,
            allowed_mime_types=self._settings.allowed_mime_types,
            max_bytes=self._settings.max_upload_bytes,
        )

        document_id = uuid.uuid4()
        descriptor = await self._put_content(user_id, document_id, data, mime_type.lower())
        document = UserDocument(
            id=document_id,
            user_id=user_id,
            activation_profile_id=activation_profile_id,
            document_type=doc_type,
            document_category=doc_type.category,
            original_filename=filename,
            file_size=len(data),
            mime_type=mime_type.lower(),
            file_hash=hashlib.sha256(data).hexdigest(),
            verification_status=VerificationStatus.PENDING,
            **descriptor,
        )
        self._session.add(document)
        self._audit(document, AuditActionType.DOCUMENT_UPLOAD, actor_id=None)

        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            await self._cleanup(descriptor, document_id)
            logger.exception(
                "Failed to record uploaded document",
                extra={"operation": "save_document", "user_id": str(user_id)},
            )
            raise StorageError(
                "Failed to save document",
                operation="save_document",
                user_id=user_id,
                entity_id=document_id,
            ) from e

        logger.info(
            "Stored %s document %s for user %s (%d bytes, %s)",
            doc_type.value,
            document_id,
            user_id,
            len(data),
            self.storage_kind.value,
        )
        return document

    async def get(self, document_id: UUID, user_id: UUID) -> UserDocument:
        """Load a document record owned by the user.

        Raises:
            NotFoundError: If missing or owned by someone else.
        """
        query = select(UserDocument).where(
            UserDocument.id == document_id,
            UserDocument.user_id == user_id,
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            logger.exception(
                "Failed to load document",
                extra={"operation": "get_document", "document_id": str(document_id)},
            )
            raise StorageError(
                "Failed to load document",
                operation="get_document",
                user_id=user_id,
                entity_id=document_id,
            ) from e

        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    async def get_data(self, document_id: UUID, user_id: UUID) -> DocumentContent:
        """Load a document's content within the configured read deadline.

        Raises:
            NotFoundError: If missing or owned by someone else.
            DocumentReadTimeoutError: If loading takes longer than the deadline.
            StorageError: If the content cannot be read.
        """
        timeout = self._settings.read_timeout_seconds
        try:
            return await asyncio.wait_for(self._load(document_id, user_id), timeout=timeout)
        except TimeoutError as e:
            logger.warning(
                "Loading document %s timed out after %.1fs",
                document_id,
                timeout,
                extra={"operation": "get_document_data", "user_id": str(user_id)},
            )
            raise DocumentReadTimeoutError(document_id, timeout) from e

    async def list_for_user(self, user_id: UUID) -> list[UserDocument]:
        """All of a user's documents, newest first."""
        query = (
            select(UserDocument)
            .where(UserDocument.user_id == user_id)
            # Listing never needs the payload; touching it is a bug
            .options(defer(UserDocument.inline_data, raiseload=True))
            .order_by(UserDocument.created_at.desc(), UserDocument.id)
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            logger.exception(
                "Failed to list documents",
                extra={"operation": "list_documents", "user_id": str(user_id)},
            )
            raise StorageError(
                "Failed to list documents",
                operation="list_documents",
                user_id=user_id,
            ) from e
        return list(result.scalars().all())

    async def replace(
        self,
        document_id: UUID,
        user_id: UUID,
        data: bytes,
        mime_type: str,
        filename: str,
        *,
        actor_id: UUID | None = None,
    ) -> UserDocument:
        """Swap a document's content.

        The new content is stored first, then the record is updated and
        committed, and only then is the old content discarded. If the record
        update fails, the new content is removed and the old one is untouched.

        Raises:
            NotFoundError: If missing or owned by someone else.
            ValidationError: If the new file breaks type or size rules.
            StorageError: If the content or record cannot be stored.
        """
        document = await self.get(document_id, user_id)
        validate_upload(
            data,
            mime_type,
            filename,
            allowed_mime_types=self._settings.allowed_mime_types,
            max_bytes=self._settings.max_replace_bytes,
        )

        old_descriptor = self._descriptor(document)
        new_descriptor = await self._put_content(user_id, document_id, data, mime_type.lower())

        try:
            document.original_filename = filename
            document.file_size = len(data)
            document.mime_type = mime_type.lower()
            document.file_hash = hashlib.sha256(data).hexdigest()
            for column, value in new_descriptor.items():
                setattr(document, column, value)
            document.verification_status = VerificationStatus.PENDING
            document.verification_notes = None
            document.verified_at = None
            document.updated_at = datetime.now(UTC)
            self._audit(document, AuditActionType.DOCUMENT_REPLACE, actor_id=actor_id)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            await self._cleanup(new_descriptor, document_id)
            logger.exception(
                "Failed to update replaced document",
                extra={"operation": "replace_document", "document_id": str(document_id)},
            )
            raise StorageError(
                "Failed to replace document",
                operation="replace_document",
                user_id=user_id,
                entity_id=document_id,
            ) from e

        await self._cleanup(old_descriptor, document_id)
        logger.info("Replaced document %s for user %s", document_id, user_id)
        return document

    async def delete(
        self,
        document_id: UUID,
        user_id: UUID,
        *,
        actor_id: UUID | None = None,
    ) -> None:
        """Delete a document record, then its content.

        Raises:
            NotFoundError: If missing or owned by someone else.
            StorageError: If the record cannot be deleted.
        """
        document = await self.get(document_id, user_id)
        descriptor = self._descriptor(document)
        try:
            self._audit(document, AuditActionType.DOCUMENT_DELETE, actor_id=actor_id)
            await self._session.delete(document)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.exception(
                "Failed to delete document",
                extra={"operation": "delete_document", "document_id": str(document_id)},
            )
            raise StorageError(
                "Failed to delete document",
                operation="delete_document",
                user_id=user_id,
                entity_id=document_id,
            ) from e

        await self._cleanup(descriptor, document_id)
        logger.info("Deleted document %s for user %s", document_id, user_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _load(self, document_id: UUID, user_id: UUID) -> DocumentContent:
        document = await self.get(document_id, user_id)
        return DocumentContent(document=document, data=await self._read_content(document))

    async def _cleanup(self, descriptor: dict[str, Any], document_id: UUID) -> None:
        """Discard content after the record no longer needs it.

        Failures leave an unreferenced artifact behind; they are logged
        rather than raised because the record change already stands.
        """
        try:
            await self._discard_content(descriptor)
        except StorageError:
            logger.exception(
                "Failed to discard content of document %s",
                document_id,
                extra={"operation": "discard_content", "document_id": str(document_id)},
            )

    @staticmethod
    def _descriptor(document: UserDocument) -> dict[str, Any]:
        return {
            "storage_kind": document.storage_kind,
            "storage_key": document.storage_key,
            "inline_data": document.inline_data,
        }

    def _audit(
        self, document: UserDocument, action: AuditActionType, *, actor_id: UUID | None
    ) -> None:
        self._session.add(
            ActivationAuditLog(
                user_id=document.user_id,
                activation_profile_id=document.activation_profile_id,
                action_type=action,
                new_value={
                    "document_id": str(document.id),
                    "document_type": document.document_type.value,
                    "original_filename": document.original_filename,
                    "file_size": document.file_size,
                },
                actor_id=actor_id,
            )
        )


class InlineDocumentStore(DocumentStore):
    """Keeps content base64-encoded in the document row."""

    storage_kind = StorageKind.INLINE

    async def _put_content(
        self, user_id: UUID, document_id: UUID, data: bytes, mime_type: str
    ) -> dict[str, Any]:
        return {
            "storage_kind": StorageKind.INLINE,
            "storage_key": None,
            "inline_data": base64.b64encode(data).decode("ascii"),
        }

    async def _read_content(self, document: UserDocument) -> bytes:
        if not document.inline_data:
            raise StorageError(
                "Document has no inline content",
                operation="read_content",
                user_id=document.user_id,
                entity_id=document.id,
            )
        try:
            return base64.b64decode(document.inline_data, validate=True)
        except binascii.Error as e:
            raise StorageError(
                "Document content is corrupted",
                operation="read_content",
                user_id=document.user_id,
                entity_id=document.id,
            ) from e

    async def _discard_content(self, descriptor: dict[str, Any]) -> None:
        # Inline content goes away with the row or its overwrite
        return None


class ObjectStorageDocumentStore(DocumentStore):
    """Keeps content in S3-compatible object storage."""

    storage_kind = StorageKind.OBJECT_KEY

    def __init__(
        self,
        session: AsyncSession,
        settings: DocumentSettings,
        client: ObjectStoreClient,
    ) -> None:
        super().__init__(session, settings)
        self._client = client

    @staticmethod
    def object_key(user_id: UUID, document_id: UUID) -> str:
        """Unique key per stored version, so a replace never overwrites the old object."""
        return f"users/{user_id}/documents/{document_id}/{uuid.uuid4().hex}"

    async def _put_content(
        self, user_id: UUID, document_id: UUID, data: bytes, mime_type: str
    ) -> dict[str, Any]:
        key = self.object_key(user_id, document_id)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            partial(
                self._client.put,
                key,
                data,
                content_type=mime_type,
                metadata={"user-id": str(user_id), "document-id": str(document_id)},
            ),
        )
        return {
            "storage_kind": StorageKind.OBJECT_KEY,
            "storage_key": key,
            "inline_data": None,
        }

    async def _read_content(self, document: UserDocument) -> bytes:
        if not document.storage_key:
            raise StorageError(
                "Document has no object key",
                operation="read_content",
                user_id=document.user_id,
                entity_id=document.id,
            )
        loop = asyncio.get_running_loop()
        data, _ = await loop.run_in_executor(
            None,
            partial(self._client.get, document.storage_key, expected_digest=document.file_hash),
        )
        return data

    async def _discard_content(self, descriptor: dict[str, Any]) -> None:
        key = descriptor.get("storage_key")
        if not key:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._client.delete, key)


def create_document_store(
    session: AsyncSession,
    settings: Settings,
    client: ObjectStoreClient | None = None,
) -> DocumentStore:
    """Build the document store selected by configuration."""
    if settings.documents.backend == StorageBackend.OBJECT_STORE:
        return ObjectStorageDocumentStore(
            session,
            settings.documents,
            client or ObjectStoreClient.from_settings(settings.s3),
        )
    return InlineDocumentStore(session, settings.documents)
