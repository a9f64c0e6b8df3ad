"""Uploaded identity document model."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from lendflow.db.models.base import (
    Base,
    DocumentCategory,
    DocumentType,
    OptionalTimestampTZ,
    StorageKind,
    TimestampTZ,
    UUIDPrimaryKey,
    VerificationStatus,
    enum_column,
)


class UserDocument(Base):
    """One uploaded identity artifact owned by a user.

    Content is held either in object storage (storage_key) or inline as a
    base64 payload (inline_data), never both. storage_kind records which.
    """

    __tablename__ = "user_documents"

    id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    activation_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activation_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Content descriptor
    document_type: Mapped[DocumentType] = mapped_column(
        enum_column(DocumentType, "document_type"),
        nullable=False,
    )
    document_category: Mapped[DocumentCategory] = mapped_column(
        enum_column(DocumentCategory, "document_category"),
        nullable=False,
    )
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Storage descriptor
    storage_kind: Mapped[StorageKind] = mapped_column(
        enum_column(StorageKind, "storage_kind"),
        nullable=False,
    )
    storage_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    inline_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Review state
    verification_status: Mapped[VerificationStatus] = mapped_column(
        enum_column(VerificationStatus, "verification_status"),
        nullable=False,
        default=VerificationStatus.PENDING,
    )
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_at: Mapped[OptionalTimestampTZ]

    __table_args__ = (
        CheckConstraint(
            "(storage_key IS NULL) <> (inline_data IS NULL)",
            name="single_storage_descriptor",
        ),
        Index("ix_user_documents_user_created", "user_id", "created_at"),
        Index("ix_user_documents_profile", "activation_profile_id"),
    )
