"""Base model definitions and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Reusable column type annotations
- Enum types shared by the activation and document models
"""

import enum
import uuid
from datetime import UTC, datetime
from typing import Annotated

from sqlalchemy import DateTime, Enum, MetaData, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column, registry

# Naming convention for constraints ensures consistent migration generation.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

type_registry = registry()

# UUID primary key, generated client-side so it is known before flush
UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    ),
]


def _utcnow() -> datetime:
    return datetime.now(UTC)


# Filled client-side as well so values are readable right after a commit
TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), default=_utcnow, server_default=text("now()")),
]

OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]


class Base(DeclarativeBase):
    """Declarative base for all Lendflow models."""

    metadata = metadata
    registry = type_registry


def enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Build a PostgreSQL enum column type that stores member values."""
    return Enum(
        enum_cls,
        name=name,
        create_constraint=True,
        values_callable=lambda members: [member.value for member in members],
    )


# =============================================================================
# Common Enums
# =============================================================================


class ActivationStatus(enum.Enum):
    """Lifecycle of a user's activation profile.

    States:
        PENDING: Reopened by an admin, waiting for the user
        IN_PROGRESS: User is filling in the wizard
        COMPLETED: Every step populated, completed_at stamped
        REJECTED: Refused by an admin
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class VerificationStatus(enum.Enum):
    """Admin review state of an uploaded document."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DocumentCategory(enum.Enum):
    """Grouping of document types for review screens."""

    IDENTITY = "identity"
    ADDRESS = "address"
    FINANCIAL = "financial"
    SIGNATURE = "signature"


class DocumentType(enum.Enum):
    """Kinds of identity artifacts a user may upload."""

    ID_FRONT = "id_front"
    ID_BACK = "id_back"
    SELFIE = "selfie"
    PASSPORT_PHOTO = "passport_photo"
    DRIVER_LICENSE = "driver_license"
    ELECTRICITY_BILL = "electricity_bill"
    ADDRESS_PROOF = "address_proof"
    BANK_STATEMENT = "bank_statement"
    SIGNATURE = "signature"

    @property
    def category(self) -> DocumentCategory:
        return _DOCUMENT_CATEGORIES[self]

    @property
    def is_required(self) -> bool:
        return self in REQUIRED_DOCUMENT_TYPES


_DOCUMENT_CATEGORIES = {
    DocumentType.ID_FRONT: DocumentCategory.IDENTITY,
    DocumentType.ID_BACK: DocumentCategory.IDENTITY,
    DocumentType.SELFIE: DocumentCategory.IDENTITY,
    DocumentType.PASSPORT_PHOTO: DocumentCategory.IDENTITY,
    DocumentType.DRIVER_LICENSE: DocumentCategory.IDENTITY,
    DocumentType.ELECTRICITY_BILL: DocumentCategory.ADDRESS,
    DocumentType.ADDRESS_PROOF: DocumentCategory.ADDRESS,
    DocumentType.BANK_STATEMENT: DocumentCategory.FINANCIAL,
    DocumentType.SIGNATURE: DocumentCategory.SIGNATURE,
}

# Documents that must be on file before a profile can be approved
REQUIRED_DOCUMENT_TYPES = frozenset(
    {
        DocumentType.ID_FRONT,
        DocumentType.ID_BACK,
        DocumentType.SELFIE,
        DocumentType.SIGNATURE,
    }
)


class StorageKind(enum.Enum):
    """Physical encoding of a document's content.

    Values:
        OBJECT_KEY: Content lives in object storage under storage_key
        INLINE: Content is kept base64-encoded in inline_data
    """

    OBJECT_KEY = "object_key"
    INLINE = "inline"


class AuditActionType(enum.Enum):
    """Kinds of changes recorded in the activation audit log."""

    CREATE = "create"
    UPDATE = "update"
    STATUS_CHANGE = "status_change"
    DOCUMENT_UPLOAD = "document_upload"
    DOCUMENT_REPLACE = "document_replace"
    DOCUMENT_DELETE = "document_delete"
