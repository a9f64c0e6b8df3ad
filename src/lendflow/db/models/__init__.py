"""SQLAlchemy ORM models for Lendflow.

- base: Common metadata, column types and enums
- activation: Activation profiles and their audit log
- documents: Uploaded identity documents
"""

from lendflow.db.models.activation import (
    REQUIRED_STEP_FIELDS,
    STEP_FIELDS,
    TOTAL_STEPS,
    ActivationAuditLog,
    ActivationProfile,
)
from lendflow.db.models.base import (
    REQUIRED_DOCUMENT_TYPES,
    ActivationStatus,
    AuditActionType,
    Base,
    DocumentCategory,
    DocumentType,
    StorageKind,
    VerificationStatus,
    metadata,
)
from lendflow.db.models.documents import UserDocument

__all__ = [
    "REQUIRED_DOCUMENT_TYPES",
    "REQUIRED_STEP_FIELDS",
    "STEP_FIELDS",
    "TOTAL_STEPS",
    "ActivationAuditLog",
    "ActivationProfile",
    "ActivationStatus",
    "AuditActionType",
    "Base",
    "DocumentCategory",
    "DocumentType",
    "StorageKind",
    "UserDocument",
    "VerificationStatus",
    "metadata",
]
