"""Lendflow service layer.

- ActivationService: step validation, progress and admin review
- ActivationProfileRepository: per-user profile persistence
- DocumentStore: identity documents, inline or in object storage
- BatchAggregator: deadline-bounded batch profile read
- ObjectStoreClient: S3-compatible storage integration
"""

from lendflow.services.activation import (
    ActivationData,
    ActivationService,
    ProfileValidationReport,
    compute_progress,
)
from lendflow.services.activation_repository import ActivationProfileRepository
from lendflow.services.batch import BatchAggregate, BatchAggregator, DocumentStats
from lendflow.services.documents import (
    DocumentContent,
    DocumentStore,
    InlineDocumentStore,
    ObjectStorageDocumentStore,
    create_document_store,
)
from lendflow.services.errors import (
    ActivationError,
    DocumentReadTimeoutError,
    FieldError,
    InvalidStatusTransitionError,
    InvalidStepError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from lendflow.services.object_store import ObjectStoreClient
from lendflow.services.step_validation import StepPayload, validate_step

__all__ = [
    "ActivationData",
    "ActivationError",
    "ActivationProfileRepository",
    "ActivationService",
    "BatchAggregate",
    "BatchAggregator",
    "DocumentContent",
    "DocumentReadTimeoutError",
    "DocumentStats",
    "DocumentStore",
    "FieldError",
    "InlineDocumentStore",
    "InvalidStatusTransitionError",
    "InvalidStepError",
    "NotFoundError",
    "ObjectStorageDocumentStore",
    "ObjectStoreClient",
    "ProfileValidationReport",
    "StepPayload",
    "StorageError",
    "ValidationError",
    "compute_progress",
    "create_document_store",
    "validate_step",
]
