"""Error taxonomy shared by the activation and document services.

ValidationError and NotFoundError are caller-correctable. StorageError and
DocumentReadTimeoutError are operational and may be retried.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single rule violation on one input field.

    Attributes:
        field: Dotted path of the offending field (e.g. family_relatives.0.phone_number).
        code: Stable machine-readable error code.
        message: Human-readable explanation.
    """

    field: str
    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ActivationError(Exception):
    """Base class for activation subsystem errors."""


class ValidationError(ActivationError):
    """Raised when input fails step or file constraints.

    Carries every violation found, not only the first one.
    """

    def __init__(self, errors: list[FieldError], message: str = "Validation failed") -> None:
        self.errors = list(errors)
        self.message = message
        super().__init__(f"{message}: {', '.join(e.field for e in self.errors)}")


class InvalidStepError(ValueError):
    """Raised for a step number outside 1..6."""

    def __init__(self, step: object) -> None:
        self.step = step
        super().__init__(f"Step must be an integer between 1 and 6, got {step!r}")


class NotFoundError(ActivationError):
    """Raised when a record is missing or belongs to another user.

    Both cases produce the same error so existence is not revealed.
    """

    def __init__(self, resource: str, identifier: UUID | str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class InvalidStatusTransitionError(ActivationError):
    """Raised when an activation status change is not allowed."""

    def __init__(self, current: str, requested: str, reason: str | None = None) -> None:
        self.current = current
        self.requested = requested
        message = f"Cannot move activation from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DocumentReadTimeoutError(ActivationError, TimeoutError):
    """Raised when loading a document's content exceeds its deadline."""

    def __init__(self, document_id: UUID, timeout: float) -> None:
        self.document_id = document_id
        self.timeout = timeout
        super().__init__(f"Loading document {document_id} timed out after {timeout:.1f}s")


class StorageError(ActivationError):
    """Raised when the backing store fails.

    Attributes:
        operation: Name of the failed operation.
        user_id: User the operation was performed for, if any.
        entity_id: Profile or document id involved, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        user_id: UUID | None = None,
        entity_id: UUID | str | None = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.user_id = user_id
        self.entity_id = entity_id
        super().__init__(message)
