"""Batch profile read for the activation UI.

The profile and the documents are loaded concurrently under one deadline.
A slow store must not block the page, so when the deadline passes the
aggregator returns an empty fallback instead of raising. Reads still in
flight are left to finish on their own and their results are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from lendflow.db.models import VerificationStatus
from lendflow.services.activation import compute_progress, is_profile_complete, summarize_steps
from lendflow.services.errors import StorageError

if TYPE_CHECKING:
    from uuid import UUID

    from lendflow.db.models import ActivationProfile, UserDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProfileLoader = Callable[["UUID"], Awaitable["ActivationProfile | None"]]
DocumentsLoader = Callable[["UUID"], Awaitable["list[UserDocument]"]]

DEFAULT_TIMEOUT_SECONDS = 3.0

# Strong references to reads abandoned after the deadline
_abandoned_reads: set[asyncio.Task[Any]] = set()


@dataclass(frozen=True, slots=True)
class DocumentStats:
    """Counts over a set of documents. Rejected ones have their own bucket."""

    total: int = 0
    verified: int = 0
    pending: int = 0
    rejected: int = 0

    @classmethod
    def from_documents(cls, documents: list[UserDocument]) -> DocumentStats:
        statuses = [doc.verification_status for doc in documents]
        return cls(
            total=len(statuses),
            verified=statuses.count(VerificationStatus.VERIFIED),
            pending=statuses.count(VerificationStatus.PENDING),
            rejected=statuses.count(VerificationStatus.REJECTED),
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class BatchAggregate:
    """Consolidated activation view for one page render.

    Attributes:
        profile: The activation profile, or None.
        documents: All documents, newest first.
        documents_by_type: Documents grouped by type value, newest first.
        progress: Percentage of populated steps.
        is_complete: Whether activation is completed.
        stats: Verification counts over documents.
        activation_steps: Per-step summary for the wizard.
        degraded: True when any part could not be loaded.
        timed_out: True when the deadline passed and this is the fallback.
    """

    profile: ActivationProfile | None
    documents: list[UserDocument]
    documents_by_type: dict[str, list[UserDocument]]
    progress: int
    is_complete: bool
    stats: DocumentStats
    activation_steps: dict[str, Any] = field(default_factory=dict)
    degraded: bool = False
    timed_out: bool = False

    @classmethod
    def fallback(cls) -> BatchAggregate:
        """Empty result served when the deadline passes."""
        return cls(
            profile=None,
            documents=[],
            documents_by_type={},
            progress=0,
            is_complete=False,
            stats=DocumentStats(),
            activation_steps=summarize_steps(None),
            degraded=True,
            timed_out=True,
        )


def group_by_type(documents: list[UserDocument]) -> dict[str, list[UserDocument]]:
    grouped: dict[str, list[UserDocument]] = {}
    for document in documents:
        grouped.setdefault(document.document_type.value, []).append(document)
    return grouped


def _discard_abandoned(task: asyncio.Task[Any]) -> None:
    _abandoned_reads.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Abandoned batch read %s failed: %s", task.get_name(), exc)
    else:
        logger.debug("Abandoned batch read %s finished late", task.get_name())


def _abandon(task: asyncio.Task[Any]) -> None:
    _abandoned_reads.add(task)
    task.add_done_callback(_discard_abandoned)


class BatchAggregator:
    """Builds the batch profile response under a deadline.

    The two loaders must not share a database session, since they run
    concurrently. The aggregator does no caching of its own.
    """

    def __init__(
        self,
        load_profile: ProfileLoader,
        load_documents: DocumentsLoader,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._load_profile = load_profile
        self._load_documents = load_documents
        self._timeout = timeout

    async def get_batch(self, user_id: UUID) -> BatchAggregate:
        """Load and combine the profile and documents for a user.

        Never raises for a timeout. A StorageError from one read degrades
        that part only. Any other exception propagates.
        """
        profile_task = asyncio.create_task(
            self._load_profile(user_id), name=f"batch-profile-{user_id}"
        )
        documents_task = asyncio.create_task(
            self._load_documents(user_id), name=f"batch-documents-{user_id}"
        )
        tasks = {profile_task, documents_task}

        try:
            done, pending = await asyncio.wait(tasks, timeout=self._timeout)
        except asyncio.CancelledError:
            for task in tasks:
                _abandon(task)
            raise

        if pending:
            for task in tasks:
                _abandon(task)
            logger.warning(
                "Batch read for user %s exceeded %.1fs, serving fallback",
                user_id,
                self._timeout,
                extra={"operation": "get_batch", "user_id": str(user_id)},
            )
            return BatchAggregate.fallback()

        # Mark both failures retrieved before either is raised
        for task in tasks:
            task.exception()

        profile, profile_ok = self._outcome(profile_task, None, user_id)
        documents, documents_ok = self._outcome(documents_task, [], user_id)

        return BatchAggregate(
            profile=profile,
            documents=documents,
            documents_by_type=group_by_type(documents),
            progress=compute_progress(profile),
            is_complete=is_profile_complete(profile),
            stats=DocumentStats.from_documents(documents),
            activation_steps=summarize_steps(profile),
            degraded=not (profile_ok and documents_ok),
        )

    @staticmethod
    def _outcome(task: asyncio.Task[T], default: T, user_id: UUID) -> tuple[T, bool]:
        """Task result, or the default when the read hit a storage failure."""
        exc = task.exception()
        if exc is None:
            return task.result(), True
        if isinstance(exc, StorageError):
            logger.warning(
                "Batch read %s failed, serving partial result: %s",
                task.get_name(),
                exc,
                extra={"operation": exc.operation, "user_id": str(user_id)},
            )
            return default, False
        raise exc
