"""Document store contract.

Progress records and enrollment summaries are stored as versioned JSON
documents addressed by ``(user_id, course_id, kind)``. Both documents of a pair
live under the same user so a single commit can cover them atomically.

Writes go through :meth:`DocumentStore.run_transaction`: the callback reads
documents through the transaction (recording the version it saw), buffers
writes, and the store commits them all-or-nothing, conditional on nothing it
read having changed. A lost race re-runs the callback.
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, TypeVar

import structlog

from coursetrack.errors import TransactionConflictError


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class DocumentKind(str, Enum):
    """Kind of document stored for a (user, course) pair."""

    PROGRESS = "progress"
    ENROLLMENT = "enrollment"


@dataclass(frozen=True, slots=True)
class DocumentKey:
    """Composite key of a stored document."""

    user_id: str
    course_id: str
    kind: DocumentKind

    @classmethod
    def progress(cls, user_id: str, course_id: str) -> "DocumentKey":
        return cls(user_id, course_id, DocumentKind.PROGRESS)

    @classmethod
    def enrollment(cls, user_id: str, course_id: str) -> "DocumentKey":
        return cls(user_id, course_id, DocumentKind.ENROLLMENT)


@dataclass(slots=True)
class Document:
    """Stored document: JSON body plus optimistic-concurrency version."""

    key: DocumentKey
    body: dict[str, Any]
    version: int
    updated_at: datetime | None = None


class Transaction:
    """Read-modify-write unit handed to ``run_transaction`` callbacks.

    ``get`` returns a private copy of the body, so callers may mutate it freely
    and pass it back to ``set``. A document must be read before it is written;
    the version observed on that read is what the commit is conditioned on.
    """

    def __init__(self, reader: Callable[[DocumentKey], Awaitable[Document | None]]):
        self._reader = reader
        self.reads: dict[DocumentKey, int | None] = {}
        self.writes: dict[DocumentKey, dict[str, Any]] = {}

    async def get(self, key: DocumentKey) -> dict[str, Any] | None:
        if key in self.writes:
            return copy.deepcopy(self.writes[key])

        document = await self._reader(key)
        if key not in self.reads:
            self.reads[key] = document.version if document else None
        if document is None:
            return None
        return copy.deepcopy(document.body)

    def set(self, key: DocumentKey, body: dict[str, Any]) -> None:
        if key not in self.reads:
            raise RuntimeError(f"Document {key} must be read before it is written")
        self.writes[key] = copy.deepcopy(body)

    @property
    def has_writes(self) -> bool:
        return bool(self.writes)


class DocumentStore(Protocol):
    """Persistent store for progress and enrollment documents."""

    async def get(self, key: DocumentKey) -> Document | None: ...

    async def run_transaction(
        self, fn: Callable[[Transaction], Awaitable[T]]
    ) -> T: ...

    def query(
        self,
        kind: DocumentKind,
        user_id: str | None = None,
        course_id: str | None = None,
    ) -> AsyncIterator[Document]: ...


class OptimisticDocumentStore(ABC):
    """Shared retry loop for stores with a conditional multi-document commit."""

    def __init__(self, max_attempts: int = 5):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts

    @abstractmethod
    async def get(self, key: DocumentKey) -> Document | None: ...

    @abstractmethod
    async def _commit(self, txn: Transaction) -> bool:
        """Apply buffered writes if every observed version still holds.

        Returns:
            False when a concurrent writer got there first.
        """

    @abstractmethod
    def query(
        self,
        kind: DocumentKind,
        user_id: str | None = None,
        course_id: str | None = None,
    ) -> AsyncIterator[Document]: ...

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run ``fn`` and commit its writes atomically, retrying on conflict.

        Exceptions raised by ``fn`` abort the attempt with nothing written.

        Raises:
            TransactionConflictError: If every attempt lost its commit race.
        """
        for attempt in range(1, self.max_attempts + 1):
            txn = Transaction(self.get)
            result = await fn(txn)

            if not txn.has_writes:
                return result

            if await self._commit(txn):
                return result

            logger.debug(
                "transaction_commit_conflict",
                attempt=attempt,
                max_attempts=self.max_attempts,
                keys=[
                    f"{k.user_id}/{k.course_id}/{k.kind.value}" for k in txn.writes
                ],
            )

        logger.warning("transaction_retries_exhausted", attempts=self.max_attempts)
        raise TransactionConflictError
