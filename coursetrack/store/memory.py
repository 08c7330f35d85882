"""Dict-backed document store for local development and tests."""

import asyncio
import copy
from collections.abc import AsyncIterator
from datetime import UTC, datetime

from .base import (
    Document,
    DocumentKey,
    DocumentKind,
    OptimisticDocumentStore,
    Transaction,
)


class InMemoryDocumentStore(OptimisticDocumentStore):
    """Process-local store with the same commit semantics as Cassandra.

    ``fail_next_commits`` makes the next N commits report a conflict, which is
    how tests simulate a concurrent writer.
    """

    def __init__(self, max_attempts: int = 5):
        super().__init__(max_attempts)
        self._documents: dict[DocumentKey, Document] = {}
        self._lock = asyncio.Lock()
        self.commit_count = 0
        self.fail_next_commits = 0

    async def get(self, key: DocumentKey) -> Document | None:
        document = self._documents.get(key)
        if document is None:
            return None
        return Document(
            key=document.key,
            body=copy.deepcopy(document.body),
            version=document.version,
            updated_at=document.updated_at,
        )

    async def _commit(self, txn: Transaction) -> bool:
        async with self._lock:
            if self.fail_next_commits > 0:
                self.fail_next_commits -= 1
                return False

            for key, observed in txn.reads.items():
                current = self._documents.get(key)
                if observed is None:
                    # Read-only documents seen as missing are not re-checked
                    if key in txn.writes and current is not None:
                        return False
                elif current is None or current.version != observed:
                    return False

            now = datetime.now(UTC)
            for key, body in txn.writes.items():
                observed = txn.reads[key]
                self._documents[key] = Document(
                    key=key,
                    body=copy.deepcopy(body),
                    version=(observed or 0) + 1,
                    updated_at=now,
                )
            self.commit_count += 1
            return True

    async def query(
        self,
        kind: DocumentKind,
        user_id: str | None = None,
        course_id: str | None = None,
    ) -> AsyncIterator[Document]:
        for key in sorted(
            self._documents, key=lambda k: (k.user_id, k.course_id, k.kind)
        ):
            if key.kind != kind:
                continue
            if user_id is not None and key.user_id != user_id:
                continue
            if course_id is not None and key.course_id != course_id:
                continue
            document = await self.get(key)
            if document is not None:
                yield document

    async def put(self, key: DocumentKey, body: dict) -> None:
        """Write a document unconditionally (fixtures and drift simulation)."""
        async with self._lock:
            existing = self._documents.get(key)
            self._documents[key] = Document(
                key=key,
                body=copy.deepcopy(body),
                version=(existing.version if existing else 0) + 1,
                updated_at=datetime.now(UTC),
            )

    async def delete(self, key: DocumentKey) -> None:
        """Remove a document (simulates a lost summary)."""
        async with self._lock:
            self._documents.pop(key, None)
