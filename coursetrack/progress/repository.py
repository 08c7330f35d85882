"""Progress store accessor."""

from collections.abc import AsyncIterator

from coursetrack.store import DocumentKey, DocumentKind, DocumentStore, Transaction

from .models import ProgressRecord


class ProgressRepository:
    """Reads and writes ProgressRecord documents.

    Point reads go straight to the store; writes only happen inside a store
    transaction so they commit together with the pair's enrollment summary.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, user_id: str, course_id: str) -> ProgressRecord | None:
        document = await self.store.get(DocumentKey.progress(user_id, course_id))
        return ProgressRecord.from_document(document.body) if document else None

    async def load(
        self, txn: Transaction, user_id: str, course_id: str
    ) -> ProgressRecord | None:
        body = await txn.get(DocumentKey.progress(user_id, course_id))
        return ProgressRecord.from_document(body) if body else None

    def save(self, txn: Transaction, record: ProgressRecord) -> None:
        txn.set(
            DocumentKey.progress(record.user_id, record.course_id),
            record.to_document(),
        )

    async def iter_records(
        self,
        user_id: str | None = None,
        course_id: str | None = None,
    ) -> AsyncIterator[ProgressRecord]:
        async for document in self.store.query(
            DocumentKind.PROGRESS, user_id=user_id, course_id=course_id
        ):
            yield ProgressRecord.from_document(document.body)
