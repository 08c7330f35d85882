"""Enrollment store accessor."""

from coursetrack.store import DocumentKey, DocumentKind, DocumentStore, Transaction

from .models import EnrollmentSummary


class EnrollmentRepository:
    """Reads and writes EnrollmentSummary documents under the user."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, user_id: str, course_id: str) -> EnrollmentSummary | None:
        document = await self.store.get(DocumentKey.enrollment(user_id, course_id))
        return EnrollmentSummary.from_document(document.body) if document else None

    async def load(
        self, txn: Transaction, user_id: str, course_id: str
    ) -> EnrollmentSummary | None:
        body = await txn.get(DocumentKey.enrollment(user_id, course_id))
        return EnrollmentSummary.from_document(body) if body else None

    def save(self, txn: Transaction, summary: EnrollmentSummary) -> None:
        txn.set(
            DocumentKey.enrollment(summary.user_id, summary.course_id),
            summary.to_document(),
        )

    async def list_for_user(self, user_id: str) -> list[EnrollmentSummary]:
        """All summaries of a learner, most recent enrollment first."""
        summaries = [
            EnrollmentSummary.from_document(document.body)
            async for document in self.store.query(
                DocumentKind.ENROLLMENT, user_id=user_id
            )
        ]
        summaries.sort(key=lambda s: s.enrolled_at, reverse=True)
        return summaries
