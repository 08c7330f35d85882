"""Cassandra-backed document store.

Both documents of a (user, course) pair share the ``user_id`` partition, so a
commit is a single-partition conditional logged batch. Cassandra applies such a
batch atomically: either every condition holds and every row is written, or
nothing is written and ``was_applied`` is False.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import orjson
import structlog
from cassandra.query import BatchStatement, BatchType

from .base import (
    Document,
    DocumentKey,
    DocumentKind,
    OptimisticDocumentStore,
    Transaction,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


LEARNER_DOCUMENTS_TABLES_CQL = [
    # Progress records and enrollment summaries, one row per document
    """
    CREATE TABLE IF NOT EXISTS {keyspace}.learner_documents (
        user_id TEXT,
        course_id TEXT,
        kind TEXT,
        body TEXT,
        version INT,
        updated_at TIMESTAMP,
        PRIMARY KEY ((user_id), course_id, kind)
    )
    """,
    # Course-filtered reconciliation sweeps
    """
    CREATE INDEX IF NOT EXISTS learner_documents_course_idx
    ON {keyspace}.learner_documents (course_id)
    """,
]


def _dump(body: dict[str, Any]) -> str:
    return orjson.dumps(body).decode()


class CassandraDocumentStore(OptimisticDocumentStore):
    """Document store over the ``learner_documents`` table."""

    def __init__(self, session: "Session", keyspace: str, max_attempts: int = 5):
        super().__init__(max_attempts)
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_document = self.session.prepare(f"""
            SELECT user_id, course_id, kind, body, version, updated_at
            FROM {self.keyspace}.learner_documents
            WHERE user_id = ? AND course_id = ? AND kind = ?
        """)

        self._insert_document = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.learner_documents
            (user_id, course_id, kind, body, version, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_document = self.session.prepare(f"""
            UPDATE {self.keyspace}.learner_documents
            SET body = ?, version = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ? AND kind = ?
            IF version = ?
        """)

        # Re-asserts a version without changing it; guards documents only read
        self._check_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.learner_documents
            SET version = ?
            WHERE user_id = ? AND course_id = ? AND kind = ?
            IF version = ?
        """)

        self._select_by_user = self.session.prepare(f"""
            SELECT user_id, course_id, kind, body, version, updated_at
            FROM {self.keyspace}.learner_documents
            WHERE user_id = ?
        """)

        self._select_by_course = self.session.prepare(f"""
            SELECT user_id, course_id, kind, body, version, updated_at
            FROM {self.keyspace}.learner_documents
            WHERE course_id = ?
        """)

        self._select_all = self.session.prepare(f"""
            SELECT user_id, course_id, kind, body, version, updated_at
            FROM {self.keyspace}.learner_documents
        """)

    @staticmethod
    def _from_row(row: Any) -> Document:
        return Document(
            key=DocumentKey(row.user_id, row.course_id, DocumentKind(row.kind)),
            body=orjson.loads(row.body) if row.body else {},
            version=row.version or 0,
            updated_at=row.updated_at,
        )

    async def get(self, key: DocumentKey) -> Document | None:
        result = await self.session.aexecute(
            self._get_document, [key.user_id, key.course_id, key.kind.value]
        )
        row = result.one()
        return self._from_row(row) if row else None

    async def _commit(self, txn: Transaction) -> bool:
        partitions = {key.user_id for key in txn.reads}
        if len(partitions) > 1:
            raise ValueError(
                "A transaction may only touch documents of a single user"
            )

        now = datetime.now(UTC)
        batch = BatchStatement(batch_type=BatchType.LOGGED)

        for key, observed in txn.reads.items():
            key_params = [key.user_id, key.course_id, key.kind.value]
            if key in txn.writes:
                body = _dump(txn.writes[key])
                if observed is None:
                    batch.add(self._insert_document, [*key_params, body, 1, now])
                else:
                    batch.add(
                        self._update_document,
                        [body, observed + 1, now, *key_params, observed],
                    )
            elif observed is not None:
                batch.add(self._check_version, [observed, *key_params, observed])

        result = await self.session.aexecute(batch)
        applied = bool(result.was_applied)
        if not applied:
            logger.debug(
                "conditional_batch_rejected",
                user_id=next(iter(partitions)),
                statements=len(txn.reads),
            )
        return applied

    async def query(
        self,
        kind: DocumentKind,
        user_id: str | None = None,
        course_id: str | None = None,
    ) -> AsyncIterator[Document]:
        if user_id is not None:
            rows = await self.session.aexecute(self._select_by_user, [user_id])
        elif course_id is not None:
            rows = await self.session.aexecute(self._select_by_course, [course_id])
        else:
            rows = await self.session.aexecute(self._select_all)

        for row in rows:
            if row.kind != kind.value:
                continue
            if course_id is not None and row.course_id != course_id:
                continue
            yield self._from_row(row)
