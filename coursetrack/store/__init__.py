from .base import (
    Document,
    DocumentKey,
    DocumentKind,
    DocumentStore,
    OptimisticDocumentStore,
    Transaction,
)
from .cassandra import LEARNER_DOCUMENTS_TABLES_CQL, CassandraDocumentStore
from .memory import InMemoryDocumentStore


__all__ = [
    "LEARNER_DOCUMENTS_TABLES_CQL",
    "CassandraDocumentStore",
    "Document",
    "DocumentKey",
    "DocumentKind",
    "DocumentStore",
    "InMemoryDocumentStore",
    "OptimisticDocumentStore",
    "Transaction",
]
