"""Service wiring shared by the API and maintenance scripts."""

from dataclasses import dataclass
from typing import Any

import redis.asyncio as redis

from coursetrack.admin.service import AdminOverrideService
from coursetrack.certificates.repository import (
    CassandraCertificateRepository,
    CertificateRepository,
    InMemoryCertificateRepository,
)
from coursetrack.certificates.service import CertificateService
from coursetrack.config import Settings
from coursetrack.core.logging import get_logger
from coursetrack.progress.service import ProgressService
from coursetrack.reconciliation.service import ReconciliationService
from coursetrack.store import (
    CassandraDocumentStore,
    DocumentStore,
    InMemoryDocumentStore,
)
from coursetrack.topology.provider import (
    CachedTopologyProvider,
    CassandraTopologyProvider,
    StaticTopologyProvider,
    TopologyProvider,
)


logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Every service of a running engine, sharing one store."""

    store: DocumentStore
    topology: TopologyProvider
    certificate_repository: CertificateRepository
    reconciliation_service: ReconciliationService
    progress_service: ProgressService
    certificate_service: CertificateService
    admin_service: AdminOverrideService


def build_services(
    settings: Settings,
    store: DocumentStore,
    topology: TopologyProvider,
    certificate_repository: CertificateRepository,
) -> ServiceContainer:
    """Wire services; completions flow from progress into the issuer."""
    reconciliation_service = ReconciliationService(
        store, concurrency=settings.reconcile_sweep_concurrency
    )
    certificate_service = CertificateService(
        store,
        certificate_repository,
        template_id=settings.certificate_default_template_id,
        code_groups=settings.certificate_code_groups,
        verification_base_url=settings.certificate_verification_base_url,
        default_learner_name=settings.default_learner_name,
        validity_days=settings.certificate_validity_days,
    )
    progress_service = ProgressService(
        store,
        topology,
        reconciliation_service,
        on_completion=certificate_service.handle_completion,
    )
    admin_service = AdminOverrideService(
        store,
        progress_service,
        reconciliation_service,
        certificates=certificate_service,
    )
    return ServiceContainer(
        store=store,
        topology=topology,
        certificate_repository=certificate_repository,
        reconciliation_service=reconciliation_service,
        progress_service=progress_service,
        certificate_service=certificate_service,
        admin_service=admin_service,
    )


def build_memory_services(
    settings: Settings, topology: TopologyProvider | None = None
) -> ServiceContainer:
    """Process-local engine for development and tests."""
    return build_services(
        settings,
        InMemoryDocumentStore(max_attempts=settings.transaction_max_attempts),
        topology or StaticTopologyProvider(),
        InMemoryCertificateRepository(),
    )


def build_cassandra_services(
    settings: Settings,
    session: Any,
    redis_client: redis.Redis | None = None,
) -> ServiceContainer:
    """Cassandra-backed engine; topologies are cached in Redis when available."""
    topology: TopologyProvider = CassandraTopologyProvider(
        session, settings.cassandra_keyspace
    )
    if redis_client is not None and settings.topology_cache_enabled:
        topology = CachedTopologyProvider(
            topology, redis_client, ttl_seconds=settings.topology_cache_ttl_seconds
        )
        logger.info(
            "topology_cache_enabled", ttl_seconds=settings.topology_cache_ttl_seconds
        )

    return build_services(
        settings,
        CassandraDocumentStore(
            session,
            settings.cassandra_keyspace,
            max_attempts=settings.transaction_max_attempts,
        ),
        topology,
        CassandraCertificateRepository(session, settings.cassandra_keyspace),
    )
