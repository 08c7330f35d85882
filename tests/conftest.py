"""Shared fixtures.

The app under test runs on the in-memory store; environment is set before any
coursetrack import so the cached settings pick it up.
"""

import os
import tempfile

os.environ["ENVIRONMENT"] = "testing"
os.environ["STORE_BACKEND"] = "memory"
os.environ["TOPOLOGY_CACHE_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="coursetrack-logs-"))

from collections.abc import Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coursetrack.config import Settings, get_settings  # noqa: E402
from coursetrack.services import ServiceContainer, build_memory_services  # noqa: E402
from coursetrack.topology import CourseTopology, StaticTopologyProvider  # noqa: E402


COURSE_ID = "course-pharma-101"
USER_ID = "user-ana"
ADMIN_ID = "admin-root"


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def topology() -> CourseTopology:
    """Two modules of two lessons each: m1_l1, m1_l2, m2_l3, m2_l4."""
    return CourseTopology.build(
        COURSE_ID,
        {"m1": ["l1", "l2"], "m2": ["l3", "l4"]},
        course_name="Pharmacy Basics",
    )


@pytest.fixture
def services(settings: Settings, topology: CourseTopology) -> ServiceContainer:
    return build_memory_services(settings, StaticTopologyProvider([topology]))


@pytest.fixture
def store(services: ServiceContainer):
    return services.store


@pytest.fixture
def progress_service(services: ServiceContainer):
    return services.progress_service


@pytest.fixture
def certificate_service(services: ServiceContainer):
    return services.certificate_service


@pytest.fixture
def certificate_repository(services: ServiceContainer):
    return services.certificate_repository


@pytest.fixture
def admin_service(services: ServiceContainer):
    return services.admin_service


@pytest.fixture
def reconciliation_service(services: ServiceContainer):
    return services.reconciliation_service


@pytest.fixture
def client(topology: CourseTopology) -> Iterator[TestClient]:
    """Test client over a fresh app; the lifespan wires in-memory services."""
    from coursetrack.main import create_app

    app = create_app()
    with TestClient(app) as test_client:
        app.state.topology_provider.register(topology)
        yield test_client


@pytest.fixture
def learner_headers() -> dict[str, str]:
    return {"X-Actor-ID": USER_ID}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Actor-ID": ADMIN_ID, "X-Actor-Role": "admin"}
