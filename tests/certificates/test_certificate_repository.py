"""Tests for CassandraCertificateRepository with a mocked session."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from cassandra.cluster import Session

from coursetrack.certificates import (
    CassandraCertificateRepository,
    Certificate,
    CertificateStatus,
)


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda query: Mock(name="prepared"))
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def repository(mock_session) -> CassandraCertificateRepository:
    return CassandraCertificateRepository(mock_session, "test_keyspace")


@pytest.fixture
def certificate() -> Certificate:
    return Certificate(
        user_id="user-ana",
        course_id="course-1",
        course_name="Intro",
        user_name="Ana",
        verification_code="K7QM-2HXR-PA9D-WZ4T",
    )


def row_for(certificate: Certificate) -> SimpleNamespace:
    return SimpleNamespace(**certificate.to_dict())


class TestCassandraCertificateRepository:
    @pytest.mark.asyncio
    async def test_claim_code(self, repository, mock_session) -> None:
        mock_session.aexecute.return_value = Mock(was_applied=True)
        assert await repository.claim_code("AAAA-BBBB", "cert-1") is True

        mock_session.aexecute.return_value = Mock(was_applied=False)
        assert await repository.claim_code("AAAA-BBBB", "cert-2") is False

    @pytest.mark.asyncio
    async def test_save_writes_both_tables(
        self, repository, mock_session, certificate
    ) -> None:
        await repository.save(certificate)

        main_call, lookup_call = mock_session.aexecute.call_args_list
        assert main_call.args[0] is repository._insert_certificate
        assert main_call.args[1][0] == certificate.id
        assert main_call.args[1][7] == "active"
        assert lookup_call.args[0] is repository._insert_by_learner
        assert lookup_call.args[1] == [
            "user-ana",
            certificate.issue_date,
            certificate.id,
            "course-1",
            "active",
        ]

    @pytest.mark.asyncio
    async def test_get_by_code(self, repository, mock_session, certificate) -> None:
        mock_session.aexecute.side_effect = [
            Mock(one=Mock(return_value=SimpleNamespace(certificate_id=certificate.id))),
            Mock(one=Mock(return_value=row_for(certificate))),
        ]

        found = await repository.get_by_code(certificate.verification_code)

        assert found.id == certificate.id
        assert found.status == CertificateStatus.ACTIVE
        assert found.user_name == "Ana"

    @pytest.mark.asyncio
    async def test_get_missing(self, repository, mock_session) -> None:
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=None))

        assert await repository.get("nope") is None

    @pytest.mark.asyncio
    async def test_list_skips_dangling_lookup_rows(
        self, repository, mock_session, certificate
    ) -> None:
        mock_session.aexecute.side_effect = [
            [
                SimpleNamespace(certificate_id=certificate.id),
                SimpleNamespace(certificate_id="gone"),
            ],
            Mock(one=Mock(return_value=row_for(certificate))),
            Mock(one=Mock(return_value=None)),
        ]

        certificates = await repository.list_for_learner("user-ana")

        assert [c.id for c in certificates] == [certificate.id]

    @pytest.mark.asyncio
    async def test_update_status(self, repository, mock_session, certificate) -> None:
        certificate.revoke("fraud", "admin-root")

        await repository.update_status(certificate)

        main_call, lookup_call = mock_session.aexecute.call_args_list
        assert main_call.args[1][0] == "revoked"
        assert main_call.args[1][2:] == ["admin-root", "fraud", certificate.id]
        assert lookup_call.args[1][0] == "revoked"
