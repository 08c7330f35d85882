"""Certificate persistence."""

from typing import TYPE_CHECKING, Protocol

import structlog

from .models import Certificate


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CertificateRepository(Protocol):
    async def claim_code(self, verification_code: str, certificate_id: str) -> bool:
        """Reserve a verification code; False if it is already taken."""
        ...

    async def save(self, certificate: Certificate) -> None: ...

    async def get(self, certificate_id: str) -> Certificate | None: ...

    async def get_by_code(self, verification_code: str) -> Certificate | None: ...

    async def list_for_learner(self, user_id: str) -> list[Certificate]: ...

    async def update_status(self, certificate: Certificate) -> None:
        """Persist status and revocation fields of ``certificate``."""
        ...


class InMemoryCertificateRepository:
    """Dict-backed repository for local development and tests."""

    def __init__(self) -> None:
        self._certificates: dict[str, Certificate] = {}
        self._codes: dict[str, str] = {}
        self.fail_saves = False

    async def claim_code(self, verification_code: str, certificate_id: str) -> bool:
        if verification_code in self._codes:
            return False
        self._codes[verification_code] = certificate_id
        return True

    async def save(self, certificate: Certificate) -> None:
        if self.fail_saves:
            raise ConnectionError("certificate store unavailable")
        self._certificates[certificate.id] = Certificate(**certificate.to_dict())

    async def get(self, certificate_id: str) -> Certificate | None:
        certificate = self._certificates.get(certificate_id)
        return Certificate(**certificate.to_dict()) if certificate else None

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        certificate_id = self._codes.get(verification_code)
        return await self.get(certificate_id) if certificate_id else None

    async def list_for_learner(self, user_id: str) -> list[Certificate]:
        certificates = [
            Certificate(**c.to_dict())
            for c in self._certificates.values()
            if c.user_id == user_id
        ]
        certificates.sort(key=lambda c: c.issue_date, reverse=True)
        return certificates

    async def update_status(self, certificate: Certificate) -> None:
        self._certificates[certificate.id] = Certificate(**certificate.to_dict())


class CassandraCertificateRepository:
    """Certificate tables with a dual-write learner lookup."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._claim_code = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_code
            (verification_code, certificate_id)
            VALUES (?, ?)
            IF NOT EXISTS
        """)

        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (id, user_id, course_id, course_name, user_name, issue_date,
             verification_code, status, template_id, expiry_date, revoked_at,
             revoked_by, revocation_reason, pdf_url, image_url)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_learner = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_learner
            (user_id, issue_date, certificate_id, course_id, status)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates WHERE id = ?
        """)

        self._get_by_code = self.session.prepare(f"""
            SELECT certificate_id FROM {self.keyspace}.certificates_by_code
            WHERE verification_code = ?
        """)

        self._get_by_learner = self.session.prepare(f"""
            SELECT certificate_id FROM {self.keyspace}.certificates_by_learner
            WHERE user_id = ?
        """)

        self._update_status = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates
            SET status = ?, revoked_at = ?, revoked_by = ?, revocation_reason = ?
            WHERE id = ?
        """)

        self._update_learner_status = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_learner
            SET status = ?
            WHERE user_id = ? AND issue_date = ? AND certificate_id = ?
        """)

    async def claim_code(self, verification_code: str, certificate_id: str) -> bool:
        result = await self.session.aexecute(
            self._claim_code, [verification_code, certificate_id]
        )
        return bool(result.was_applied)

    async def save(self, certificate: Certificate) -> None:
        # Dual write: main table + learner lookup
        await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.id,
                certificate.user_id,
                certificate.course_id,
                certificate.course_name,
                certificate.user_name,
                certificate.issue_date,
                certificate.verification_code,
                certificate.status.value,
                certificate.template_id,
                certificate.expiry_date,
                certificate.revoked_at,
                certificate.revoked_by,
                certificate.revocation_reason,
                certificate.pdf_url,
                certificate.image_url,
            ],
        )
        await self.session.aexecute(
            self._insert_by_learner,
            [
                certificate.user_id,
                certificate.issue_date,
                certificate.id,
                certificate.course_id,
                certificate.status.value,
            ],
        )

    async def get(self, certificate_id: str) -> Certificate | None:
        result = await self.session.aexecute(self._get_certificate, [certificate_id])
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        result = await self.session.aexecute(self._get_by_code, [verification_code])
        row = result.one()
        return await self.get(row.certificate_id) if row else None

    async def list_for_learner(self, user_id: str) -> list[Certificate]:
        rows = await self.session.aexecute(self._get_by_learner, [user_id])
        certificates = []
        for row in rows:
            certificate = await self.get(row.certificate_id)
            if certificate is None:
                logger.warning(
                    "certificate_lookup_dangling",
                    user_id=user_id,
                    certificate_id=row.certificate_id,
                )
                continue
            certificates.append(certificate)
        return certificates

    async def update_status(self, certificate: Certificate) -> None:
        await self.session.aexecute(
            self._update_status,
            [
                certificate.status.value,
                certificate.revoked_at,
                certificate.revoked_by,
                certificate.revocation_reason,
                certificate.id,
            ],
        )
        await self.session.aexecute(
            self._update_learner_status,
            [
                certificate.status.value,
                certificate.user_id,
                certificate.issue_date,
                certificate.id,
            ],
        )
