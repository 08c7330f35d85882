"""Certificate records.

Cassandra table definitions for:
- certificates: main table by id
- certificates_by_code: verification code lookup, also the uniqueness claim
- certificates_by_learner: a learner's certificates, newest first
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from coursetrack.progress.models import ensure_utc_aware


class CertificateStatus(str, Enum):
    """Certificate status."""

    ACTIVE = "active"
    REVOKED = "revoked"


class RevocationReason(str, Enum):
    """Why the engine revoked a certificate on its own."""

    WRITE_BACK_FAILED = "write_back_failed"
    SUPERSEDED = "superseded"
    COMPLETION_WITHDRAWN = "completion_withdrawn"
    PROGRESS_RESET = "progress_reset"
    ENROLLMENT_REVOKED = "enrollment_revoked"


SYSTEM_ACTOR = "system"


def _millisecond_now() -> datetime:
    # Cassandra timestamps carry milliseconds; issue_date is part of a key
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    course_id TEXT,
    course_name TEXT,
    user_name TEXT,
    issue_date TIMESTAMP,
    verification_code TEXT,
    status TEXT,
    template_id TEXT,
    expiry_date TIMESTAMP,
    revoked_at TIMESTAMP,
    revoked_by TEXT,
    revocation_reason TEXT,
    pdf_url TEXT,
    image_url TEXT
)
"""

CERTIFICATES_BY_CODE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_code (
    verification_code TEXT PRIMARY KEY,
    certificate_id TEXT
)
"""

CERTIFICATES_BY_LEARNER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_learner (
    user_id TEXT,
    issue_date TIMESTAMP,
    certificate_id TEXT,
    course_id TEXT,
    status TEXT,
    PRIMARY KEY (user_id, issue_date, certificate_id)
) WITH CLUSTERING ORDER BY (issue_date DESC, certificate_id ASC)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_CODE_TABLE_CQL,
    CERTIFICATES_BY_LEARNER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Certificate:
    """Issued certificate.

    Rendering (``pdf_url``/``image_url``) is filled in by the rendering
    collaborator after issuance; issuance never waits for it.
    """

    def __init__(
        self,
        user_id: str,
        course_id: str,
        verification_code: str,
        course_name: str = "",
        user_name: str = "",
        id: str | None = None,
        issue_date: datetime | None = None,
        status: CertificateStatus | str = CertificateStatus.ACTIVE,
        template_id: str = "default",
        expiry_date: datetime | None = None,
        revoked_at: datetime | None = None,
        revoked_by: str | None = None,
        revocation_reason: str | None = None,
        pdf_url: str | None = None,
        image_url: str | None = None,
    ):
        self.id = id or str(uuid4())
        self.user_id = user_id
        self.course_id = course_id
        self.course_name = course_name
        self.user_name = user_name
        self.issue_date = ensure_utc_aware(issue_date) or _millisecond_now()
        self.verification_code = verification_code
        self.status = CertificateStatus(status)
        self.template_id = template_id
        self.expiry_date = ensure_utc_aware(expiry_date)
        self.revoked_at = ensure_utc_aware(revoked_at)
        self.revoked_by = revoked_by
        self.revocation_reason = revocation_reason
        self.pdf_url = pdf_url
        self.image_url = image_url

    @property
    def is_live(self) -> bool:
        return self.status == CertificateStatus.ACTIVE

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (now or datetime.now(UTC))

    def revoke(self, reason: str, actor_id: str) -> None:
        self.status = CertificateStatus.REVOKED
        self.revoked_at = datetime.now(UTC)
        self.revoked_by = actor_id
        self.revocation_reason = reason

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            course_id=row.course_id,
            course_name=row.course_name or "",
            user_name=row.user_name or "",
            issue_date=row.issue_date,
            verification_code=row.verification_code,
            status=row.status or CertificateStatus.ACTIVE.value,
            template_id=row.template_id or "default",
            expiry_date=row.expiry_date,
            revoked_at=row.revoked_at,
            revoked_by=row.revoked_by,
            revocation_reason=row.revocation_reason,
            pdf_url=row.pdf_url,
            image_url=row.image_url,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "course_name": self.course_name,
            "user_name": self.user_name,
            "issue_date": self.issue_date,
            "verification_code": self.verification_code,
            "status": self.status.value,
            "template_id": self.template_id,
            "expiry_date": self.expiry_date,
            "revoked_at": self.revoked_at,
            "revoked_by": self.revoked_by,
            "revocation_reason": self.revocation_reason,
            "pdf_url": self.pdf_url,
            "image_url": self.image_url,
        }

    def __repr__(self) -> str:
        return (
            f"<Certificate {self.id} user={self.user_id} "
            f"course={self.course_id} {self.status.value}>"
        )
