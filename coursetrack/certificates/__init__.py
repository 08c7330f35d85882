"""Completion certificates.

Provides:
- Certificate model and Cassandra tables
- Verification code generation
- CertificateService issuing, verifying and revoking certificates
"""

from .codes import generate_verification_code, normalize_verification_code
from .models import (
    CERTIFICATES_TABLES_CQL,
    SYSTEM_ACTOR,
    Certificate,
    CertificateStatus,
    RevocationReason,
)
from .repository import (
    CassandraCertificateRepository,
    CertificateRepository,
    InMemoryCertificateRepository,
)


__all__ = [
    "CERTIFICATES_TABLES_CQL",
    "SYSTEM_ACTOR",
    "CassandraCertificateRepository",
    "Certificate",
    "CertificateRepository",
    "CertificateStatus",
    "InMemoryCertificateRepository",
    "RevocationReason",
    "generate_verification_code",
    "normalize_verification_code",
]
