"""Pydantic schemas for certificates."""

from datetime import datetime

from pydantic import BaseModel, Field

from .models import Certificate, CertificateStatus
from .service import (
    BatchIssuanceResult,
    BatchRevocationResult,
    BatchVerificationResult,
    VerificationResult,
)


class CertificateResponse(BaseModel):
    """Issued certificate."""

    id: str
    user_id: str
    course_id: str
    course_name: str
    user_name: str
    issue_date: datetime
    verification_code: str
    verification_url: str
    status: CertificateStatus
    template_id: str
    expiry_date: datetime | None = None
    revoked_at: datetime | None = None
    revoked_by: str | None = None
    revocation_reason: str | None = None
    pdf_url: str | None = None
    image_url: str | None = None

    @classmethod
    def from_entity(
        cls, entity: Certificate, verification_url: str
    ) -> "CertificateResponse":
        """Create response from entity."""
        return cls(**entity.to_dict(), verification_url=verification_url)


class PublicCertificateResponse(BaseModel):
    """What an anonymous verifier is allowed to see."""

    user_name: str
    course_name: str
    issue_date: datetime
    expiry_date: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Certificate) -> "PublicCertificateResponse":
        return cls(
            user_name=entity.user_name,
            course_name=entity.course_name,
            issue_date=entity.issue_date,
            expiry_date=entity.expiry_date,
        )


class VerificationResponse(BaseModel):
    is_valid: bool
    status: str
    message: str
    certificate: PublicCertificateResponse | None = None
    verified_at: datetime

    @classmethod
    def from_result(cls, result: VerificationResult) -> "VerificationResponse":
        return cls(
            is_valid=result.is_valid,
            status=result.status,
            message=result.message,
            certificate=(
                PublicCertificateResponse.from_entity(result.certificate)
                if result.certificate
                else None
            ),
            verified_at=result.verified_at,
        )


class CertificateListResponse(BaseModel):
    items: list[CertificateResponse]
    total: int


class RevokeCertificateRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class BatchRevokeRequest(BaseModel):
    certificate_ids: list[str] = Field(..., min_length=1, max_length=500)
    reason: str = Field(..., min_length=1, max_length=500)


class BatchRevokeResponse(BaseModel):
    total: int
    success: int
    failed: int
    failed_ids: list[str]

    @classmethod
    def from_result(cls, result: BatchRevocationResult) -> "BatchRevokeResponse":
        return cls(
            total=result.total,
            success=result.success,
            failed=result.failed,
            failed_ids=list(result.failed_ids),
        )


class IssueCertificateRequest(BaseModel):
    """Re-run issuance for a completed pair whose certificate is missing."""

    user_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)


class IssueCertificateResponse(BaseModel):
    user_id: str
    course_id: str
    certificate_id: str | None = None


class BatchIssueRequest(BaseModel):
    course_id: str = Field(..., min_length=1)
    user_ids: list[str] = Field(..., min_length=1, max_length=500)


class BatchIssueResponse(BaseModel):
    """Per-learner outcome; ``failures`` maps user ids to error codes."""

    course_id: str
    total: int
    success: int
    failed: int
    certificate_ids: dict[str, str]
    failures: dict[str, str]

    @classmethod
    def from_result(
        cls, course_id: str, result: BatchIssuanceResult
    ) -> "BatchIssueResponse":
        return cls(
            course_id=course_id,
            total=result.total,
            success=result.success,
            failed=result.failed,
            certificate_ids=dict(result.certificate_ids),
            failures=dict(result.failures),
        )


class BatchVerifyRequest(BaseModel):
    verification_codes: list[str] = Field(..., min_length=1, max_length=500)


class BatchVerificationItem(VerificationResponse):
    verification_code: str


class BatchVerifyResponse(BaseModel):
    total: int
    valid: int
    invalid: int
    results: list[BatchVerificationItem]

    @classmethod
    def from_result(cls, result: BatchVerificationResult) -> "BatchVerifyResponse":
        return cls(
            total=result.total,
            valid=result.valid,
            invalid=result.invalid,
            results=[
                BatchVerificationItem(
                    verification_code=code,
                    **VerificationResponse.from_result(verification).model_dump(),
                )
                for code, verification in result.results
            ],
        )
