"""Certificate API endpoints.

Provides routes for:
- Public verification by code
- Learner certificate queries
- Admin revocation (single and batch), batch verification
- Admin issuance, batch or as repair of a failed completion
"""

from fastapi import APIRouter, HTTPException, status

from coursetrack.core.dependencies import ActorId, AdminId, handle_service_error
from coursetrack.errors import CoursetrackError

from .dependencies import CertificateServiceDep
from .schemas import (
    BatchIssueRequest,
    BatchIssueResponse,
    BatchRevokeRequest,
    BatchRevokeResponse,
    BatchVerifyRequest,
    BatchVerifyResponse,
    CertificateListResponse,
    CertificateResponse,
    IssueCertificateRequest,
    IssueCertificateResponse,
    RevokeCertificateRequest,
    VerificationResponse,
)


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])
admin_router = APIRouter(prefix="/v1/admin/certificates", tags=["admin-certificates"])


# ==============================================================================
# Public / Learner Endpoints
# ==============================================================================


@router.get(
    "/verify/{verification_code}",
    response_model=VerificationResponse,
    summary="Verify a certificate",
)
async def verify_certificate(
    verification_code: str,
    certificate_service: CertificateServiceDep,
) -> VerificationResponse:
    """Public check of a certificate by its verification code."""
    result = await certificate_service.verify(verification_code)
    return VerificationResponse.from_result(result)


@router.get(
    "/me",
    response_model=CertificateListResponse,
    summary="List my certificates",
)
async def list_my_certificates(
    certificate_service: CertificateServiceDep,
    actor_id: ActorId,
) -> CertificateListResponse:
    certificates = await certificate_service.list_for_learner(actor_id)
    return CertificateListResponse(
        items=[
            CertificateResponse.from_entity(
                c, certificate_service.verification_url(c.verification_code)
            )
            for c in certificates
        ],
        total=len(certificates),
    )


@router.get(
    "/{certificate_id}",
    response_model=CertificateResponse,
    summary="Get one of my certificates",
)
async def get_certificate(
    certificate_id: str,
    certificate_service: CertificateServiceDep,
    actor_id: ActorId,
) -> CertificateResponse:
    try:
        certificate = await certificate_service.get(certificate_id)
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    if certificate.user_id != actor_id:
        # Do not reveal other learners' certificate ids
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Certificate not found",
        )
    return CertificateResponse.from_entity(
        certificate, certificate_service.verification_url(certificate.verification_code)
    )


# ==============================================================================
# Admin Endpoints
# ==============================================================================


@admin_router.get(
    "/learner/{user_id}",
    response_model=CertificateListResponse,
    summary="List a learner's certificates",
)
async def list_learner_certificates(
    user_id: str,
    certificate_service: CertificateServiceDep,
    admin_id: AdminId,
) -> CertificateListResponse:
    certificates = await certificate_service.list_for_learner(user_id)
    return CertificateListResponse(
        items=[
            CertificateResponse.from_entity(
                c, certificate_service.verification_url(c.verification_code)
            )
            for c in certificates
        ],
        total=len(certificates),
    )


@admin_router.post(
    "/{certificate_id}/revoke",
    response_model=CertificateResponse,
    summary="Revoke a certificate",
)
async def revoke_certificate(
    certificate_id: str,
    data: RevokeCertificateRequest,
    certificate_service: CertificateServiceDep,
    admin_id: AdminId,
) -> CertificateResponse:
    try:
        certificate = await certificate_service.revoke(
            certificate_id, data.reason, admin_id
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return CertificateResponse.from_entity(
        certificate, certificate_service.verification_url(certificate.verification_code)
    )


@admin_router.post(
    "/revoke-batch",
    response_model=BatchRevokeResponse,
    summary="Revoke many certificates",
)
async def revoke_certificates_batch(
    data: BatchRevokeRequest,
    certificate_service: CertificateServiceDep,
    admin_id: AdminId,
) -> BatchRevokeResponse:
    result = await certificate_service.revoke_batch(
        data.certificate_ids, data.reason, admin_id
    )
    return BatchRevokeResponse.from_result(result)


@admin_router.post(
    "/verify-batch",
    response_model=BatchVerifyResponse,
    summary="Verify many certificates",
)
async def verify_certificates_batch(
    data: BatchVerifyRequest,
    certificate_service: CertificateServiceDep,
    admin_id: AdminId,
) -> BatchVerifyResponse:
    result = await certificate_service.verify_batch(data.verification_codes)
    return BatchVerifyResponse.from_result(result)


@admin_router.post(
    "/issue-batch",
    response_model=BatchIssueResponse,
    summary="Issue certificates to many learners",
)
async def issue_certificates_batch(
    data: BatchIssueRequest,
    certificate_service: CertificateServiceDep,
    admin_id: AdminId,
) -> BatchIssueResponse:
    """Issue to every listed learner who completed the course.

    Learners who already hold a live certificate keep it.
    """
    result = await certificate_service.issue_batch(data.course_id, data.user_ids)
    return BatchIssueResponse.from_result(data.course_id, result)


@admin_router.post(
    "/issue",
    response_model=IssueCertificateResponse,
    summary="Issue a missing certificate",
)
async def issue_certificate(
    data: IssueCertificateRequest,
    certificate_service: CertificateServiceDep,
    admin_id: AdminId,
) -> IssueCertificateResponse:
    """Repair a completion whose certificate issuance failed."""
    try:
        certificate_id = await certificate_service.issue_for_pair(
            data.user_id, data.course_id
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return IssueCertificateResponse(
        user_id=data.user_id,
        course_id=data.course_id,
        certificate_id=certificate_id,
    )
