"""Certificate issuance, verification and revocation.

Business logic for:
- Issuing at most one live certificate per completion, singly or in batch
- Verifying certificates by their public code, singly or in batch
- Single and batch revocation, including cascades from admin overrides
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog

from coursetrack.errors import (
    AlreadyCompletedError,
    CertificateNotFoundError,
    CoursetrackError,
    EnrollmentRevokedError,
    NotEnrolledError,
)
from coursetrack.progress.models import ProgressRecord
from coursetrack.progress.repository import ProgressRepository
from coursetrack.progress.signals import CompletionSignal
from coursetrack.store import DocumentStore, Transaction

from .codes import generate_verification_code, normalize_verification_code
from .models import SYSTEM_ACTOR, Certificate, RevocationReason
from .repository import CertificateRepository


logger = structlog.get_logger(__name__)

# Collisions are astronomically rare; a few redraws is plenty
MAX_CODE_ATTEMPTS = 5

DisplayNameResolver = Callable[[str], Awaitable[str | None]]


@dataclass
class VerificationResult:
    is_valid: bool
    status: str
    message: str
    certificate: Certificate | None = None
    verified_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class BatchRevocationResult:
    total: int = 0
    success: int = 0
    failed: int = 0
    failed_ids: list[str] = field(default_factory=list)


@dataclass
class BatchIssuanceResult:
    total: int = 0
    success: int = 0
    failed: int = 0
    certificate_ids: dict[str, str] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)


@dataclass
class BatchVerificationResult:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    results: list[tuple[str, VerificationResult]] = field(default_factory=list)


class CertificateService:
    """Service for certificate lifecycle."""

    def __init__(
        self,
        store: DocumentStore,
        repository: CertificateRepository,
        template_id: str = "default",
        code_groups: int = 4,
        verification_base_url: str = "",
        default_learner_name: str = "Student",
        display_name_resolver: DisplayNameResolver | None = None,
        validity_days: int | None = None,
    ):
        self.store = store
        self.progress = ProgressRepository(store)
        self.repository = repository
        self.template_id = template_id
        self.code_groups = code_groups
        self.verification_base_url = verification_base_url.rstrip("/")
        self.default_learner_name = default_learner_name
        self.display_name_resolver = display_name_resolver
        self.validity_days = validity_days

    def verification_url(self, verification_code: str) -> str:
        return f"{self.verification_base_url}/{verification_code}"

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def handle_completion(self, signal: CompletionSignal) -> str | None:
        """Completion signal handler wired into progress and admin services."""
        learner_name = await self._resolve_display_name(signal.user_id)
        return await self.issue_on_completion(
            user_id=signal.user_id,
            course_id=signal.course_id,
            course_name=signal.course_name,
            learner_display_name=learner_name,
        )

    async def _resolve_display_name(self, user_id: str) -> str:
        if self.display_name_resolver is None:
            return self.default_learner_name
        name = await self.display_name_resolver(user_id)
        return name or self.default_learner_name

    async def _guard_not_issued(self, record: ProgressRecord) -> None:
        """Raise AlreadyCompletedError if the record points at a live certificate."""
        if not record.certificate_id:
            return
        existing = await self.repository.get(record.certificate_id)
        if existing is not None and existing.is_live:
            raise AlreadyCompletedError(existing.id)

    async def _create_certificate(
        self,
        user_id: str,
        course_id: str,
        course_name: str,
        learner_display_name: str,
    ) -> Certificate:
        certificate = Certificate(
            user_id=user_id,
            course_id=course_id,
            course_name=course_name,
            user_name=learner_display_name,
            verification_code="",
            template_id=self.template_id,
        )
        if self.validity_days:
            certificate.expiry_date = certificate.issue_date + timedelta(
                days=self.validity_days
            )

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_verification_code(self.code_groups)
            if await self.repository.claim_code(code, certificate.id):
                certificate.verification_code = code
                break
        else:
            raise CoursetrackError(
                "Could not allocate a unique verification code",
                "verification_code_exhausted",
            )

        await self.repository.save(certificate)
        return certificate

    async def issue_on_completion(
        self,
        user_id: str,
        course_id: str,
        course_name: str,
        learner_display_name: str,
    ) -> str | None:
        """Issue the certificate for a completed pair.

        Idempotent: a pair already pointing at a live certificate gets that id
        back and nothing is created. If the id cannot be written back onto the
        progress record, the new certificate is revoked before the error
        propagates, so no orphan stays live.

        Returns:
            The live certificate id, or None if the record stopped being
            complete while the certificate was being created.

        Raises:
            NotEnrolledError: If the pair has no progress record.
            EnrollmentRevokedError: If the enrollment was revoked.
        """
        record = await self.progress.get(user_id, course_id)
        if record is None:
            raise NotEnrolledError
        if record.revoked:
            raise EnrollmentRevokedError
        if not record.completed:
            logger.warning(
                "certificate_issue_skipped_incomplete",
                user_id=user_id,
                course_id=course_id,
            )
            return None

        try:
            await self._guard_not_issued(record)
        except AlreadyCompletedError as e:
            logger.info(
                "certificate_already_issued",
                user_id=user_id,
                course_id=course_id,
                certificate_id=e.certificate_id,
            )
            return e.certificate_id

        certificate = await self._create_certificate(
            user_id, course_id, course_name or record.course_name, learner_display_name
        )

        async def write_back(txn: Transaction) -> str | None:
            current = await self.progress.load(txn, user_id, course_id)
            if current is None:
                raise NotEnrolledError
            if not current.completed or current.revoked:
                return None
            if current.certificate_id and current.certificate_id != certificate.id:
                existing = await self.repository.get(current.certificate_id)
                if existing is not None and existing.is_live:
                    return existing.id
            current.certificate_id = certificate.id
            current.certificate_issue_date = certificate.issue_date
            self.progress.save(txn, current)
            return certificate.id

        try:
            winner = await self.store.run_transaction(write_back)
        except Exception:
            logger.exception(
                "certificate_write_back_failed",
                user_id=user_id,
                course_id=course_id,
                certificate_id=certificate.id,
            )
            await self._revoke(
                certificate, RevocationReason.WRITE_BACK_FAILED.value, SYSTEM_ACTOR
            )
            raise

        if winner != certificate.id:
            reason = (
                RevocationReason.SUPERSEDED
                if winner
                else RevocationReason.COMPLETION_WITHDRAWN
            )
            await self._revoke(certificate, reason.value, SYSTEM_ACTOR)
            logger.info(
                "certificate_discarded",
                user_id=user_id,
                course_id=course_id,
                certificate_id=certificate.id,
                live_certificate_id=winner,
                reason=reason.value,
            )
            return winner

        logger.info(
            "certificate_issued",
            user_id=user_id,
            course_id=course_id,
            certificate_id=certificate.id,
            verification_code=certificate.verification_code,
        )
        return certificate.id

    async def issue_for_pair(self, user_id: str, course_id: str) -> str | None:
        """Issue a missing certificate for an already completed pair.

        Repairs completions whose issuance failed after the progress commit.

        Raises:
            NotEnrolledError: If the pair has no progress record.
            CoursetrackError: If the course is not completed.
        """
        record = await self.progress.get(user_id, course_id)
        if record is None:
            raise NotEnrolledError
        if not record.completed:
            raise CoursetrackError("Course is not completed", "course_not_completed")
        return await self.handle_completion(
            CompletionSignal(
                user_id=user_id,
                course_id=course_id,
                course_name=record.course_name,
                completed_date=record.completed_date or datetime.now(UTC),
                source="repair",
            )
        )

    async def issue_batch(
        self, course_id: str, user_ids: list[str]
    ) -> BatchIssuanceResult:
        """Issue certificates to many learners of one course.

        Learners already holding a live certificate count as a success and
        keep it. Pairs that are missing, revoked or incomplete are reported
        per learner without stopping the batch.
        """
        result = BatchIssuanceResult(total=len(user_ids))

        for user_id in user_ids:
            try:
                certificate_id = await self.issue_for_pair(user_id, course_id)
            except CoursetrackError as e:
                logger.warning(
                    "certificate_batch_issue_failed",
                    user_id=user_id,
                    course_id=course_id,
                    error=e.message,
                    error_code=e.code,
                )
                result.failed += 1
                result.failures[user_id] = e.code
                continue

            if certificate_id is None:
                result.failed += 1
                result.failures[user_id] = "course_not_completed"
            else:
                result.success += 1
                result.certificate_ids[user_id] = certificate_id

        logger.info(
            "certificate_batch_issued",
            course_id=course_id,
            total=result.total,
            success=result.success,
            failed=result.failed,
        )
        return result

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get(self, certificate_id: str) -> Certificate:
        certificate = await self.repository.get(certificate_id)
        if certificate is None:
            raise CertificateNotFoundError
        return certificate

    async def list_for_learner(self, user_id: str) -> list[Certificate]:
        return await self.repository.list_for_learner(user_id)

    async def verify(self, verification_code: str) -> VerificationResult:
        """Check a certificate presented by its public verification code."""
        code = normalize_verification_code(verification_code)
        certificate = await self.repository.get_by_code(code)

        if certificate is None:
            result = VerificationResult(
                is_valid=False, status="invalid", message="Certificate not found"
            )
        elif not certificate.is_live:
            result = VerificationResult(
                is_valid=False,
                status="revoked",
                message="Certificate has been revoked",
                certificate=certificate,
            )
        elif certificate.is_expired():
            result = VerificationResult(
                is_valid=False,
                status="expired",
                message="Certificate has expired",
                certificate=certificate,
            )
        else:
            result = VerificationResult(
                is_valid=True,
                status="valid",
                message="Certificate is valid",
                certificate=certificate,
            )

        logger.info(
            "certificate_verified",
            verification_code=code,
            status=result.status,
            certificate_id=certificate.id if certificate else None,
        )
        return result

    async def verify_batch(
        self, verification_codes: list[str]
    ) -> BatchVerificationResult:
        result = BatchVerificationResult(total=len(verification_codes))
        for code in verification_codes:
            verification = await self.verify(code)
            if verification.is_valid:
                result.valid += 1
            else:
                result.invalid += 1
            result.results.append((code, verification))
        return result

    # ==========================================================================
    # Revocation
    # ==========================================================================

    async def _revoke(
        self, certificate: Certificate, reason: str, actor_id: str
    ) -> Certificate:
        if not certificate.is_live:
            return certificate
        certificate.revoke(reason, actor_id)
        await self.repository.update_status(certificate)
        logger.info(
            "certificate_revoked",
            certificate_id=certificate.id,
            user_id=certificate.user_id,
            course_id=certificate.course_id,
            reason=reason,
            revoked_by=actor_id,
        )
        return certificate

    async def revoke(
        self, certificate_id: str, reason: str, actor_id: str
    ) -> Certificate:
        """Revoke a certificate. Revoking an already revoked one is a no-op.

        Raises:
            CertificateNotFoundError: If the certificate does not exist.
        """
        certificate = await self.get(certificate_id)
        return await self._revoke(certificate, reason, actor_id)

    async def revoke_batch(
        self, certificate_ids: list[str], reason: str, actor_id: str
    ) -> BatchRevocationResult:
        """Revoke many certificates; already revoked ones count as success."""
        result = BatchRevocationResult(total=len(certificate_ids))

        for certificate_id in certificate_ids:
            try:
                await self.revoke(certificate_id, reason, actor_id)
            except CoursetrackError as e:
                logger.warning(
                    "certificate_batch_revoke_failed",
                    certificate_id=certificate_id,
                    error=e.message,
                )
                result.failed += 1
                result.failed_ids.append(certificate_id)
            else:
                result.success += 1

        logger.info(
            "certificate_batch_revoked",
            total=result.total,
            success=result.success,
            failed=result.failed,
        )
        return result

    async def revoke_live_for_pair(
        self, user_id: str, course_id: str, reason: str, actor_id: str
    ) -> list[Certificate]:
        """Revoke every live certificate a learner holds for a course."""
        revoked = []
        for certificate in await self.repository.list_for_learner(user_id):
            if certificate.course_id == course_id and certificate.is_live:
                revoked.append(await self._revoke(certificate, reason, actor_id))
        return revoked
