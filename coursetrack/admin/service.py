"""Administrative overrides of learner progress.

Force-complete, reset and revoke bypass the completion calculator and apply to
the progress record and the enrollment summary in one store transaction.
Lesson and module marks go through the regular progress events, tagged with
an audit entry.
"""

from datetime import UTC, datetime

import structlog

from coursetrack.certificates.models import RevocationReason
from coursetrack.certificates.service import CertificateService
from coursetrack.enrollments.models import (
    EnrolledBy,
    EnrollmentStatus,
    EnrollmentSummary,
)
from coursetrack.enrollments.repository import EnrollmentRepository
from coursetrack.errors import EnrollmentRevokedError, NotEnrolledError
from coursetrack.progress.models import AuditAction, AuditEntry, ProgressRecord
from coursetrack.progress.repository import ProgressRepository
from coursetrack.progress.service import ProgressService
from coursetrack.progress.signals import CompletionSignal
from coursetrack.reconciliation.service import ReconciliationService
from coursetrack.store import DocumentStore, Transaction


logger = structlog.get_logger(__name__)


class AdminOverrideService:
    """Privileged state transitions on (user, course) pairs."""

    def __init__(
        self,
        store: DocumentStore,
        progress_service: ProgressService,
        reconciler: ReconciliationService,
        certificates: CertificateService | None = None,
    ):
        self.store = store
        self.progress_service = progress_service
        self.reconciler = reconciler
        self.certificates = certificates
        self.progress = ProgressRepository(store)
        self.enrollments = EnrollmentRepository(store)

    async def _load_for_override(
        self, txn: Transaction, user_id: str, course_id: str
    ) -> ProgressRecord:
        record = await self.progress.load(txn, user_id, course_id)
        if record is None:
            raise NotEnrolledError
        if record.revoked:
            raise EnrollmentRevokedError
        return record

    def _log_override(
        self,
        audit: AuditEntry,
        user_id: str,
        course_id: str,
        **extra: object,
    ) -> None:
        logger.info(
            "admin_override_applied",
            action=audit.action.value,
            admin_id=audit.actor_id,
            user_id=user_id,
            course_id=course_id,
            note=audit.note,
            **extra,
        )

    async def enroll_learner(
        self,
        user_id: str,
        course_id: str,
        admin_id: str,
        enrolled_by: EnrolledBy,
    ) -> EnrollmentSummary:
        """Enroll a learner on their behalf, recording bulk provenance."""
        summary = await self.progress_service.enroll(
            user_id, course_id, enrolled_by=enrolled_by
        )
        logger.info(
            "admin_enrolled_learner",
            admin_id=admin_id,
            user_id=user_id,
            course_id=course_id,
            method=enrolled_by.method,
            team_id=enrolled_by.team_id,
            company_id=enrolled_by.company_id,
        )
        return summary

    # ==========================================================================
    # Two-document overrides
    # ==========================================================================

    async def force_complete(
        self,
        user_id: str,
        course_id: str,
        admin_id: str,
        note: str | None = None,
    ) -> ProgressRecord:
        """Mark a course complete regardless of lesson progress.

        A False to True transition emits the completion signal, so the
        certificate issuer runs exactly as for a learner completion.

        Raises:
            NotEnrolledError: If the pair has no progress record.
            EnrollmentRevokedError: If the enrollment was revoked.
        """
        audit = AuditEntry(AuditAction.FORCE_COMPLETE, admin_id, note=note)

        async def apply(txn: Transaction) -> tuple[ProgressRecord, bool]:
            record = await self._load_for_override(txn, user_id, course_id)
            was_completed = record.completed

            record.force_completed = True
            record.overall_progress = 100
            record.completed = True
            if not was_completed or record.completed_date is None:
                record.completed_date = datetime.now(UTC)
            record.admin_override = audit
            self.progress.save(txn, record)

            summary, _ = await self.reconciler.sync_pair(
                txn, record, create_missing=True
            )
            summary.admin_override = audit
            self.enrollments.save(txn, summary)
            return record, not was_completed

        record, became_complete = await self.store.run_transaction(apply)
        self._log_override(audit, user_id, course_id, was_completed=not became_complete)

        if became_complete:
            await self.progress_service.emit_completion(
                CompletionSignal(
                    user_id=user_id,
                    course_id=course_id,
                    course_name=record.course_name,
                    completed_date=record.completed_date or datetime.now(UTC),
                    source="admin",
                )
            )
            record = await self.progress_service.get_progress(user_id, course_id)

        return record

    async def reset_progress(
        self,
        user_id: str,
        course_id: str,
        admin_id: str,
        note: str | None = None,
    ) -> ProgressRecord:
        """Clear all progress of a pair and revoke its live certificates.

        Raises:
            NotEnrolledError: If the pair has no progress record.
            EnrollmentRevokedError: If the enrollment was revoked.
        """
        audit = AuditEntry(AuditAction.RESET_PROGRESS, admin_id, note=note)

        async def apply(txn: Transaction) -> tuple[ProgressRecord, str | None]:
            record = await self._load_for_override(txn, user_id, course_id)
            previous_certificate = record.certificate_id

            record.completed_lessons = []
            record.completed_modules = []
            record.lesson_progress = {}
            record.module_progress = {}
            record.overall_progress = 0
            record.clear_completion()
            record.admin_override = audit
            self.progress.save(txn, record)

            summary, _ = await self.reconciler.sync_pair(
                txn, record, create_missing=True
            )
            summary.status = EnrollmentStatus.ACTIVE
            summary.admin_override = audit
            self.enrollments.save(txn, summary)
            return record, previous_certificate

        record, previous_certificate = await self.store.run_transaction(apply)
        self._log_override(
            audit, user_id, course_id, previous_certificate_id=previous_certificate
        )

        if self.certificates is not None:
            await self.certificates.revoke_live_for_pair(
                user_id, course_id, RevocationReason.PROGRESS_RESET.value, admin_id
            )

        return record

    async def revoke_enrollment(
        self,
        user_id: str,
        course_id: str,
        admin_id: str,
        note: str | None = None,
    ) -> tuple[ProgressRecord | None, EnrollmentSummary | None]:
        """Revoke an enrollment; history is kept, live certificates are revoked.

        Tolerates either document being missing.

        Raises:
            NotEnrolledError: If neither document exists.
        """
        audit = AuditEntry(AuditAction.REVOKE_ENROLLMENT, admin_id, note=note)

        async def apply(
            txn: Transaction,
        ) -> tuple[ProgressRecord | None, EnrollmentSummary | None]:
            record = await self.progress.load(txn, user_id, course_id)
            summary = await self.enrollments.load(txn, user_id, course_id)
            if record is None and summary is None:
                raise NotEnrolledError

            if record is not None:
                record.revoked = True
                record.admin_override = audit
                self.progress.save(txn, record)

            if summary is not None:
                summary.status = EnrollmentStatus.REVOKED
                summary.admin_override = audit
                self.enrollments.save(txn, summary)

            return record, summary

        record, summary = await self.store.run_transaction(apply)

        if record is None or summary is None:
            logger.warning(
                "revoke_enrollment_partial",
                user_id=user_id,
                course_id=course_id,
                progress_missing=record is None,
                summary_missing=summary is None,
            )
        self._log_override(audit, user_id, course_id)

        if self.certificates is not None:
            await self.certificates.revoke_live_for_pair(
                user_id, course_id, RevocationReason.ENROLLMENT_REVOKED.value, admin_id
            )

        return record, summary

    # ==========================================================================
    # Admin-tagged progress events
    # ==========================================================================

    async def mark_module_complete(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        admin_id: str,
        note: str | None = None,
    ) -> ProgressRecord:
        audit = AuditEntry(AuditAction.MARK_MODULE_COMPLETE, admin_id, note=note)
        record = await self.progress_service.record_module_complete(
            user_id, course_id, module_id, audit=audit
        )
        self._log_override(audit, user_id, course_id, module_id=module_id)
        return record

    async def reset_module(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        admin_id: str,
        note: str | None = None,
    ) -> ProgressRecord:
        audit = AuditEntry(AuditAction.RESET_MODULE, admin_id, note=note)
        record = await self.progress_service.reset_module(
            user_id, course_id, module_id, audit=audit
        )
        self._log_override(audit, user_id, course_id, module_id=module_id)
        return record

    async def mark_lesson_complete(
        self,
        user_id: str,
        course_id: str,
        lesson_key: str,
        admin_id: str,
        note: str | None = None,
    ) -> ProgressRecord:
        audit = AuditEntry(AuditAction.MARK_LESSON_COMPLETE, admin_id, note=note)
        record = await self.progress_service.record_lesson_event(
            user_id, course_id, lesson_key, True, audit=audit
        )
        self._log_override(audit, user_id, course_id, lesson_key=lesson_key)
        return record

    async def reset_lesson(
        self,
        user_id: str,
        course_id: str,
        lesson_key: str,
        admin_id: str,
        note: str | None = None,
    ) -> ProgressRecord:
        audit = AuditEntry(AuditAction.RESET_LESSON, admin_id, note=note)
        record = await self.progress_service.record_lesson_event(
            user_id, course_id, lesson_key, False, audit=audit
        )
        self._log_override(audit, user_id, course_id, lesson_key=lesson_key)
        return record
