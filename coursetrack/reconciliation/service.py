"""Reconciliation of enrollment summaries from progress records.

The summary is a pure function of the progress record plus the summary's own
provenance fields. Reconciling writes only the fields that differ, so running
it twice in a row leaves the second call with nothing to write.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from coursetrack.core.context import OperationContext, get_actor_id
from coursetrack.enrollments.models import (
    PRESERVED_STATUSES,
    EnrollmentStatus,
    EnrollmentSummary,
)
from coursetrack.enrollments.repository import EnrollmentRepository
from coursetrack.errors import (
    CoursetrackError,
    NotEnrolledError,
    ReconciliationMismatchError,
)
from coursetrack.progress.models import ProgressRecord
from coursetrack.progress.repository import ProgressRepository
from coursetrack.store import DocumentStore, Transaction


logger = structlog.get_logger(__name__)


# ==============================================================================
# Pure derivation
# ==============================================================================


def derive_status(
    record: ProgressRecord, current: EnrollmentStatus | None = None
) -> EnrollmentStatus:
    """Status an enrollment summary should carry for ``record``."""
    if record.revoked:
        return EnrollmentStatus.REVOKED
    if record.completed:
        return EnrollmentStatus.COMPLETED
    if current in PRESERVED_STATUSES:
        return current
    return EnrollmentStatus.ACTIVE


def derive_enrollment_fields(
    record: ProgressRecord, current: EnrollmentStatus | None = None
) -> dict[str, Any]:
    """Summary fields mirrored from the progress record."""
    return {
        "course_name": record.course_name,
        "progress": record.overall_progress,
        "status": derive_status(record, current),
        "completed_lessons": sorted(record.completed_lessons),
        "last_accessed_at": record.last_access_date,
    }


def diff_summary(
    record: ProgressRecord, summary: EnrollmentSummary
) -> dict[str, Any]:
    """Fields of ``summary`` that disagree with ``record``, with target values."""
    expected = derive_enrollment_fields(record, summary.status)
    return {
        name: value
        for name, value in expected.items()
        if getattr(summary, name) != value
    }


def summary_from_record(record: ProgressRecord) -> EnrollmentSummary:
    """Build a fresh summary for a record whose summary is missing."""
    fields = derive_enrollment_fields(record)
    return EnrollmentSummary(
        user_id=record.user_id,
        course_id=record.course_id,
        enrolled_at=record.start_date,
        **fields,
    )


# ==============================================================================
# Results
# ==============================================================================


@dataclass
class ReconcileResult:
    user_id: str
    course_id: str
    old_progress: int | None
    new_progress: int
    changed_fields: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_fields)


@dataclass
class SweepDetail:
    user_id: str
    course_id: str
    success: bool
    old_progress: int | None = None
    new_progress: int | None = None
    changed_fields: list[str] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None


@dataclass
class SweepReport:
    synced: int = 0
    failed: int = 0
    details: list[SweepDetail] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.synced + self.failed


# ==============================================================================
# Reconciliation Service
# ==============================================================================


class ReconciliationService:
    """Recompute enrollment summaries from their progress records."""

    def __init__(self, store: DocumentStore, concurrency: int = 8):
        self.store = store
        self.progress = ProgressRepository(store)
        self.enrollments = EnrollmentRepository(store)
        self.concurrency = concurrency

    async def sync_pair(
        self,
        txn: Transaction,
        record: ProgressRecord,
        create_missing: bool = False,
    ) -> tuple[EnrollmentSummary, ReconcileResult]:
        """Bring the pair's summary in line with ``record`` inside ``txn``.

        ``record`` is the version the caller is about to commit (or just read),
        so mutations and their reconciliation land in the same commit.

        Raises:
            ReconciliationMismatchError: If the summary is missing and
                ``create_missing`` is False.
        """
        summary = await self.enrollments.load(txn, record.user_id, record.course_id)

        if summary is None:
            if not create_missing:
                raise ReconciliationMismatchError(
                    f"Enrollment summary missing for user {record.user_id} "
                    f"course {record.course_id}"
                )
            summary = summary_from_record(record)
            self.enrollments.save(txn, summary)
            logger.warning(
                "enrollment_summary_recreated",
                user_id=record.user_id,
                course_id=record.course_id,
            )
            return summary, ReconcileResult(
                user_id=record.user_id,
                course_id=record.course_id,
                old_progress=None,
                new_progress=summary.progress,
                changed_fields=sorted(derive_enrollment_fields(record)),
            )

        old_progress = summary.progress
        changes = diff_summary(record, summary)
        if changes:
            for name, value in changes.items():
                setattr(summary, name, value)
            self.enrollments.save(txn, summary)

        return summary, ReconcileResult(
            user_id=record.user_id,
            course_id=record.course_id,
            old_progress=old_progress,
            new_progress=summary.progress,
            changed_fields=sorted(changes),
        )

    async def reconcile(self, user_id: str, course_id: str) -> ReconcileResult:
        """Reconcile a single pair.

        Raises:
            NotEnrolledError: If the pair has no progress record.
            ReconciliationMismatchError: If the pair has no enrollment summary.
        """

        async def apply(txn: Transaction) -> ReconcileResult:
            record = await self.progress.load(txn, user_id, course_id)
            if record is None:
                raise NotEnrolledError
            _, result = await self.sync_pair(txn, record)
            return result

        result = await self.store.run_transaction(apply)

        if result.changed:
            logger.info(
                "enrollment_reconciled",
                user_id=user_id,
                course_id=course_id,
                old_progress=result.old_progress,
                new_progress=result.new_progress,
                changed_fields=result.changed_fields,
            )
        return result

    async def sweep(
        self,
        user_id: str | None = None,
        course_id: str | None = None,
    ) -> SweepReport:
        """Reconcile every pair matching the filters.

        Per-pair failures are recorded in the report; the sweep always runs to
        the end. Pairs are independent, so an interrupted sweep can simply be
        run again.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        report = SweepReport()

        async def worker(pair_user: str, pair_course: str) -> SweepDetail:
            async with semaphore:
                try:
                    result = await self.reconcile(pair_user, pair_course)
                except CoursetrackError as e:
                    logger.warning(
                        "reconcile_pair_failed",
                        user_id=pair_user,
                        course_id=pair_course,
                        error=e.message,
                        error_code=e.code,
                    )
                    return SweepDetail(
                        user_id=pair_user,
                        course_id=pair_course,
                        success=False,
                        error=e.message,
                        error_code=e.code,
                    )
                except Exception as e:
                    logger.exception(
                        "reconcile_pair_crashed",
                        user_id=pair_user,
                        course_id=pair_course,
                    )
                    return SweepDetail(
                        user_id=pair_user,
                        course_id=pair_course,
                        success=False,
                        error=str(e),
                        error_code="internal_error",
                    )
                return SweepDetail(
                    user_id=pair_user,
                    course_id=pair_course,
                    success=True,
                    old_progress=result.old_progress,
                    new_progress=result.new_progress,
                    changed_fields=result.changed_fields,
                )

        with OperationContext(operation="reconcile_sweep", actor_id=get_actor_id()):
            logger.info("reconcile_sweep_started", user_id=user_id, course_id=course_id)

            pairs = [
                (record.user_id, record.course_id)
                async for record in self.progress.iter_records(
                    user_id=user_id, course_id=course_id
                )
            ]
            details = await asyncio.gather(*(worker(u, c) for u, c in pairs))

            for detail in details:
                report.details.append(detail)
                if detail.success:
                    report.synced += 1
                else:
                    report.failed += 1

            logger.info(
                "reconcile_sweep_finished",
                total=report.total,
                synced=report.synced,
                failed=report.failed,
            )

        return report
