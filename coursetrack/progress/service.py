"""Learner progress service layer.

Business logic for:
- Enrollment and re-enrollment
- Lesson and module completion events
- Quiz result recording
- Completion detection and the certificate signal

Every mutation is a single store transaction covering the progress record and
its enrollment summary; the summary is reconciled inside that transaction, so a
caller that awaits an operation never observes a stale summary.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from coursetrack.enrollments.models import (
    PRESERVED_STATUSES,
    EnrolledBy,
    EnrollmentStatus,
    EnrollmentSummary,
)
from coursetrack.enrollments.repository import EnrollmentRepository
from coursetrack.errors import (
    EnrollmentRevokedError,
    NotEnrolledError,
    UnknownModuleError,
)
from coursetrack.reconciliation.service import ReconciliationService
from coursetrack.store import DocumentStore, Transaction
from coursetrack.topology.models import CourseTopology
from coursetrack.topology.provider import TopologyProvider

from .calculator import calculate_completion
from .models import AuditEntry, LessonProgress, ModuleProgress, ProgressRecord
from .repository import ProgressRepository
from .signals import CompletionHandler, CompletionSignal


logger = structlog.get_logger(__name__)

# (record, topology, now) -> None, mutating the record in place
RecordMutation = Callable[[ProgressRecord, CourseTopology, datetime], None]


def apply_completion(
    record: ProgressRecord, topology: CourseTopology, now: datetime
) -> bool:
    """Re-derive the record's computed fields from its completed lessons.

    Returns:
        True when ``completed`` flipped from False to True.
    """
    result = calculate_completion(topology, record.completed_lessons)

    module_progress: dict[str, ModuleProgress] = {}
    for module in topology.modules:
        previous = record.module_progress.get(module.module_id)
        is_complete = module.module_id in result.completed_modules
        completed_date = None
        if is_complete:
            completed_date = (
                previous.completed_date
                if previous is not None and previous.completed
                else now
            )
        module_progress[module.module_id] = ModuleProgress(
            completed=is_complete,
            progress=result.module_progress[module.module_id],
            completed_date=completed_date,
        )
    record.module_progress = module_progress
    record.completed_modules = sorted(result.completed_modules)

    # An active force-complete pins the record at 100 until a reset
    record.overall_progress = 100 if record.force_completed else result.overall_progress

    if record.overall_progress == 100 and not record.completed:
        record.completed = True
        record.completed_date = now
        return True

    if record.overall_progress < 100 and record.completed:
        # Regression keeps the issued certificate
        record.completed = False
        record.completed_date = None

    return False


def mark_lesson(
    record: ProgressRecord, key: str, completed: bool, now: datetime
) -> None:
    lesson = record.lesson_progress.get(key) or LessonProgress()
    if completed:
        record.add_completed_lesson(key)
        if not lesson.completed:
            lesson.completed_date = now
        lesson.completed = True
        lesson.progress = 100
    else:
        record.remove_completed_lesson(key)
        lesson.completed = False
        lesson.progress = 0
        lesson.completed_date = None
    lesson.last_access_date = now
    record.lesson_progress[key] = lesson


class ProgressService:
    """Service applying learner-driven events to progress records."""

    def __init__(
        self,
        store: DocumentStore,
        topology: TopologyProvider,
        reconciler: ReconciliationService,
        on_completion: CompletionHandler | None = None,
    ):
        self.store = store
        self.topology = topology
        self.reconciler = reconciler
        self.on_completion = on_completion
        self.progress = ProgressRepository(store)
        self.enrollments = EnrollmentRepository(store)

    async def emit_completion(self, signal: CompletionSignal) -> str | None:
        """Hand a completion over to the certificate issuer."""
        logger.info(
            "course_completed",
            user_id=signal.user_id,
            course_id=signal.course_id,
            source=signal.source,
        )
        if self.on_completion is None:
            return None
        try:
            return await self.on_completion(signal)
        except Exception:
            logger.exception(
                "completion_handler_failed",
                user_id=signal.user_id,
                course_id=signal.course_id,
            )
            raise

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(
        self,
        user_id: str,
        course_id: str,
        enrolled_by: EnrolledBy | None = None,
    ) -> EnrollmentSummary:
        """Enroll a learner, or re-activate an existing enrollment.

        Re-enrolling after completion clears the completion and certificate
        markers so the course can be taken again; per-lesson history entries
        are kept. Re-enrolling an active pair only reconciles its summary.
        Stored provenance is replaced only when ``enrolled_by`` is given.

        Raises:
            EnrollmentRevokedError: If the enrollment was revoked.
            TopologyLookupError: If the course topology is unavailable.
        """
        topology = await self.topology.get_topology(course_id)

        async def apply(txn: Transaction) -> tuple[EnrollmentSummary, str]:
            now = datetime.now(UTC)
            record = await self.progress.load(txn, user_id, course_id)
            summary = await self.enrollments.load(txn, user_id, course_id)

            if (record is not None and record.revoked) or (
                summary is not None and summary.is_revoked
            ):
                raise EnrollmentRevokedError

            if record is None:
                record = ProgressRecord(
                    user_id=user_id,
                    course_id=course_id,
                    course_name=topology.course_name,
                    start_date=now,
                )
                apply_completion(record, topology, now)
                outcome = "enrolled"
            elif summary is not None and summary.status == EnrollmentStatus.ACTIVE:
                summary, _ = await self.reconciler.sync_pair(txn, record)
                return summary, "already_active"
            else:
                if record.completed:
                    record.clear_completion()
                    record.completed_lessons = []
                    for lesson in record.lesson_progress.values():
                        lesson.completed = False
                        lesson.progress = 0
                record.course_name = topology.course_name or record.course_name
                record.last_access_date = now
                apply_completion(record, topology, now)
                outcome = "re_enrolled"

            self.progress.save(txn, record)
            summary, _ = await self.reconciler.sync_pair(
                txn, record, create_missing=True
            )
            if summary.status in PRESERVED_STATUSES:
                summary.status = EnrollmentStatus.ACTIVE
            if enrolled_by is not None:
                summary.enrolled_by = enrolled_by
            elif summary.enrolled_by is None:
                summary.enrolled_by = EnrolledBy()
            self.enrollments.save(txn, summary)
            return summary, outcome

        summary, outcome = await self.store.run_transaction(apply)

        logger.info(
            "learner_enrolled",
            user_id=user_id,
            course_id=course_id,
            outcome=outcome,
            method=enrolled_by.method if enrolled_by else None,
        )
        return summary

    async def unenroll(self, user_id: str, course_id: str) -> EnrollmentSummary:
        """Soft-deactivate an enrollment (status ``inactive``).

        A completed course stays ``completed``; completion is not withdrawn by
        leaving the course.

        Raises:
            NotEnrolledError: If the pair has no active progress record.
        """

        async def apply(txn: Transaction) -> EnrollmentSummary:
            record = await self.progress.load(txn, user_id, course_id)
            if record is None or record.revoked:
                raise NotEnrolledError

            summary, _ = await self.reconciler.sync_pair(
                txn, record, create_missing=True
            )
            if record.completed:
                return summary

            summary.status = EnrollmentStatus.INACTIVE
            self.enrollments.save(txn, summary)
            return summary

        summary = await self.store.run_transaction(apply)
        logger.info(
            "learner_unenrolled",
            user_id=user_id,
            course_id=course_id,
            status=summary.status.value,
        )
        return summary

    # ==========================================================================
    # Progress Events
    # ==========================================================================

    async def _apply_event(
        self,
        user_id: str,
        course_id: str,
        mutation: RecordMutation,
        event: str,
        audit: AuditEntry | None = None,
        topology: CourseTopology | None = None,
    ) -> ProgressRecord:
        """Run ``mutation`` and re-derive completion in one transaction."""
        if topology is None:
            topology = await self.topology.get_topology(course_id)

        async def apply(txn: Transaction) -> tuple[ProgressRecord, bool]:
            now = datetime.now(UTC)
            record = await self.progress.load(txn, user_id, course_id)
            if record is None or record.revoked:
                raise NotEnrolledError

            mutation(record, topology, now)
            record.last_access_date = now
            if audit is not None:
                record.admin_override = audit
            became_complete = apply_completion(record, topology, now)

            self.progress.save(txn, record)
            await self.reconciler.sync_pair(txn, record, create_missing=True)
            return record, became_complete

        record, became_complete = await self.store.run_transaction(apply)

        logger.info(
            event,
            user_id=user_id,
            course_id=course_id,
            overall_progress=record.overall_progress,
            completed=record.completed,
            admin_action=audit.action.value if audit else None,
        )

        if became_complete:
            await self.emit_completion(
                CompletionSignal(
                    user_id=user_id,
                    course_id=course_id,
                    course_name=record.course_name,
                    completed_date=record.completed_date or datetime.now(UTC),
                    source="admin" if audit else "learner",
                )
            )
            # Pick up the certificate id written back by the issuer
            record = await self.get_progress(user_id, course_id)

        return record

    async def record_lesson_event(
        self,
        user_id: str,
        course_id: str,
        lesson_key: str,
        completed: bool,
        audit: AuditEntry | None = None,
    ) -> ProgressRecord:
        """Mark a lesson (``moduleId_lessonId``) complete or incomplete.

        Raises:
            NotEnrolledError: If the pair has no active progress record.
            TopologyLookupError: If the course topology is unavailable.
        """
        topology = await self.topology.get_topology(course_id)
        if lesson_key not in topology.lesson_keys:
            logger.warning(
                "lesson_not_in_topology",
                user_id=user_id,
                course_id=course_id,
                lesson_key=lesson_key,
            )

        def mutation(record: ProgressRecord, _: CourseTopology, now: datetime) -> None:
            mark_lesson(record, lesson_key, completed, now)

        return await self._apply_event(
            user_id,
            course_id,
            mutation,
            "lesson_event_recorded",
            audit=audit,
            topology=topology,
        )

    async def record_module_complete(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        audit: AuditEntry | None = None,
    ) -> ProgressRecord:
        """Mark every lesson of a module complete.

        Raises:
            UnknownModuleError: If the module is not part of the course.
        """
        topology = await self.topology.get_topology(course_id)
        module = topology.get_module(module_id)
        if module is None:
            raise UnknownModuleError(f"Module {module_id} not found in course")

        def mutation(record: ProgressRecord, _: CourseTopology, now: datetime) -> None:
            for key in module.lesson_keys:
                mark_lesson(record, key, True, now)

        return await self._apply_event(
            user_id,
            course_id,
            mutation,
            "module_completed",
            audit=audit,
            topology=topology,
        )

    async def reset_module(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        audit: AuditEntry | None = None,
    ) -> ProgressRecord:
        """Mark every lesson of a module incomplete.

        Raises:
            UnknownModuleError: If the module is not part of the course.
        """
        topology = await self.topology.get_topology(course_id)
        module = topology.get_module(module_id)
        if module is None:
            raise UnknownModuleError(f"Module {module_id} not found in course")

        def mutation(record: ProgressRecord, _: CourseTopology, now: datetime) -> None:
            for key in module.lesson_keys:
                mark_lesson(record, key, False, now)

        return await self._apply_event(
            user_id,
            course_id,
            mutation,
            "module_reset",
            audit=audit,
            topology=topology,
        )

    async def record_quiz_score(
        self,
        user_id: str,
        course_id: str,
        quiz_id: str,
        score: float,
    ) -> ProgressRecord:
        """Store the latest quiz score and count the attempt.

        Quiz results do not affect completion.
        """

        async def apply(txn: Transaction) -> ProgressRecord:
            record = await self.progress.load(txn, user_id, course_id)
            if record is None or record.revoked:
                raise NotEnrolledError

            record.quiz_scores[quiz_id] = score
            record.quiz_attempts[quiz_id] = record.quiz_attempts.get(quiz_id, 0) + 1
            record.last_access_date = datetime.now(UTC)

            self.progress.save(txn, record)
            await self.reconciler.sync_pair(txn, record, create_missing=True)
            return record

        record = await self.store.run_transaction(apply)
        logger.info(
            "quiz_score_recorded",
            user_id=user_id,
            course_id=course_id,
            quiz_id=quiz_id,
            attempts=record.quiz_attempts[quiz_id],
        )
        return record

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_progress(self, user_id: str, course_id: str) -> ProgressRecord:
        """Get the progress record of a pair.

        Raises:
            NotEnrolledError: If the pair has no progress record.
        """
        record = await self.progress.get(user_id, course_id)
        if record is None:
            raise NotEnrolledError
        return record

    async def get_enrollment(self, user_id: str, course_id: str) -> EnrollmentSummary:
        summary = await self.enrollments.get(user_id, course_id)
        if summary is None:
            raise NotEnrolledError
        return summary

    async def list_enrollments(self, user_id: str) -> list[EnrollmentSummary]:
        return await self.enrollments.list_for_user(user_id)
