"""Tests for enrollment summary reconciliation."""

import pytest
import pytest_asyncio

from coursetrack.enrollments.models import (
    EnrolledBy,
    EnrollmentStatus,
    EnrollmentSummary,
)
from coursetrack.errors import NotEnrolledError, ReconciliationMismatchError
from coursetrack.progress.models import ProgressRecord
from coursetrack.reconciliation.service import derive_status, diff_summary
from coursetrack.store import DocumentKey


COURSE_ID = "course-pharma-101"
USER_ID = "user-ana"


async def drift_summary(store, user_id: str, course_id: str, **fields) -> None:
    """Overwrite summary fields behind the service's back."""
    key = DocumentKey.enrollment(user_id, course_id)
    document = await store.get(key)
    await store.put(key, {**document.body, **fields})


# ==============================================================================
# Derivation
# ==============================================================================


class TestDeriveStatus:
    def test_active(self) -> None:
        record = ProgressRecord(USER_ID, COURSE_ID)
        assert derive_status(record) == EnrollmentStatus.ACTIVE

    def test_completed(self) -> None:
        record = ProgressRecord(USER_ID, COURSE_ID, completed=True)
        assert derive_status(record, EnrollmentStatus.ACTIVE) == (
            EnrollmentStatus.COMPLETED
        )

    def test_revoked_wins(self) -> None:
        record = ProgressRecord(USER_ID, COURSE_ID, completed=True, revoked=True)
        assert derive_status(record) == EnrollmentStatus.REVOKED

    def test_inactive_is_preserved(self) -> None:
        record = ProgressRecord(USER_ID, COURSE_ID)
        assert derive_status(record, EnrollmentStatus.INACTIVE) == (
            EnrollmentStatus.INACTIVE
        )

    def test_completed_overrides_inactive(self) -> None:
        record = ProgressRecord(USER_ID, COURSE_ID, completed=True)
        assert derive_status(record, EnrollmentStatus.INACTIVE) == (
            EnrollmentStatus.COMPLETED
        )


class TestDiffSummary:
    def test_in_sync(self) -> None:
        record = ProgressRecord(
            USER_ID, COURSE_ID, completed_lessons=["m1_l1"], overall_progress=25
        )
        summary = EnrollmentSummary(
            user_id=USER_ID,
            course_id=COURSE_ID,
            progress=25,
            completed_lessons=["m1_l1"],
            last_accessed_at=record.last_access_date,
        )

        assert diff_summary(record, summary) == {}

    def test_reports_only_differing_fields(self) -> None:
        record = ProgressRecord(
            USER_ID, COURSE_ID, completed_lessons=["m1_l1"], overall_progress=25
        )
        summary = EnrollmentSummary(
            user_id=USER_ID,
            course_id=COURSE_ID,
            progress=10,
            completed_lessons=["m1_l1"],
            last_accessed_at=record.last_access_date,
        )

        assert diff_summary(record, summary) == {"progress": 25}


# ==============================================================================
# Single pair
# ==============================================================================


class TestReconcile:
    @pytest.mark.asyncio
    async def test_events_leave_nothing_to_reconcile(
        self, store, progress_service, reconciliation_service
    ) -> None:
        await progress_service.enroll(USER_ID, COURSE_ID)
        await progress_service.record_lesson_event(USER_ID, COURSE_ID, "m1_l1", True)
        commits = store.commit_count

        result = await reconciliation_service.reconcile(USER_ID, COURSE_ID)

        assert result.changed is False
        assert result.new_progress == 25
        assert store.commit_count == commits

    @pytest.mark.asyncio
    async def test_corrects_drift(
        self, store, progress_service, reconciliation_service
    ) -> None:
        await progress_service.enroll(USER_ID, COURSE_ID)
        await progress_service.record_lesson_event(USER_ID, COURSE_ID, "m1_l1", True)
        await drift_summary(
            store, USER_ID, COURSE_ID, progress=90, completed_lessons=[]
        )

        result = await reconciliation_service.reconcile(USER_ID, COURSE_ID)

        assert result.old_progress == 90
        assert result.new_progress == 25
        assert result.changed_fields == ["completed_lessons", "progress"]
        summary = await progress_service.get_enrollment(USER_ID, COURSE_ID)
        assert summary.progress == 25
        assert summary.completed_lessons == ["m1_l1"]

    @pytest.mark.asyncio
    async def test_second_run_is_a_fixpoint(
        self, store, progress_service, reconciliation_service
    ) -> None:
        await progress_service.enroll(USER_ID, COURSE_ID)
        await progress_service.record_lesson_event(USER_ID, COURSE_ID, "m1_l1", True)
        await drift_summary(store, USER_ID, COURSE_ID, status="completed")

        first = await reconciliation_service.reconcile(USER_ID, COURSE_ID)
        commits = store.commit_count
        second = await reconciliation_service.reconcile(USER_ID, COURSE_ID)

        assert first.changed_fields == ["status"]
        assert second.changed_fields == []
        assert store.commit_count == commits

    @pytest.mark.asyncio
    async def test_provenance_untouched(
        self, store, progress_service, reconciliation_service
    ) -> None:
        await progress_service.enroll(
            USER_ID, COURSE_ID, EnrolledBy("bulk", team_id="team-7", company_id="acme")
        )
        await drift_summary(store, USER_ID, COURSE_ID, progress=50)

        await reconciliation_service.reconcile(USER_ID, COURSE_ID)

        summary = await progress_service.get_enrollment(USER_ID, COURSE_ID)
        assert summary.progress == 0
        assert summary.enrolled_by.team_id == "team-7"
        assert summary.enrolled_by.company_id == "acme"

    @pytest.mark.asyncio
    async def test_missing_summary_is_a_mismatch(
        self, store, progress_service, reconciliation_service
    ) -> None:
        await progress_service.enroll(USER_ID, COURSE_ID)
        await store.delete(DocumentKey.enrollment(USER_ID, COURSE_ID))

        with pytest.raises(ReconciliationMismatchError):
            await reconciliation_service.reconcile(USER_ID, COURSE_ID)

        # Nothing was created
        assert await store.get(DocumentKey.enrollment(USER_ID, COURSE_ID)) is None

    @pytest.mark.asyncio
    async def test_missing_record(self, reconciliation_service) -> None:
        with pytest.raises(NotEnrolledError):
            await reconciliation_service.reconcile(USER_ID, COURSE_ID)


# ==============================================================================
# Sweep
# ==============================================================================


class TestSweep:
    @pytest_asyncio.fixture
    async def three_pairs(self, store, progress_service):
        for user_id in ("user-a", "user-b", "user-c"):
            await progress_service.enroll(user_id, COURSE_ID)
            await progress_service.record_lesson_event(
                user_id, COURSE_ID, "m1_l1", True
            )
        await drift_summary(store, "user-a", COURSE_ID, progress=0)
        await store.delete(DocumentKey.enrollment("user-c", COURSE_ID))

    @pytest.mark.asyncio
    async def test_failures_are_reported_and_sweep_continues(
        self, three_pairs, progress_service, reconciliation_service
    ) -> None:
        report = await reconciliation_service.sweep()

        assert report.total == 3
        assert report.synced == 2
        assert report.failed == 1
        by_user = {d.user_id: d for d in report.details}
        assert by_user["user-a"].success is True
        assert by_user["user-a"].old_progress == 0
        assert by_user["user-a"].new_progress == 25
        assert by_user["user-b"].changed_fields == []
        assert by_user["user-c"].success is False
        assert by_user["user-c"].error_code == "reconciliation_mismatch"

        summary = await progress_service.get_enrollment("user-a", COURSE_ID)
        assert summary.progress == 25

    @pytest.mark.asyncio
    async def test_user_filter(self, three_pairs, reconciliation_service) -> None:
        report = await reconciliation_service.sweep(user_id="user-b")

        assert report.total == 1
        assert report.details[0].user_id == "user-b"

    @pytest.mark.asyncio
    async def test_course_filter(self, three_pairs, reconciliation_service) -> None:
        report = await reconciliation_service.sweep(course_id="course-other")

        assert report.total == 0
        assert report.details == []

    @pytest.mark.asyncio
    async def test_rerun_only_repeats_failures(
        self, three_pairs, reconciliation_service
    ) -> None:
        await reconciliation_service.sweep()
        report = await reconciliation_service.sweep()

        assert report.failed == 1
        assert all(d.changed_fields == [] for d in report.details)
