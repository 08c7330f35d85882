"""Reconciliation API endpoints (admin only)."""

from fastapi import APIRouter

from coursetrack.core.dependencies import AdminId, handle_service_error
from coursetrack.errors import CoursetrackError

from .dependencies import ReconciliationServiceDep
from .schemas import ReconcileResponse, SweepRequest, SweepResponse


router = APIRouter(prefix="/v1/admin/reconciliation", tags=["reconciliation"])


@router.post(
    "/learners/{user_id}/courses/{course_id}",
    response_model=ReconcileResponse,
    summary="Reconcile one enrollment",
)
async def reconcile_pair(
    user_id: str,
    course_id: str,
    reconciliation_service: ReconciliationServiceDep,
    admin_id: AdminId,
) -> ReconcileResponse:
    """Recompute the enrollment summary from the progress record."""
    try:
        result = await reconciliation_service.reconcile(user_id, course_id)
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ReconcileResponse.from_result(result)


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Reconcile many enrollments",
)
async def sweep(
    data: SweepRequest,
    reconciliation_service: ReconciliationServiceDep,
    admin_id: AdminId,
) -> SweepResponse:
    """Reconcile every pair matching the filters.

    Per-pair failures are reported in ``details``; the sweep itself succeeds.
    """
    report = await reconciliation_service.sweep(
        user_id=data.user_id, course_id=data.course_id
    )
    return SweepResponse.from_report(report)
