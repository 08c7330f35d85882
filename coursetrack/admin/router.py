"""Admin override API endpoints.

All routes act on one (learner, course) pair and require the admin role.
"""

from fastapi import APIRouter, status

from coursetrack.core.dependencies import AdminId, handle_service_error
from coursetrack.enrollments.models import EnrolledBy
from coursetrack.errors import CoursetrackError
from coursetrack.progress.schemas import EnrollmentResponse, ProgressResponse

from .dependencies import AdminServiceDep
from .schemas import (
    AdminEnrollRequest,
    LessonOverrideRequest,
    OverrideRequest,
    RevokeEnrollmentResponse,
)


router = APIRouter(
    prefix="/v1/admin/learners/{user_id}/courses/{course_id}",
    tags=["admin"],
)


# ==============================================================================
# Course-level Overrides
# ==============================================================================


@router.post(
    "/enroll",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll a learner",
)
async def enroll_learner(
    user_id: str,
    course_id: str,
    data: AdminEnrollRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> EnrollmentResponse:
    """Enroll on the learner's behalf with team or company provenance."""
    try:
        summary = await admin_service.enroll_learner(
            user_id,
            course_id,
            admin_id,
            EnrolledBy(
                method=data.method,
                team_id=data.team_id,
                company_id=data.company_id,
            ),
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return EnrollmentResponse.from_entity(summary)


@router.post(
    "/force-complete",
    response_model=ProgressResponse,
    summary="Force-complete a course",
)
async def force_complete(
    user_id: str,
    course_id: str,
    data: OverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> ProgressResponse:
    """Mark the course complete and issue its certificate."""
    try:
        record = await admin_service.force_complete(
            user_id, course_id, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/reset",
    response_model=ProgressResponse,
    summary="Reset course progress",
)
async def reset_progress(
    user_id: str,
    course_id: str,
    data: OverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> ProgressResponse:
    """Clear all progress; the learner's live certificate is revoked."""
    try:
        record = await admin_service.reset_progress(
            user_id, course_id, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/revoke",
    response_model=RevokeEnrollmentResponse,
    summary="Revoke an enrollment",
)
async def revoke_enrollment(
    user_id: str,
    course_id: str,
    data: OverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> RevokeEnrollmentResponse:
    try:
        record, summary = await admin_service.revoke_enrollment(
            user_id, course_id, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return RevokeEnrollmentResponse(
        progress=ProgressResponse.from_entity(record) if record else None,
        enrollment=EnrollmentResponse.from_entity(summary) if summary else None,
    )


# ==============================================================================
# Module / Lesson Overrides
# ==============================================================================


@router.post(
    "/modules/{module_id}/complete",
    response_model=ProgressResponse,
    summary="Mark a module complete",
)
async def mark_module_complete(
    user_id: str,
    course_id: str,
    module_id: str,
    data: OverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> ProgressResponse:
    try:
        record = await admin_service.mark_module_complete(
            user_id, course_id, module_id, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/modules/{module_id}/reset",
    response_model=ProgressResponse,
    summary="Reset a module",
)
async def reset_module(
    user_id: str,
    course_id: str,
    module_id: str,
    data: OverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> ProgressResponse:
    try:
        record = await admin_service.reset_module(
            user_id, course_id, module_id, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/lessons/complete",
    response_model=ProgressResponse,
    summary="Mark a lesson complete",
)
async def mark_lesson_complete(
    user_id: str,
    course_id: str,
    data: LessonOverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> ProgressResponse:
    try:
        record = await admin_service.mark_lesson_complete(
            user_id, course_id, data.lesson_key, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/lessons/reset",
    response_model=ProgressResponse,
    summary="Mark a lesson incomplete",
)
async def reset_lesson(
    user_id: str,
    course_id: str,
    data: LessonOverrideRequest,
    admin_service: AdminServiceDep,
    admin_id: AdminId,
) -> ProgressResponse:
    try:
        record = await admin_service.reset_lesson(
            user_id, course_id, data.lesson_key, admin_id, note=data.note
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)
