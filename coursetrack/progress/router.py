"""Learner progress API endpoints.

Provides routes for:
- Enrollment, re-enrollment and leaving a course
- Lesson and module completion events
- Quiz results
- Progress queries

The learner is always the caller identified by ``X-Actor-ID``.
"""

from fastapi import APIRouter, status

from coursetrack.core.dependencies import ActorId, handle_service_error
from coursetrack.errors import CoursetrackError

from .dependencies import ProgressServiceDep
from .schemas import (
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonEventRequest,
    ProgressResponse,
    QuizScoreRequest,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a course",
)
async def enroll(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> EnrollmentResponse:
    """Enroll the caller, or re-activate a previous enrollment."""
    try:
        summary = await progress_service.enroll(actor_id, data.course_id)
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return EnrollmentResponse.from_entity(summary)


@enrollments_router.delete(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Leave a course",
)
async def unenroll(
    course_id: str,
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> EnrollmentResponse:
    """Soft-deactivate the caller's enrollment; progress is kept."""
    try:
        summary = await progress_service.unenroll(actor_id, course_id)
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return EnrollmentResponse.from_entity(summary)


@enrollments_router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_enrollments(
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> EnrollmentListResponse:
    summaries = await progress_service.list_enrollments(actor_id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(s) for s in summaries],
        total=len(summaries),
    )


# ==============================================================================
# Progress Endpoints
# ==============================================================================


@router.get(
    "/{course_id}",
    response_model=ProgressResponse,
    summary="Get course progress",
)
async def get_progress(
    course_id: str,
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> ProgressResponse:
    try:
        record = await progress_service.get_progress(actor_id, course_id)
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/{course_id}/lessons",
    response_model=ProgressResponse,
    summary="Record a lesson event",
)
async def record_lesson_event(
    course_id: str,
    data: LessonEventRequest,
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> ProgressResponse:
    """Mark a lesson complete or incomplete.

    Completing the last lesson completes the course and issues the
    certificate before the response is returned.
    """
    try:
        record = await progress_service.record_lesson_event(
            actor_id, course_id, data.lesson_key, data.completed
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/{course_id}/modules/{module_id}/complete",
    response_model=ProgressResponse,
    summary="Complete a whole module",
)
async def record_module_complete(
    course_id: str,
    module_id: str,
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> ProgressResponse:
    try:
        record = await progress_service.record_module_complete(
            actor_id, course_id, module_id
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)


@router.post(
    "/{course_id}/quizzes/{quiz_id}",
    response_model=ProgressResponse,
    summary="Record a quiz result",
)
async def record_quiz_score(
    course_id: str,
    quiz_id: str,
    data: QuizScoreRequest,
    progress_service: ProgressServiceDep,
    actor_id: ActorId,
) -> ProgressResponse:
    try:
        record = await progress_service.record_quiz_score(
            actor_id, course_id, quiz_id, data.score
        )
    except CoursetrackError as e:
        raise handle_service_error(e) from e
    return ProgressResponse.from_entity(record)
