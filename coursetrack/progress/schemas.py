"""Pydantic schemas for learner progress.

Request and response models for:
- Enrollment and re-enrollment
- Lesson, module and quiz events
- Progress and enrollment queries
"""

from datetime import datetime

from pydantic import BaseModel, Field

from coursetrack.enrollments.models import EnrollmentStatus, EnrollmentSummary

from .models import AuditEntry, LessonProgress, ModuleProgress, ProgressRecord


# ==============================================================================
# Shared
# ==============================================================================


class AuditEntryResponse(BaseModel):
    """Last admin action applied to a document."""

    action: str
    actor_id: str
    timestamp: datetime
    note: str | None = None

    @classmethod
    def from_entity(cls, entity: AuditEntry | None) -> "AuditEntryResponse | None":
        if entity is None:
            return None
        return cls(
            action=entity.action.value,
            actor_id=entity.actor_id,
            timestamp=entity.timestamp,
            note=entity.note,
        )


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in (or re-enroll into) a course."""

    course_id: str = Field(..., min_length=1, description="Course identifier")


class EnrolledByResponse(BaseModel):
    method: str
    team_id: str | None = None
    company_id: str | None = None


class EnrollmentResponse(BaseModel):
    """Enrollment summary as shown in list views."""

    user_id: str
    course_id: str
    course_name: str
    status: EnrollmentStatus
    progress: int = Field(description="0-100 percentage")
    completed_lessons: list[str]
    enrolled_at: datetime
    last_accessed_at: datetime | None = None
    enrolled_by: EnrolledByResponse | None = None
    admin_override: AuditEntryResponse | None = None

    @classmethod
    def from_entity(cls, entity: EnrollmentSummary) -> "EnrollmentResponse":
        """Create response from entity."""
        enrolled_by = None
        if entity.enrolled_by is not None:
            enrolled_by = EnrolledByResponse(
                method=entity.enrolled_by.method,
                team_id=entity.enrolled_by.team_id,
                company_id=entity.enrolled_by.company_id,
            )
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            course_name=entity.course_name,
            status=entity.status,
            progress=entity.progress,
            completed_lessons=list(entity.completed_lessons),
            enrolled_at=entity.enrolled_at,
            last_accessed_at=entity.last_accessed_at,
            enrolled_by=enrolled_by,
            admin_override=AuditEntryResponse.from_entity(entity.admin_override),
        )


class EnrollmentListResponse(BaseModel):
    """A learner's enrollments, newest first."""

    items: list[EnrollmentResponse]
    total: int


# ==============================================================================
# Progress Event Schemas
# ==============================================================================


class LessonEventRequest(BaseModel):
    """Mark a lesson complete or incomplete."""

    lesson_key: str = Field(
        ..., min_length=3, description="Lesson key in moduleId_lessonId form"
    )
    completed: bool = Field(default=True, description="New completion state")


class QuizScoreRequest(BaseModel):
    """Record a quiz attempt."""

    score: float = Field(..., ge=0, le=100, description="Score in percent")


# ==============================================================================
# Progress Response Schemas
# ==============================================================================


class LessonProgressResponse(BaseModel):
    completed: bool
    progress: int
    completed_date: datetime | None = None
    last_access_date: datetime | None = None

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        return cls(
            completed=entity.completed,
            progress=entity.progress,
            completed_date=entity.completed_date,
            last_access_date=entity.last_access_date,
        )


class ModuleProgressResponse(BaseModel):
    completed: bool
    progress: int
    completed_date: datetime | None = None

    @classmethod
    def from_entity(cls, entity: ModuleProgress) -> "ModuleProgressResponse":
        return cls(
            completed=entity.completed,
            progress=entity.progress,
            completed_date=entity.completed_date,
        )


class ProgressResponse(BaseModel):
    """Full progress record of a learner in a course."""

    user_id: str
    course_id: str
    course_name: str
    overall_progress: int = Field(description="0-100 percentage")
    completed: bool
    completed_date: datetime | None = None
    completed_lessons: list[str]
    completed_modules: list[str]
    lesson_progress: dict[str, LessonProgressResponse]
    module_progress: dict[str, ModuleProgressResponse]
    quiz_scores: dict[str, float]
    quiz_attempts: dict[str, int]
    start_date: datetime
    last_access_date: datetime
    certificate_id: str | None = None
    certificate_issue_date: datetime | None = None
    revoked: bool = False
    admin_override: AuditEntryResponse | None = None

    @classmethod
    def from_entity(cls, entity: ProgressRecord) -> "ProgressResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            course_name=entity.course_name,
            overall_progress=entity.overall_progress,
            completed=entity.completed,
            completed_date=entity.completed_date,
            completed_lessons=list(entity.completed_lessons),
            completed_modules=list(entity.completed_modules),
            lesson_progress={
                k: LessonProgressResponse.from_entity(v)
                for k, v in entity.lesson_progress.items()
            },
            module_progress={
                k: ModuleProgressResponse.from_entity(v)
                for k, v in entity.module_progress.items()
            },
            quiz_scores=dict(entity.quiz_scores),
            quiz_attempts=dict(entity.quiz_attempts),
            start_date=entity.start_date,
            last_access_date=entity.last_access_date,
            certificate_id=entity.certificate_id,
            certificate_issue_date=entity.certificate_issue_date,
            revoked=entity.revoked,
            admin_override=AuditEntryResponse.from_entity(entity.admin_override),
        )
