"""Pydantic schemas for admin overrides."""

from pydantic import BaseModel, Field

from coursetrack.progress.schemas import EnrollmentResponse, ProgressResponse


class OverrideRequest(BaseModel):
    """Optional justification stored in the audit entry."""

    note: str | None = Field(default=None, max_length=1000)


class LessonOverrideRequest(OverrideRequest):
    lesson_key: str = Field(
        ..., min_length=3, description="Lesson key in moduleId_lessonId form"
    )


class RevokeEnrollmentResponse(BaseModel):
    """Both documents after revocation; either may have been missing."""

    progress: ProgressResponse | None = None
    enrollment: EnrollmentResponse | None = None


class AdminEnrollRequest(BaseModel):
    """Enrollment made on a learner's behalf, e.g. by a team or company."""

    method: str = Field(default="bulk", min_length=1, description="Enrollment channel")
    team_id: str | None = Field(default=None, description="Bulk enrollment team")
    company_id: str | None = Field(default=None, description="Bulk enrollment company")
