"""Denormalized enrollment summary used by list views.

One summary per (user, course), stored in the user's partition next to the
progress record. Its ``progress``, ``status`` and ``completed_lessons`` are
mirrors that the reconciliation job recomputes from the progress record.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from coursetrack.progress.models import (
    AuditEntry,
    dump_datetime,
    ensure_utc_aware,
    load_datetime,
)


class EnrollmentStatus(str, Enum):
    """Enrollment summary status."""

    ACTIVE = "active"
    COMPLETED = "completed"
    INACTIVE = "inactive"
    REVOKED = "revoked"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


# Statuses set outside the progress flow and kept by reconciliation
PRESERVED_STATUSES = frozenset(
    {EnrollmentStatus.INACTIVE, EnrollmentStatus.EXPIRED, EnrollmentStatus.SUSPENDED}
)


class EnrolledBy:
    """Provenance of a bulk enrollment."""

    def __init__(
        self,
        method: str = "manual",
        team_id: str | None = None,
        company_id: str | None = None,
    ):
        self.method = method
        self.team_id = team_id
        self.company_id = company_id

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> "EnrolledBy | None":
        if not data:
            return None
        return cls(
            method=data.get("method") or "manual",
            team_id=data.get("team_id"),
            company_id=data.get("company_id"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "team_id": self.team_id,
            "company_id": self.company_id,
        }


class EnrollmentSummary:
    """Enrollment summary entity.

    Attributes:
        user_id: Learner identifier
        course_id: Course identifier
        course_name: Denormalized display name
        enrolled_at: Enrollment timestamp
        last_accessed_at: Mirror of the progress record's last access
        status: Enrollment status
        progress: Mirror of ``ProgressRecord.overall_progress``
        completed_lessons: Mirror of the completed lesson keys
        enrolled_by: Bulk enrollment provenance, if any
        admin_override: Last admin action applied to the summary
    """

    def __init__(
        self,
        user_id: str,
        course_id: str,
        course_name: str = "",
        enrolled_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
        status: EnrollmentStatus | str = EnrollmentStatus.ACTIVE,
        progress: int = 0,
        completed_lessons: list[str] | None = None,
        enrolled_by: EnrolledBy | None = None,
        admin_override: AuditEntry | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.course_name = course_name
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.status = EnrollmentStatus(status)
        self.progress = progress
        self.completed_lessons: list[str] = sorted(set(completed_lessons or []))
        self.enrolled_by = enrolled_by
        self.admin_override = admin_override

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED

    @property
    def is_revoked(self) -> bool:
        return self.status == EnrollmentStatus.REVOKED

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "EnrollmentSummary":
        """Create EnrollmentSummary from a stored document body."""
        return cls(
            user_id=data["user_id"],
            course_id=data["course_id"],
            course_name=data.get("course_name") or "",
            enrolled_at=load_datetime(data.get("enrolled_at")),
            last_accessed_at=load_datetime(data.get("last_accessed_at")),
            status=data.get("status") or EnrollmentStatus.ACTIVE.value,
            progress=int(data.get("progress") or 0),
            completed_lessons=data.get("completed_lessons") or [],
            enrolled_by=EnrolledBy.from_document(data.get("enrolled_by")),
            admin_override=AuditEntry.from_document(data.get("admin_override")),
        )

    def to_document(self) -> dict[str, Any]:
        """Convert to a JSON-serializable document body."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "course_name": self.course_name,
            "enrolled_at": dump_datetime(self.enrolled_at),
            "last_accessed_at": dump_datetime(self.last_accessed_at),
            "status": self.status.value,
            "progress": self.progress,
            "completed_lessons": list(self.completed_lessons),
            "enrolled_by": self.enrolled_by.to_document() if self.enrolled_by else None,
            "admin_override": (
                self.admin_override.to_document() if self.admin_override else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"<EnrollmentSummary user={self.user_id} course={self.course_id} "
            f"{self.status.value} {self.progress}%>"
        )
