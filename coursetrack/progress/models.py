"""Canonical progress record for a (user, course) pair.

The record is stored as a JSON document (see ``coursetrack.store``). Derived
fields (``overall_progress``, ``completed``, ``completed_modules`` and
``module_progress``) are only ever written from the completion calculator
output or by an admin override.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def dump_datetime(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def load_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc_aware(value)
    return ensure_utc_aware(datetime.fromisoformat(value))


# ==============================================================================
# Audit trail
# ==============================================================================


class AuditAction(str, Enum):
    """Administrative action recorded on a document."""

    FORCE_COMPLETE = "force_complete"
    RESET_PROGRESS = "reset_progress"
    REVOKE_ENROLLMENT = "revoke_enrollment"
    MARK_MODULE_COMPLETE = "mark_module_complete"
    RESET_MODULE = "reset_module"
    MARK_LESSON_COMPLETE = "mark_lesson_complete"
    RESET_LESSON = "reset_lesson"


class AuditEntry:
    """Last administrative override applied to a document."""

    def __init__(
        self,
        action: AuditAction | str,
        actor_id: str,
        timestamp: datetime | None = None,
        note: str | None = None,
    ):
        self.action = AuditAction(action)
        self.actor_id = actor_id
        self.timestamp = ensure_utc_aware(timestamp) or datetime.now(UTC)
        self.note = note

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> "AuditEntry | None":
        if not data:
            return None
        return cls(
            action=data["action"],
            actor_id=data["actor_id"],
            timestamp=load_datetime(data.get("timestamp")),
            note=data.get("note"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "actor_id": self.actor_id,
            "timestamp": dump_datetime(self.timestamp),
            "note": self.note,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuditEntry):
            return NotImplemented
        return self.to_document() == other.to_document()

    def __repr__(self) -> str:
        return f"<AuditEntry {self.action.value} by={self.actor_id}>"


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonProgress:
    """Per-lesson state inside a progress record."""

    def __init__(
        self,
        completed: bool = False,
        progress: int = 0,
        completed_date: datetime | None = None,
        last_access_date: datetime | None = None,
    ):
        self.completed = completed
        self.progress = progress
        self.completed_date = ensure_utc_aware(completed_date)
        self.last_access_date = ensure_utc_aware(last_access_date)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "LessonProgress":
        return cls(
            completed=bool(data.get("completed")),
            progress=int(data.get("progress") or 0),
            completed_date=load_datetime(data.get("completed_date")),
            last_access_date=load_datetime(data.get("last_access_date")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "progress": self.progress,
            "completed_date": dump_datetime(self.completed_date),
            "last_access_date": dump_datetime(self.last_access_date),
        }

    def __repr__(self) -> str:
        return f"<LessonProgress {self.progress}% completed={self.completed}>"


class ModuleProgress:
    """Per-module state inside a progress record (always derived)."""

    def __init__(
        self,
        completed: bool = False,
        progress: int = 0,
        completed_date: datetime | None = None,
    ):
        self.completed = completed
        self.progress = progress
        self.completed_date = ensure_utc_aware(completed_date)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "ModuleProgress":
        return cls(
            completed=bool(data.get("completed")),
            progress=int(data.get("progress") or 0),
            completed_date=load_datetime(data.get("completed_date")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "progress": self.progress,
            "completed_date": dump_datetime(self.completed_date),
        }

    def __repr__(self) -> str:
        return f"<ModuleProgress {self.progress}% completed={self.completed}>"


class ProgressRecord:
    """Canonical per-learner-per-course progress.

    Attributes:
        user_id: Learner identifier
        course_id: Course identifier
        course_name: Denormalized display name (not authoritative)
        start_date: First enrollment timestamp
        last_access_date: Last learner or admin activity
        completed_lessons: Lesson keys (``moduleId_lessonId``) marked complete
        completed_modules: Module ids whose lessons are all complete
        lesson_progress: Lesson key -> LessonProgress
        module_progress: Module id -> ModuleProgress
        quiz_scores: Quiz id -> latest score
        quiz_attempts: Quiz id -> number of attempts
        overall_progress: Integer percentage 0-100 (derived)
        completed: Whether the course is complete (derived or forced)
        completed_date: Set when ``completed`` flips to True
        force_completed: An admin force-complete is in effect
        certificate_id: Certificate issued for the current completion
        certificate_issue_date: When that certificate was issued
        revoked: Enrollment was revoked; history is kept
        admin_override: Last admin action applied to the record
    """

    def __init__(
        self,
        user_id: str,
        course_id: str,
        course_name: str = "",
        start_date: datetime | None = None,
        last_access_date: datetime | None = None,
        completed_lessons: list[str] | None = None,
        completed_modules: list[str] | None = None,
        lesson_progress: dict[str, LessonProgress] | None = None,
        module_progress: dict[str, ModuleProgress] | None = None,
        quiz_scores: dict[str, float] | None = None,
        quiz_attempts: dict[str, int] | None = None,
        overall_progress: int = 0,
        completed: bool = False,
        completed_date: datetime | None = None,
        force_completed: bool = False,
        certificate_id: str | None = None,
        certificate_issue_date: datetime | None = None,
        revoked: bool = False,
        admin_override: AuditEntry | None = None,
    ):
        now = datetime.now(UTC)
        self.user_id = user_id
        self.course_id = course_id
        self.course_name = course_name
        self.start_date = ensure_utc_aware(start_date) or now
        self.last_access_date = ensure_utc_aware(last_access_date) or self.start_date
        self.completed_lessons: list[str] = sorted(set(completed_lessons or []))
        self.completed_modules: list[str] = sorted(set(completed_modules or []))
        self.lesson_progress = lesson_progress or {}
        self.module_progress = module_progress or {}
        self.quiz_scores = quiz_scores or {}
        self.quiz_attempts = quiz_attempts or {}
        self.overall_progress = overall_progress
        self.completed = completed
        self.completed_date = ensure_utc_aware(completed_date)
        self.force_completed = force_completed
        self.certificate_id = certificate_id
        self.certificate_issue_date = ensure_utc_aware(certificate_issue_date)
        self.revoked = revoked
        self.admin_override = admin_override

    def add_completed_lesson(self, key: str) -> bool:
        """Add a lesson key; returns False if it was already present."""
        if key in self.completed_lessons:
            return False
        self.completed_lessons = sorted({*self.completed_lessons, key})
        return True

    def remove_completed_lesson(self, key: str) -> bool:
        """Remove a lesson key; returns False if it was absent."""
        if key not in self.completed_lessons:
            return False
        self.completed_lessons = [k for k in self.completed_lessons if k != key]
        return True

    def clear_completion(self) -> None:
        """Drop completion and certificate markers, keeping lesson history."""
        self.completed = False
        self.completed_date = None
        self.force_completed = False
        self.certificate_id = None
        self.certificate_issue_date = None

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "ProgressRecord":
        """Create ProgressRecord from a stored document body."""
        return cls(
            user_id=data["user_id"],
            course_id=data["course_id"],
            course_name=data.get("course_name") or "",
            start_date=load_datetime(data.get("start_date")),
            last_access_date=load_datetime(data.get("last_access_date")),
            completed_lessons=data.get("completed_lessons") or [],
            completed_modules=data.get("completed_modules") or [],
            lesson_progress={
                k: LessonProgress.from_document(v)
                for k, v in (data.get("lesson_progress") or {}).items()
            },
            module_progress={
                k: ModuleProgress.from_document(v)
                for k, v in (data.get("module_progress") or {}).items()
            },
            quiz_scores=data.get("quiz_scores") or {},
            quiz_attempts=data.get("quiz_attempts") or {},
            overall_progress=int(data.get("overall_progress") or 0),
            completed=bool(data.get("completed")),
            completed_date=load_datetime(data.get("completed_date")),
            force_completed=bool(data.get("force_completed")),
            certificate_id=data.get("certificate_id"),
            certificate_issue_date=load_datetime(data.get("certificate_issue_date")),
            revoked=bool(data.get("revoked")),
            admin_override=AuditEntry.from_document(data.get("admin_override")),
        )

    def to_document(self) -> dict[str, Any]:
        """Convert to a JSON-serializable document body."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "course_name": self.course_name,
            "start_date": dump_datetime(self.start_date),
            "last_access_date": dump_datetime(self.last_access_date),
            "completed_lessons": list(self.completed_lessons),
            "completed_modules": list(self.completed_modules),
            "lesson_progress": {
                k: v.to_document() for k, v in self.lesson_progress.items()
            },
            "module_progress": {
                k: v.to_document() for k, v in self.module_progress.items()
            },
            "quiz_scores": dict(self.quiz_scores),
            "quiz_attempts": dict(self.quiz_attempts),
            "overall_progress": self.overall_progress,
            "completed": self.completed,
            "completed_date": dump_datetime(self.completed_date),
            "force_completed": self.force_completed,
            "certificate_id": self.certificate_id,
            "certificate_issue_date": dump_datetime(self.certificate_issue_date),
            "revoked": self.revoked,
            "admin_override": (
                self.admin_override.to_document() if self.admin_override else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord user={self.user_id} course={self.course_id} "
            f"{self.overall_progress}% completed={self.completed}>"
        )
