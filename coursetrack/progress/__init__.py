"""Learner progress tracking.

Provides:
- ProgressRecord, the canonical per-learner-per-course state
- Completion calculator deriving overall and module percentages
- ProgressService applying learner events transactionally
"""

from .calculator import CompletionResult, calculate_completion, percentage
from .models import (
    AuditAction,
    AuditEntry,
    LessonProgress,
    ModuleProgress,
    ProgressRecord,
)


__all__ = [
    "AuditAction",
    "AuditEntry",
    "CompletionResult",
    "LessonProgress",
    "ModuleProgress",
    "ProgressRecord",
    "calculate_completion",
    "percentage",
]
