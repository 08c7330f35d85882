"""Completion calculator.

Pure function of a course topology and a set of completed lesson keys. Lesson
keys that are no longer part of the topology are ignored, since progress
history outlives content edits.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from coursetrack.topology.models import CourseTopology


@dataclass(frozen=True, slots=True)
class CompletionResult:
    overall_progress: int
    completed_count: int
    total_lessons: int
    module_progress: dict[str, int] = field(default_factory=dict)
    completed_modules: frozenset[str] = frozenset()

    @property
    def is_complete(self) -> bool:
        return self.overall_progress == 100


def percentage(done: int, total: int) -> int:
    """Integer percentage, halves rounded up; an empty total is 0%."""
    if total <= 0:
        return 0
    value = (Decimal(100) * done / Decimal(total)).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return max(0, min(100, int(value)))


def calculate_completion(
    topology: CourseTopology,
    completed_lessons: Iterable[str],
) -> CompletionResult:
    """Derive overall and per-module progress.

    Args:
        topology: Ordered module/lesson structure of the course
        completed_lessons: Lesson keys (``moduleId_lessonId``) marked complete

    Returns:
        CompletionResult with the overall percentage, per-module percentages
        and the modules whose lessons are all complete
    """
    completed = set(completed_lessons)

    module_progress: dict[str, int] = {}
    completed_modules: set[str] = set()
    completed_count = 0

    for module in topology.modules:
        keys = module.lesson_keys
        done = sum(1 for key in keys if key in completed)
        completed_count += done
        module_progress[module.module_id] = percentage(done, len(keys))
        if keys and done == len(keys):
            completed_modules.add(module.module_id)

    total = topology.total_lessons
    return CompletionResult(
        overall_progress=percentage(completed_count, total),
        completed_count=completed_count,
        total_lessons=total,
        module_progress=module_progress,
        completed_modules=frozenset(completed_modules),
    )
