"""Completion signal emitted when a progress record becomes complete."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class CompletionSignal:
    """A progress record flipped ``completed`` from False to True."""

    user_id: str
    course_id: str
    course_name: str
    completed_date: datetime
    source: str = "learner"


CompletionHandler = Callable[[CompletionSignal], Awaitable[str | None]]
