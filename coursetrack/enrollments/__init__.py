from .models import EnrolledBy, EnrollmentStatus, EnrollmentSummary
from .repository import EnrollmentRepository


__all__ = [
    "EnrolledBy",
    "EnrollmentRepository",
    "EnrollmentStatus",
    "EnrollmentSummary",
]
