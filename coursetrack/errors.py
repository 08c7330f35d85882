"""Domain errors shared by every coursetrack service.

Each error carries a stable ``code`` that routers map to an HTTP status and
that sweep reports record per pair.
"""

# ==============================================================================
# Base
# ==============================================================================


class CoursetrackError(Exception):
    """Base coursetrack error."""

    def __init__(self, message: str, code: str = "coursetrack_error"):
        self.message = message
        self.code = code
        super().__init__(message)


# ==============================================================================
# Enrollment / progress
# ==============================================================================


class NotEnrolledError(CoursetrackError):
    """Pair has no progress record, or its enrollment was revoked."""

    def __init__(self, message: str = "Learner is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class EnrollmentRevokedError(CoursetrackError):
    """Operation is not allowed on a revoked enrollment."""

    def __init__(self, message: str = "Enrollment has been revoked"):
        super().__init__(message, "enrollment_revoked")


class AlreadyCompletedError(CoursetrackError):
    """Certificate already issued for the current completion.

    Raised by the issuer guard and resolved to a no-op by the issuer itself.
    """

    def __init__(self, certificate_id: str):
        self.certificate_id = certificate_id
        super().__init__(
            f"Certificate {certificate_id} already issued", "already_completed"
        )


class UnknownModuleError(CoursetrackError):
    """Module is not part of the course topology."""

    def __init__(self, message: str = "Module not found in course"):
        super().__init__(message, "module_not_found")


# ==============================================================================
# Store / reconciliation
# ==============================================================================


class TransactionConflictError(CoursetrackError):
    """Concurrent writers kept winning the optimistic commit."""

    def __init__(self, message: str = "Concurrent update conflict, retry later"):
        super().__init__(message, "transaction_conflict")


class ReconciliationMismatchError(CoursetrackError):
    """Enrollment summary is missing for an existing progress record."""

    def __init__(self, message: str = "Enrollment summary missing for progress record"):
        super().__init__(message, "reconciliation_mismatch")


# ==============================================================================
# Topology
# ==============================================================================


class TopologyLookupError(CoursetrackError):
    """Course topology could not be resolved.

    ``retryable`` is True when the provider itself failed; an unknown course is
    not retryable.
    """

    def __init__(
        self,
        message: str = "Course topology is unavailable",
        code: str = "topology_unavailable",
        retryable: bool = True,
    ):
        self.retryable = retryable
        super().__init__(message, code)


# ==============================================================================
# Certificates
# ==============================================================================


class CertificateNotFoundError(CoursetrackError):
    """Certificate not found."""

    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")
