from .service import (
    ReconcileResult,
    ReconciliationService,
    SweepDetail,
    SweepReport,
    derive_enrollment_fields,
    derive_status,
)


__all__ = [
    "ReconcileResult",
    "ReconciliationService",
    "SweepDetail",
    "SweepReport",
    "derive_enrollment_fields",
    "derive_status",
]
