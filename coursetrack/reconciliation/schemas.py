"""Pydantic schemas for reconciliation."""

from pydantic import BaseModel, Field

from .service import ReconcileResult, SweepDetail, SweepReport


class ReconcileResponse(BaseModel):
    user_id: str
    course_id: str
    old_progress: int | None = None
    new_progress: int
    changed_fields: list[str]

    @classmethod
    def from_result(cls, result: ReconcileResult) -> "ReconcileResponse":
        return cls(
            user_id=result.user_id,
            course_id=result.course_id,
            old_progress=result.old_progress,
            new_progress=result.new_progress,
            changed_fields=list(result.changed_fields),
        )


class SweepRequest(BaseModel):
    """Optional equality filters; no filter sweeps every pair."""

    user_id: str | None = Field(default=None)
    course_id: str | None = Field(default=None)


class SweepDetailResponse(BaseModel):
    user_id: str
    course_id: str
    success: bool
    old_progress: int | None = None
    new_progress: int | None = None
    changed_fields: list[str] = Field(default_factory=list)
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def from_detail(cls, detail: SweepDetail) -> "SweepDetailResponse":
        return cls(
            user_id=detail.user_id,
            course_id=detail.course_id,
            success=detail.success,
            old_progress=detail.old_progress,
            new_progress=detail.new_progress,
            changed_fields=list(detail.changed_fields),
            error=detail.error,
            error_code=detail.error_code,
        )


class SweepResponse(BaseModel):
    total: int
    synced: int
    failed: int
    details: list[SweepDetailResponse]

    @classmethod
    def from_report(cls, report: SweepReport) -> "SweepResponse":
        return cls(
            total=report.total,
            synced=report.synced,
            failed=report.failed,
            details=[SweepDetailResponse.from_detail(d) for d in report.details],
        )
