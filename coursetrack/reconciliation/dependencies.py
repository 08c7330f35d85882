"""FastAPI dependencies for reconciliation."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ReconciliationService


async def get_reconciliation_service(request: Request) -> ReconciliationService:
    """Get reconciliation service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "reconciliation_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reconciliation service not available",
        )
    return app_state.reconciliation_service


ReconciliationServiceDep = Annotated[
    ReconciliationService, Depends(get_reconciliation_service)
]
