"""FastAPI dependencies for admin overrides."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AdminOverrideService


async def get_admin_service(request: Request) -> AdminOverrideService:
    """Get admin override service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "admin_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin service not available",
        )
    return app_state.admin_service


AdminServiceDep = Annotated[AdminOverrideService, Depends(get_admin_service)]
