"""FastAPI dependencies shared by every router.

Provides:
- Acting identity from the gateway headers
- Admin role check
- Service error to HTTP translation
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from coursetrack.errors import CoursetrackError


ADMIN_ROLE = "admin"


async def get_actor_id(
    x_actor_id: Annotated[str | None, Header()] = None,
) -> str:
    """Identity of the caller, as authenticated by the upstream gateway."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-ID header",
        )
    return x_actor_id


ActorId = Annotated[str, Depends(get_actor_id)]


async def require_admin(
    actor_id: ActorId,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> str:
    """Allow only callers the gateway tagged with the admin role."""
    if (x_actor_role or "").lower() != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return actor_id


AdminId = Annotated[str, Depends(require_admin)]


def handle_service_error(error: CoursetrackError) -> HTTPException:
    """Convert service errors to HTTP exceptions.

    Args:
        error: Service error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "not_enrolled": status.HTTP_404_NOT_FOUND,
        "enrollment_revoked": status.HTTP_409_CONFLICT,
        "module_not_found": status.HTTP_404_NOT_FOUND,
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "course_not_completed": status.HTTP_409_CONFLICT,
        "topology_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
        "transaction_conflict": status.HTTP_409_CONFLICT,
        "reconciliation_mismatch": status.HTTP_409_CONFLICT,
        "certificate_not_found": status.HTTP_404_NOT_FOUND,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
