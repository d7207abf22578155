"""Translation of workflow errors into HTTP responses.

The message of the underlying failure is passed through verbatim so the
dashboard can show it next to the stage that failed.
"""

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.auth.roles import Principal
from secureplace.errors import (
    AccessDeniedError,
    IdentityCreationError,
    ProfileNotFoundError,
    ProvisioningError,
    ProvisioningStage,
    SecurePlaceError,
)
from secureplace.services.audit_service import log_audit_event


def workflow_http_error(exc: SecurePlaceError) -> HTTPException:
    """Map a domain error to the HTTPException a router should raise."""
    if isinstance(exc, AccessDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, ProfileNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if not isinstance(exc, ProvisioningError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

    detail = {"message": str(exc), "stage": str(exc.stage)}
    if exc.stage is ProvisioningStage.VALIDATION:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif exc.stage is ProvisioningStage.IDENTITY:
        duplicate = isinstance(exc.cause, IdentityCreationError) and exc.cause.duplicate
        code = status.HTTP_409_CONFLICT if duplicate else status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=detail)


async def audited_http_error(
    db: AsyncSession,
    exc: SecurePlaceError,
    *,
    action: str,
    principal: Principal,
    target_type: str,
    target_id: str | None,
) -> HTTPException:
    """Record a failed action and return the HTTP error to raise.

    The audit row is committed here because the request session rolls back
    once the error propagates.
    """
    await log_audit_event(
        db,
        action=action,
        actor_id=principal.user_id,
        target_type=target_type,
        target_id=target_id,
        details={"stage": str(getattr(exc, "stage", "")) or None},
        success=False,
        error_message=str(exc),
    )
    await db.commit()
    return workflow_http_error(exc)
