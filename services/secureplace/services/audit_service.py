"""Audit logging service."""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.db.models import AuditLog

logger = structlog.get_logger(__name__)


async def log_audit_event(
    db: AsyncSession,
    *,
    action: str,
    actor_id: str | None,
    target_type: str | None = None,
    target_id: str | None = None,
    event_type: str = "admin",
    actor_type: str = "user",
    details: dict[str, Any] | None = None,
    success: bool = True,
    error_message: str | None = None,
) -> AuditLog:
    """
    Record an administrative action.

    The row is added to the caller's session and committed with the request.
    The same event goes to the structured log for real-time monitoring.

    Args:
        db: Database session
        action: What happened ('employee_provisioned', 'firm_deleted', ...)
        actor_id: Identity id of the administrator, or None for system actions
        target_type: 'employee' or 'firm'
        target_id: Id of the affected record
        event_type: 'admin' or 'auth'
        actor_type: 'user' or 'system'
        details: Extra context. Never include credentials.
        success: Whether the action succeeded
        error_message: Failure reason when success is False

    Returns:
        The created AuditLog entry
    """
    request_id = structlog.contextvars.get_contextvars().get("request_id")

    entry = AuditLog(
        event_type=event_type,
        action=action,
        actor_type=actor_type,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        request_id=request_id,
        details=details or {},
        success=success,
        error_message=error_message,
    )
    db.add(entry)

    log_method = logger.info if success else logger.warning
    log_method(
        "audit_event",
        event_type=event_type,
        action=action,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        success=success,
        error_message=error_message,
    )

    return entry
