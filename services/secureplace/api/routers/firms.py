"""Firms router."""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.api.dependencies import require_admin, require_super_admin
from secureplace.api.errors import workflow_http_error
from secureplace.api.models.firms import FirmCreate, FirmResponse, FirmUpdate
from secureplace.auth.roles import Principal
from secureplace.db.models import Firm
from secureplace.db.session import get_db, get_db_read
from secureplace.errors import AccessDeniedError
from secureplace.logging_config import get_logger
from secureplace.services.audit_service import log_audit_event

router = APIRouter(prefix="/firms", tags=["firms"])
logger = get_logger(__name__)


async def _get_managed_firm(db: AsyncSession, firm_id: str, principal: Principal) -> Firm:
    if not principal.policy.can_manage_firm(principal, firm_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Firm not found")
    firm = await db.get(Firm, firm_id)
    if not firm:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Firm not found")
    return firm


@router.get("", response_model=list[FirmResponse])
async def list_firms(
    db: AsyncSession = Depends(get_db_read),
    principal: Principal = Depends(require_admin),
) -> list[FirmResponse]:
    """List firms by name. Firm administrators see only their own firm."""
    try:
        visible_firm = principal.policy.visible_firm(principal, None)
    except AccessDeniedError as e:
        raise workflow_http_error(e) from e

    query = select(Firm).order_by(Firm.name)
    if visible_firm is not None:
        query = query.where(Firm.id == visible_firm)

    result = await db.execute(query)
    return [FirmResponse.model_validate(f) for f in result.scalars().all()]


@router.post("", response_model=FirmResponse, status_code=status.HTTP_201_CREATED)
async def create_firm(
    data: FirmCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
) -> FirmResponse:
    """Create a firm. Requires super admin."""
    firm = Firm(**data.model_dump())
    db.add(firm)
    await db.flush()
    await db.refresh(firm)

    logger.info("Firm created", firm_id=firm.id, created_by=principal.user_id)
    await log_audit_event(
        db,
        action="firm_created",
        actor_id=principal.user_id,
        target_type="firm",
        target_id=firm.id,
        details={"name": firm.name},
    )
    return FirmResponse.model_validate(firm)


@router.get("/{firm_id}", response_model=FirmResponse)
async def get_firm(
    firm_id: str,
    db: AsyncSession = Depends(get_db_read),
    principal: Principal = Depends(require_admin),
) -> FirmResponse:
    """Get a firm by id."""
    firm = await _get_managed_firm(db, firm_id, principal)
    return FirmResponse.model_validate(firm)


@router.patch("/{firm_id}", response_model=FirmResponse)
async def update_firm(
    firm_id: str,
    data: FirmUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> FirmResponse:
    """Update a firm. Firm administrators may only update their own firm."""
    firm = await _get_managed_firm(db, firm_id, principal)

    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        # A firm always has a name
        changes.pop("name", None)
    for field, value in changes.items():
        setattr(firm, field, value)
    await db.flush()
    await db.refresh(firm)

    logger.info("Firm updated", firm_id=firm.id, updated_by=principal.user_id)
    await log_audit_event(
        db,
        action="firm_updated",
        actor_id=principal.user_id,
        target_type="firm",
        target_id=firm.id,
        details={"fields": sorted(changes)},
    )
    return FirmResponse.model_validate(firm)


@router.delete("/{firm_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_firm(
    firm_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
) -> Response:
    """Delete a firm. Requires super admin.

    Profiles that reference the firm are left in place and show no firm.
    """
    firm = await db.get(Firm, firm_id)
    if not firm:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Firm not found")

    await db.delete(firm)

    logger.info("Firm deleted", firm_id=firm_id, deleted_by=principal.user_id)
    await log_audit_event(
        db,
        action="firm_deleted",
        actor_id=principal.user_id,
        target_type="firm",
        target_id=firm_id,
        details={"name": firm.name},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
