"""Firm administrators router.

Super admins provision and maintain the administrators of each firm. Firm
admins are provisioned exactly like employees (identity, profile, welcome
email) but always belong to a firm.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.api.dependencies import (
    get_principal_cache,
    get_provisioning_service,
    require_super_admin,
)
from secureplace.api.errors import audited_http_error
from secureplace.api.models.common import CursorPage, PaginationParams
from secureplace.api.models.employees import ProvisioningResponse
from secureplace.api.models.firm_admins import (
    FirmAdminCreate,
    FirmAdminResponse,
    FirmAdminUpdate,
)
from secureplace.api.pagination import fetch_profile_page
from secureplace.auth.roles import Principal, Role
from secureplace.auth.sessions import PrincipalCache
from secureplace.db.models import Firm, UserProfile
from secureplace.db.session import get_db, get_db_read
from secureplace.errors import SecurePlaceError
from secureplace.logging_config import get_logger
from secureplace.services.audit_service import log_audit_event
from secureplace.services.provisioning import AccountInput, ProvisioningService

router = APIRouter(prefix="/firm-admins", tags=["firm-admins"])
logger = get_logger(__name__)


async def _load(db: AsyncSession, admin_id: str):
    result = await db.execute(
        select(UserProfile, Firm.name)
        .outerjoin(Firm, Firm.id == UserProfile.firm_id)
        .where(UserProfile.id == admin_id, UserProfile.role == Role.FIRM_ADMIN)
    )
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Firm admin not found")
    return row


@router.get("", response_model=CursorPage[FirmAdminResponse])
async def list_firm_admins(
    pagination: PaginationParams = Depends(),
    q: str | None = Query(default=None, description="Search name or email"),
    firm_id: str | None = Query(default=None, description="Only administrators of this firm"),
    db: AsyncSession = Depends(get_db_read),
    principal: Principal = Depends(require_super_admin),
) -> CursorPage[FirmAdminResponse]:
    """List firm administrators, newest first. Requires super admin."""
    query = (
        select(UserProfile, Firm.name)
        .outerjoin(Firm, Firm.id == UserProfile.firm_id)
        .where(UserProfile.role == Role.FIRM_ADMIN)
    )
    if firm_id:
        query = query.where(UserProfile.firm_id == firm_id)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(
            or_(
                UserProfile.first_name.ilike(pattern),
                UserProfile.last_name.ilike(pattern),
                UserProfile.email.ilike(pattern),
            )
        )

    rows, next_cursor, has_more = await fetch_profile_page(db, query, pagination)
    return CursorPage(
        items=[FirmAdminResponse.from_db(profile, firm_name) for profile, firm_name in rows],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post("", response_model=ProvisioningResponse, status_code=status.HTTP_201_CREATED)
async def create_firm_admin(
    data: FirmAdminCreate,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    principal: Principal = Depends(require_super_admin),
) -> ProvisioningResponse:
    """Provision a firm administrator: identity, profile and welcome email."""
    request = AccountInput(name=data.name, email=data.email, firm_id=data.firm_id)
    try:
        result = await service.provision_firm_admin(request, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="firm_admin_provisioned",
            principal=principal,
            target_type="firm_admin",
            target_id=None,
        ) from e

    await log_audit_event(
        db,
        action="firm_admin_provisioned",
        actor_id=principal.user_id,
        target_type="firm_admin",
        target_id=result.identity_id,
        details={"firm_id": result.firm_id, "email_sent": result.email_sent},
    )
    return ProvisioningResponse(
        id=result.identity_id,
        email=result.email,
        firm_id=result.firm_id,
        email_sent=result.email_sent,
        warnings=result.warnings,
    )


@router.get("/{admin_id}", response_model=FirmAdminResponse)
async def get_firm_admin(
    admin_id: str,
    db: AsyncSession = Depends(get_db_read),
    principal: Principal = Depends(require_super_admin),
) -> FirmAdminResponse:
    profile, firm_name = await _load(db, admin_id)
    return FirmAdminResponse.from_db(profile, firm_name)


@router.patch("/{admin_id}", response_model=FirmAdminResponse)
async def update_firm_admin(
    admin_id: str,
    data: FirmAdminUpdate,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    cache: PrincipalCache = Depends(get_principal_cache),
    principal: Principal = Depends(require_super_admin),
) -> FirmAdminResponse:
    """Update a firm administrator's name, email or firm.

    The cached principal is dropped so a firm move takes effect on the
    administrator's next request.
    """
    changes = data.model_dump(exclude_unset=True)
    try:
        await service.update_firm_admin(admin_id, changes, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="firm_admin_updated",
            principal=principal,
            target_type="firm_admin",
            target_id=admin_id,
        ) from e

    await cache.clear(admin_id)
    await log_audit_event(
        db,
        action="firm_admin_updated",
        actor_id=principal.user_id,
        target_type="firm_admin",
        target_id=admin_id,
        details={"fields": sorted(changes)},
    )

    profile, firm_name = await _load(db, admin_id)
    return FirmAdminResponse.from_db(profile, firm_name)


@router.delete("/{admin_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_firm_admin(
    admin_id: str,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    cache: PrincipalCache = Depends(get_principal_cache),
    principal: Principal = Depends(require_super_admin),
) -> Response:
    """Remove a firm administrator's profile and identity."""
    try:
        await service.remove_firm_admin(admin_id, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="firm_admin_removed",
            principal=principal,
            target_type="firm_admin",
            target_id=admin_id,
        ) from e

    await cache.clear(admin_id)
    await log_audit_event(
        db,
        action="firm_admin_removed",
        actor_id=principal.user_id,
        target_type="firm_admin",
        target_id=admin_id,
    )
    logger.info("Firm admin removed", admin_id=admin_id, removed_by=principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
