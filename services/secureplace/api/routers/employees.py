"""Employees router.

Provisioning and maintenance of employee accounts. Firm administrators only
ever see and touch employees of their own firm; the firm they submit is
replaced with theirs.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.api.dependencies import (
    get_principal_cache,
    get_provisioning_service,
    require_admin,
)
from secureplace.api.errors import audited_http_error, workflow_http_error
from secureplace.api.models.common import CursorPage, PaginationParams
from secureplace.api.models.employees import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    ProvisioningResponse,
)
from secureplace.api.pagination import fetch_profile_page
from secureplace.auth.roles import Principal, Role
from secureplace.auth.sessions import PrincipalCache
from secureplace.db.models import Firm, UserProfile
from secureplace.db.session import get_db, get_db_read
from secureplace.errors import AccessDeniedError, SecurePlaceError
from secureplace.logging_config import get_logger
from secureplace.services.audit_service import log_audit_event
from secureplace.services.provisioning import (
    AccountInput,
    ProvisioningResult,
    ProvisioningService,
)

router = APIRouter(prefix="/employees", tags=["employees"])
logger = get_logger(__name__)


def _provisioning_response(result: ProvisioningResult) -> ProvisioningResponse:
    return ProvisioningResponse(
        id=result.identity_id,
        email=result.email,
        firm_id=result.firm_id,
        email_sent=result.email_sent,
        warnings=result.warnings,
    )


async def _load_visible(db: AsyncSession, employee_id: str, principal: Principal):
    result = await db.execute(
        select(UserProfile, Firm.name)
        .outerjoin(Firm, Firm.id == UserProfile.firm_id)
        .where(UserProfile.id == employee_id, UserProfile.role == Role.EMPLOYEE)
    )
    row = result.one_or_none()
    if row is None or not principal.policy.can_manage_firm(principal, row[0].firm_id):
        # Out-of-scope employees are indistinguishable from missing ones
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return row


@router.get("", response_model=CursorPage[EmployeeResponse])
async def list_employees(
    pagination: PaginationParams = Depends(),
    q: str | None = Query(default=None, description="Search name, email or employee code"),
    firm_id: str | None = Query(default=None, description="Only employees of this firm"),
    db: AsyncSession = Depends(get_db_read),
    principal: Principal = Depends(require_admin),
) -> CursorPage[EmployeeResponse]:
    """List employees with pagination, newest first."""
    try:
        visible_firm = principal.policy.visible_firm(principal, firm_id)
    except AccessDeniedError as e:
        raise workflow_http_error(e) from e

    query = (
        select(UserProfile, Firm.name)
        .outerjoin(Firm, Firm.id == UserProfile.firm_id)
        .where(UserProfile.role == Role.EMPLOYEE)
    )
    if visible_firm is not None:
        query = query.where(UserProfile.firm_id == visible_firm)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(
            or_(
                UserProfile.first_name.ilike(pattern),
                UserProfile.last_name.ilike(pattern),
                UserProfile.email.ilike(pattern),
                UserProfile.employee_code.ilike(pattern),
            )
        )

    rows, next_cursor, has_more = await fetch_profile_page(db, query, pagination)
    return CursorPage(
        items=[EmployeeResponse.from_db(profile, firm_name) for profile, firm_name in rows],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post("", response_model=ProvisioningResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    principal: Principal = Depends(require_admin),
) -> ProvisioningResponse:
    """Provision an employee: identity, profile and welcome email.

    A failed welcome email does not fail the request; it is reported in
    ``warnings`` with ``email_sent`` false.
    """
    request = AccountInput(
        name=data.name,
        email=data.email,
        employee_code=data.employee_code,
        contact_number=data.contact_number,
        is_volunteer=data.is_volunteer,
        firm_id=data.firm_id,
    )
    try:
        result = await service.provision_employee(request, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="employee_provisioned",
            principal=principal,
            target_type="employee",
            target_id=None,
        ) from e

    await log_audit_event(
        db,
        action="employee_provisioned",
        actor_id=principal.user_id,
        target_type="employee",
        target_id=result.identity_id,
        details={"firm_id": result.firm_id, "email_sent": result.email_sent},
    )
    return _provisioning_response(result)


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db_read),
    principal: Principal = Depends(require_admin),
) -> EmployeeResponse:
    """Get an employee by id."""
    profile, firm_name = await _load_visible(db, employee_id, principal)
    return EmployeeResponse.from_db(profile, firm_name)


@router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: str,
    data: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    cache: PrincipalCache = Depends(get_principal_cache),
    principal: Principal = Depends(require_admin),
) -> EmployeeResponse:
    """Update an employee. Only the fields present in the body change."""
    changes = data.model_dump(exclude_unset=True)
    try:
        await service.update_employee(employee_id, changes, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="employee_updated",
            principal=principal,
            target_type="employee",
            target_id=employee_id,
        ) from e

    await cache.clear(employee_id)
    await log_audit_event(
        db,
        action="employee_updated",
        actor_id=principal.user_id,
        target_type="employee",
        target_id=employee_id,
        details={"fields": sorted(changes)},
    )

    profile, firm_name = await _load_visible(db, employee_id, principal)
    return EmployeeResponse.from_db(profile, firm_name)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    cache: PrincipalCache = Depends(get_principal_cache),
    principal: Principal = Depends(require_admin),
) -> Response:
    """Remove an employee's profile and identity."""
    try:
        await service.remove_employee(employee_id, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="employee_removed",
            principal=principal,
            target_type="employee",
            target_id=employee_id,
        ) from e

    await cache.clear(employee_id)
    await log_audit_event(
        db,
        action="employee_removed",
        actor_id=principal.user_id,
        target_type="employee",
        target_id=employee_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{employee_id}/reset-password", response_model=ProvisioningResponse)
async def reset_employee_password(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    service: ProvisioningService = Depends(get_provisioning_service),
    principal: Principal = Depends(require_admin),
) -> ProvisioningResponse:
    """Replace an employee's password with a generated one and email it."""
    try:
        result = await service.reset_password(employee_id, principal)
    except SecurePlaceError as e:
        raise await audited_http_error(
            db,
            e,
            action="employee_password_reset",
            principal=principal,
            target_type="employee",
            target_id=employee_id,
        ) from e

    await log_audit_event(
        db,
        action="employee_password_reset",
        actor_id=principal.user_id,
        target_type="employee",
        target_id=employee_id,
        details={"email_sent": result.email_sent},
    )
    return _provisioning_response(result)
