"""Secure Place API Pydantic models."""

from .admin import OrphanedIdentityResponse
from .auth import PrincipalResponse
from .common import CursorPage, ErrorDetail, PaginationParams
from .employees import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    ProvisioningResponse,
)
from .firm_admins import FirmAdminCreate, FirmAdminResponse, FirmAdminUpdate
from .firms import FirmCreate, FirmResponse, FirmUpdate

__all__ = [
    # Admin
    "OrphanedIdentityResponse",
    # Auth
    "PrincipalResponse",
    # Common
    "CursorPage",
    "ErrorDetail",
    "PaginationParams",
    # Employees
    "EmployeeCreate",
    "EmployeeResponse",
    "EmployeeUpdate",
    "ProvisioningResponse",
    # Firm admins
    "FirmAdminCreate",
    "FirmAdminResponse",
    "FirmAdminUpdate",
    # Firms
    "FirmCreate",
    "FirmResponse",
    "FirmUpdate",
]
