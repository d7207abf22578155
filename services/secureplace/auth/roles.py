"""Roles and authorization policies.

Three fixed roles. Each maps to an AccessPolicy that answers every
authorization question the routers and workflows ask, so call sites never
compare role strings.

- super_admin: manages every firm, every firm admin and every employee
- firm_admin:  manages employees of their own firm only; any firm the client
               submits is replaced by the admin's firm
- employee:    no administrative access
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from secureplace.errors import AccessDeniedError


class Role(StrEnum):
    SUPER_ADMIN = "super_admin"
    FIRM_ADMIN = "firm_admin"
    EMPLOYEE = "employee"

    @property
    def policy(self) -> "AccessPolicy":
        return policy_for(self)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller as resolved from their primary profile."""

    user_id: str
    email: str
    role: Role
    firm_id: str | None = None
    full_name: str = ""

    @property
    def policy(self) -> "AccessPolicy":
        return policy_for(self.role)


class AccessPolicy(ABC):
    """Authorization decisions for one role."""

    role: Role
    can_administer: bool = False

    @abstractmethod
    def scope_firm(self, principal: Principal, requested_firm_id: str | None) -> str | None:
        """Firm a new or edited record is assigned to, given what the client sent."""

    @abstractmethod
    def can_manage_firm(self, principal: Principal, firm_id: str | None) -> bool:
        """Whether the principal may act on records belonging to firm_id."""

    @abstractmethod
    def visible_firm(self, principal: Principal, requested_filter: str | None) -> str | None:
        """Firm filter applied to listings. None means every firm."""

    @property
    def can_manage_all_firms(self) -> bool:
        return False

    def can_manage_role(self, role: Role) -> bool:
        """Whether the principal may create, edit or remove accounts of this role."""
        return False

    def require_firm(self, principal: Principal, firm_id: str | None) -> None:
        """Raise AccessDeniedError unless can_manage_firm() allows it."""
        if not self.can_manage_firm(principal, firm_id):
            raise AccessDeniedError("Insufficient permissions for this firm")


class SuperAdminPolicy(AccessPolicy):
    role = Role.SUPER_ADMIN
    can_administer = True

    def scope_firm(self, principal: Principal, requested_firm_id: str | None) -> str | None:
        return requested_firm_id

    def can_manage_firm(self, principal: Principal, firm_id: str | None) -> bool:
        return True

    def visible_firm(self, principal: Principal, requested_filter: str | None) -> str | None:
        return requested_filter

    @property
    def can_manage_all_firms(self) -> bool:
        return True

    def can_manage_role(self, role: Role) -> bool:
        # Super admins are only ever seeded by the bootstrap command
        return role in (Role.FIRM_ADMIN, Role.EMPLOYEE)


class FirmAdminPolicy(AccessPolicy):
    role = Role.FIRM_ADMIN
    can_administer = True

    def can_manage_role(self, role: Role) -> bool:
        return role is Role.EMPLOYEE

    def scope_firm(self, principal: Principal, requested_firm_id: str | None) -> str | None:
        # Client-supplied firm is ignored to keep admins inside their tenant
        return principal.firm_id

    def can_manage_firm(self, principal: Principal, firm_id: str | None) -> bool:
        return principal.firm_id is not None and firm_id == principal.firm_id

    def visible_firm(self, principal: Principal, requested_filter: str | None) -> str | None:
        if principal.firm_id is None:
            raise AccessDeniedError("Firm administrator has no firm assigned")
        return principal.firm_id


class EmployeePolicy(AccessPolicy):
    role = Role.EMPLOYEE

    def scope_firm(self, principal: Principal, requested_firm_id: str | None) -> str | None:
        raise AccessDeniedError("Employees cannot manage records")

    def can_manage_firm(self, principal: Principal, firm_id: str | None) -> bool:
        return False

    def visible_firm(self, principal: Principal, requested_filter: str | None) -> str | None:
        raise AccessDeniedError("Employees cannot list records")


_POLICIES: dict[Role, AccessPolicy] = {
    Role.SUPER_ADMIN: SuperAdminPolicy(),
    Role.FIRM_ADMIN: FirmAdminPolicy(),
    Role.EMPLOYEE: EmployeePolicy(),
}


def policy_for(role: Role | str) -> AccessPolicy:
    """Return the policy for a role.

    Raises:
        ValueError: If role is not one of the known roles.
    """
    return _POLICIES[Role(role)]
