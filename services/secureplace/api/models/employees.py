"""Employee-related Pydantic models."""

from typing import Any

from pydantic import EmailStr, Field

from .common import SecurePlaceModel, TimestampMixin


class EmployeeCreate(SecurePlaceModel):
    """Form input for provisioning an employee.

    name and email are checked by the workflow itself so that a missing value
    is reported as a validation-stage failure.
    """

    name: str = ""
    email: str = ""
    employee_code: str | None = None
    contact_number: str | None = None
    is_volunteer: bool = False
    firm_id: str | None = Field(
        default=None,
        description="Target firm. Ignored for firm administrators, who always use their own.",
    )


class EmployeeUpdate(SecurePlaceModel):
    """Partial update. Omitted fields stay unchanged."""

    name: str | None = None
    email: EmailStr | None = None
    employee_code: str | None = None
    contact_number: str | None = None
    is_volunteer: bool | None = None
    firm_id: str | None = None


class EmployeeResponse(TimestampMixin):
    """Employee as shown in the dashboard."""

    id: str
    name: str
    email: str
    employee_code: str | None
    contact_number: str | None
    is_volunteer: bool
    is_active: bool
    firm_id: str | None
    firm_name: str | None = Field(default=None, description="Null when the firm no longer exists")

    @classmethod
    def from_db(cls, profile: Any, firm_name: str | None = None) -> "EmployeeResponse":
        return cls(
            id=str(profile.id),
            name=profile.full_name,
            email=profile.email,
            employee_code=profile.employee_code,
            contact_number=profile.phone,
            is_volunteer=profile.is_volunteer,
            is_active=profile.is_active,
            firm_id=profile.firm_id,
            firm_name=firm_name,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class ProvisioningResponse(SecurePlaceModel):
    """Result of a provisioning or password-reset workflow."""

    id: str
    email: str
    firm_id: str | None
    email_sent: bool
    warnings: list[str] = Field(default_factory=list)
