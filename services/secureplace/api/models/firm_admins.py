"""Firm administrator Pydantic models."""

from typing import Any

from pydantic import EmailStr, Field

from .common import SecurePlaceModel, TimestampMixin


class FirmAdminCreate(SecurePlaceModel):
    """Form input for provisioning a firm administrator."""

    name: str = ""
    email: str = ""
    firm_id: str | None = Field(default=None, description="Firm the administrator manages")


class FirmAdminUpdate(SecurePlaceModel):
    """Partial update. Omitted fields stay unchanged."""

    name: str | None = None
    email: EmailStr | None = None
    firm_id: str | None = None


class FirmAdminResponse(TimestampMixin):
    id: str
    name: str
    email: str
    is_active: bool
    firm_id: str | None
    firm_name: str | None = None

    @classmethod
    def from_db(cls, profile: Any, firm_name: str | None = None) -> "FirmAdminResponse":
        return cls(
            id=str(profile.id),
            name=profile.full_name,
            email=profile.email,
            is_active=profile.is_active,
            firm_id=profile.firm_id,
            firm_name=firm_name,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )
