"""Firm-related Pydantic models."""

from pydantic import EmailStr, Field

from .common import SecurePlaceModel, TimestampMixin


class FirmBase(SecurePlaceModel):
    name: str = Field(..., min_length=1, max_length=255)
    industry: str | None = None
    contact_email: EmailStr | None = None
    phone_number: str | None = None
    address: str | None = None


class FirmCreate(FirmBase):
    """Model for creating a firm."""


class FirmUpdate(SecurePlaceModel):
    """Partial update. Omitted fields stay unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    industry: str | None = None
    contact_email: EmailStr | None = None
    phone_number: str | None = None
    address: str | None = None


class FirmResponse(FirmBase, TimestampMixin):
    id: str
    contact_email: str | None = None
