"""Auth-related Pydantic models."""

from .common import SecurePlaceModel


class PrincipalResponse(SecurePlaceModel):
    """The signed-in administrator."""

    id: str
    email: str
    full_name: str
    role: str
    firm_id: str | None
