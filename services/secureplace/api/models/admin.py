"""Operator maintenance models."""

from .common import SecurePlaceModel


class OrphanedIdentityResponse(SecurePlaceModel):
    """An identity with no primary profile, awaiting operator review."""

    id: str
    email: str
    display_name: str | None
