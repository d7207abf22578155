"""Operator maintenance router."""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status

from secureplace.api.dependencies import get_identity_provider, get_profile_store, require_super_admin
from secureplace.api.models.admin import OrphanedIdentityResponse
from secureplace.auth.identity_provider import IdentityProviderClient
from secureplace.auth.roles import Principal
from secureplace.config import settings
from secureplace.errors import IdentityProviderError
from secureplace.logging_config import get_logger
from secureplace.services.profile_store import ProfileStore
from secureplace.services.reconciliation import find_orphaned_identities

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)


@router.get("/orphaned-identities", response_model=list[OrphanedIdentityResponse])
async def list_orphaned_identities(
    identity_provider: IdentityProviderClient = Depends(get_identity_provider),
    profile_store: ProfileStore = Depends(get_profile_store),
    principal: Principal = Depends(require_super_admin),
) -> list[OrphanedIdentityResponse]:
    """List identities that have no profile, for manual review.

    Nothing is deleted. Requires super admin.
    """
    try:
        orphans = await find_orphaned_identities(
            identity_provider,
            profile_store,
            min_age=timedelta(seconds=settings.provisioning.orphan_min_age_seconds),
        )
    except IdentityProviderError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    logger.info("Orphaned identity report", count=len(orphans), requested_by=principal.user_id)
    return [
        OrphanedIdentityResponse(id=o.id, email=o.email, display_name=o.display_name)
        for o in orphans
    ]
