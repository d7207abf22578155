"""Authentication router.

Sign-in itself happens against the hosted identity service; this API only
verifies the resulting access token. These endpoints let the dashboard read
the resolved principal and drop it from the cache on sign-out.
"""

from fastapi import APIRouter, Depends

from secureplace.api.dependencies import get_current_principal, get_principal_cache, require_admin
from secureplace.api.models.auth import PrincipalResponse
from secureplace.auth.roles import Principal
from secureplace.auth.sessions import PrincipalCache
from secureplace.logging_config import get_logger

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


@router.get("/me", response_model=PrincipalResponse)
async def me(principal: Principal = Depends(require_admin)) -> PrincipalResponse:
    """Return the signed-in administrator."""
    return PrincipalResponse(
        id=principal.user_id,
        email=principal.email,
        full_name=principal.full_name,
        role=principal.role.value,
        firm_id=principal.firm_id,
    )


@router.post("/logout")
async def logout(
    principal: Principal = Depends(get_current_principal),
    cache: PrincipalCache = Depends(get_principal_cache),
) -> dict[str, str]:
    """Forget the cached principal. The next request resolves it again."""
    await cache.clear(principal.user_id)
    logger.info("Principal cache cleared via logout", user_id=principal.user_id)
    return {"status": "logged_out"}
