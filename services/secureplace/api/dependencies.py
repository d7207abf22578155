"""FastAPI dependencies for authentication and authorization.

Clients send the access token issued by the hosted identity service in the
Authorization header. The token proves who the caller is; their role and
firm come from their primary profile. The resolved Principal is cached in
Redis so most requests skip the profile lookup. Each cache hit restarts the
entry's TTL (sliding window).

The workflow services are also provided here so tests can swap them via
``app.dependency_overrides``.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.auth.identity_provider import IdentityProviderClient
from secureplace.auth.roles import Principal, Role
from secureplace.auth.sessions import PrincipalCache
from secureplace.auth.tokens import decode_access_token
from secureplace.config import settings
from secureplace.db.models import UserProfile
from secureplace.db.session import get_db_read, get_session_factory
from secureplace.logging_config import get_logger
from secureplace.redis.client import get_redis_client
from secureplace.services.notifications import Notifier
from secureplace.services.profile_store import ProfileStore
from secureplace.services.provisioning import ProvisioningService

logger = get_logger(__name__)
security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_principal_cache() -> PrincipalCache:
    return PrincipalCache(get_redis_client())


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    cache: PrincipalCache = Depends(get_principal_cache),
    db: AsyncSession = Depends(get_db_read),
) -> Principal:
    """Dependency to get the authenticated caller.

    Verifies the access token, then resolves role and firm from the cache or,
    on a miss, from the caller's primary profile.
    """
    try:
        claims = decode_access_token(credentials.credentials)
    except ValueError as e:
        logger.info("Rejected access token", error=str(e))
        raise _unauthorized("Invalid or expired token") from e

    principal = await cache.get(claims.subject)
    if principal is not None:
        await cache.expire(claims.subject)
        return principal

    profile = await db.get(UserProfile, claims.subject)
    if profile is None or not profile.is_active:
        logger.warning("Token subject has no active profile", user_id=claims.subject)
        raise _unauthorized("No active profile for this account")

    try:
        role = Role(profile.role)
    except ValueError as e:
        logger.error("Profile has unknown role", user_id=profile.id, role=profile.role)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account role is not recognised",
        ) from e

    principal = Principal(
        user_id=profile.id,
        email=profile.email,
        role=role,
        firm_id=profile.firm_id,
        full_name=profile.full_name,
    )
    await cache.set(principal)
    return principal


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Dependency to require a super admin or firm admin."""
    if not principal.policy.can_administer:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


async def require_super_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Dependency to require a super admin."""
    if not principal.policy.can_manage_all_firms:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required",
        )
    return principal


# --- Workflow services ---


def get_identity_provider() -> IdentityProviderClient:
    return IdentityProviderClient(settings.identity)


def get_profile_store() -> ProfileStore:
    return ProfileStore(get_session_factory())


def get_notifier() -> Notifier:
    return Notifier(settings.smtp)


def get_provisioning_service(
    identity_provider: IdentityProviderClient = Depends(get_identity_provider),
    profile_store: ProfileStore = Depends(get_profile_store),
    notifier: Notifier = Depends(get_notifier),
) -> ProvisioningService:
    return ProvisioningService(
        identity_provider,
        profile_store,
        notifier,
        login_url=settings.app_base_url,
        step_timeout=settings.provisioning.step_timeout_seconds,
        default_firm_name=settings.provisioning.default_firm_name,
    )
