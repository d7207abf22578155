"""
Health check endpoints for the Secure Place API server.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from fastapi import APIRouter, Response, status

from secureplace.config import settings
from secureplace.db.session import get_db_health, get_db_read_health
from secureplace.logging_config import get_logger
from secureplace.redis.client import get_redis_health

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


def _state(ok: bool) -> str:
    return "healthy" if ok else "unhealthy"


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 while the process is serving requests."""
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(response: Response) -> dict[str, str | dict[str, str]]:
    """
    Readiness probe.

    The database and the principal cache must be reachable. Missing email or
    identity-service settings are reported but do not fail readiness: a
    broken mailer only downgrades provisioning to a warning.
    """
    db_healthy = await get_db_health()
    redis_healthy = await get_redis_health()

    checks: dict[str, str] = {
        "database": _state(db_healthy),
        "redis": _state(redis_healthy),
        "identity": "configured" if settings.identity.service_role_key else "not configured",
        "email": "configured" if settings.smtp.host and settings.smtp.user else "not configured",
    }
    all_healthy = db_healthy and redis_healthy

    if settings.database_read_url:
        db_read_healthy = await get_db_read_health()
        checks["database_read"] = _state(db_read_healthy)
        all_healthy = all_healthy and db_read_healthy

    if not all_healthy:
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}
