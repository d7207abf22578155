"""Redis-backed principal cache.

Resolving a caller means verifying their token and reading their primary
profile (role, firm). The resolved Principal is cached per identity id with
an explicit TTL so most requests skip the database. Entries are cleared on
logout and whenever the underlying profile changes, which is what makes a
role or firm change take effect before the TTL runs out.
"""

import json
from dataclasses import asdict

import redis.asyncio as aioredis

from secureplace.auth.roles import Principal, Role
from secureplace.config import settings
from secureplace.logging_config import get_logger

logger = get_logger(__name__)

PRINCIPAL_PREFIX = "secureplace:principal:"


class PrincipalCache:
    """get / set / clear / expire operations over Redis."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int | None = None) -> None:
        self._redis = redis
        self._ttl = ttl_seconds or settings.auth.principal_cache_ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    @staticmethod
    def _key(user_id: str) -> str:
        return PRINCIPAL_PREFIX + user_id

    async def get(self, user_id: str) -> Principal | None:
        """Return the cached principal, or None if absent, expired or unreadable."""
        data = await self._redis.get(self._key(user_id))
        if data is None:
            return None

        try:
            parsed = json.loads(data)
            parsed["role"] = Role(parsed["role"])
            return Principal(**parsed)
        except (ValueError, KeyError, TypeError) as e:
            # Written by an older schema; drop it and resolve again
            logger.warning("Discarding unreadable principal cache entry", user_id=user_id, error=str(e))
            await self._redis.delete(self._key(user_id))
            return None

    async def set(self, principal: Principal) -> None:
        """Cache a principal for the configured TTL."""
        data = asdict(principal)
        data["role"] = principal.role.value
        await self._redis.set(self._key(principal.user_id), json.dumps(data), ex=self._ttl)

    async def clear(self, user_id: str) -> bool:
        """Invalidate a principal. Returns True if an entry existed."""
        deleted = await self._redis.delete(self._key(user_id))
        if deleted:
            logger.info("Principal cache cleared", user_id=user_id)
        return deleted > 0

    async def expire(self, user_id: str) -> bool:
        """Restart the TTL of an existing entry. Returns False if none exists."""
        return bool(await self._redis.expire(self._key(user_id), self._ttl))
