"""
Bootstrap script for creating the initial super administrator.

Idempotent: skips if a profile with the email already exists.
Run via: python -m secureplace.cli.bootstrap

Reads configuration from environment variables:
  SECUREPLACE_BOOTSTRAP_ADMIN_EMAIL    - Super admin email (required)
  SECUREPLACE_BOOTSTRAP_ADMIN_NAME     - Display name (optional; "Admin")
  SECUREPLACE_BOOTSTRAP_ADMIN_PASSWORD - Password (optional; generated if omitted)
plus the usual SECUREPLACE_DATABASE_URL and SECUREPLACE_IDENTITY__* settings.
"""

import asyncio
import logging
import os
import sys

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from secureplace.auth.identity_provider import IdentityProviderClient
from secureplace.auth.passwords import generate_password
from secureplace.auth.roles import Role
from secureplace.config import settings
from secureplace.db.models import UserProfile
from secureplace.errors import IdentityCreationError, ProfileWriteError
from secureplace.services.profile_store import ProfileAttributes, ProfileStore

# Stdlib logging: structlog is not configured yet during bootstrap
logger = logging.getLogger("secureplace.bootstrap")
logging.basicConfig(level=logging.INFO, format="%(message)s")


async def bootstrap() -> int:
    admin_email = os.environ.get("SECUREPLACE_BOOTSTRAP_ADMIN_EMAIL", "").strip().lower()
    admin_name = os.environ.get("SECUREPLACE_BOOTSTRAP_ADMIN_NAME", "").strip() or "Admin"
    admin_password = os.environ.get("SECUREPLACE_BOOTSTRAP_ADMIN_PASSWORD", "").strip()

    if not admin_email:
        logger.error("SECUREPLACE_BOOTSTRAP_ADMIN_EMAIL is required")
        return 1

    generated = False
    if not admin_password:
        admin_password = generate_password()
        generated = True

    engine = create_async_engine(str(settings.database_url), echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_factory() as session:
            result = await session.execute(
                select(UserProfile).where(func.lower(UserProfile.email) == admin_email)
            )
            existing = result.scalar_one_or_none()

        if existing:
            logger.info("Profile for %s already exists (role %s), skipping", admin_email, existing.role)
            return 0

        identities = IdentityProviderClient(settings.identity)
        try:
            identity = await identities.create_identity(admin_email, admin_password, admin_name)
        except IdentityCreationError as e:
            logger.error("Could not create identity for %s: %s", admin_email, e)
            return 1
        logger.info("Created identity: %s", identity.id)

        store = ProfileStore(session_factory)
        try:
            await store.write_profile(
                identity.id,
                ProfileAttributes(full_name=admin_name, email=admin_email, role=Role.SUPER_ADMIN),
            )
        except ProfileWriteError as e:
            logger.error("Could not write profile, removing identity %s: %s", identity.id, e)
            await identities.delete_identity(identity.id)
            return 1

        logger.info("Created super admin: %s", admin_email)
        if generated:
            logger.info("Generated password: %s", admin_password)
            logger.warning("IMPORTANT: Save this password now. It will not be shown again.")
    finally:
        await engine.dispose()

    logger.info("Bootstrap complete")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(bootstrap()))
