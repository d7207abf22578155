"""
Report identities that have no profile.

Lists them for manual review; never deletes anything.
Run via: python -m secureplace.cli.reconcile

Exits 0 when there are no orphans, 2 when some were found and 1 on error.
"""

import asyncio
import sys
from datetime import timedelta

from secureplace.auth.identity_provider import IdentityProviderClient
from secureplace.config import settings
from secureplace.db.session import close_db, get_session_factory, init_db
from secureplace.errors import IdentityProviderError
from secureplace.logging_config import configure_logging, get_logger
from secureplace.services.profile_store import ProfileStore
from secureplace.services.reconciliation import find_orphaned_identities

logger = get_logger(__name__)


async def reconcile() -> int:
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    await init_db()
    try:
        orphans = await find_orphaned_identities(
            IdentityProviderClient(settings.identity),
            ProfileStore(get_session_factory()),
            min_age=timedelta(seconds=settings.provisioning.orphan_min_age_seconds),
        )
    except IdentityProviderError as e:
        logger.error("Reconciliation failed", error=str(e))
        return 1
    finally:
        await close_db()

    for orphan in orphans:
        print(f"{orphan.id}\t{orphan.email}\t{orphan.display_name or ''}")
    return 2 if orphans else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(reconcile()))
