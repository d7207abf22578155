"""Orphaned identity sweep.

An identity without a primary profile can be left behind when a
compensating deletion fails, or when an identity-stage call timed out after
the provider had in fact created the account. The sweep lists such
identities for an operator to review. It never deletes anything.

The report is not exact. An account being provisioned right now has an
identity and not yet a profile, so identities younger than ``min_age`` are
left out. Identities are listed before profiles are read, which gives an
in-flight profile write the most time to land.
"""

from dataclasses import dataclass
from datetime import timedelta

from secureplace.auth.identity_provider import IdentityProviderClient
from secureplace.db.models import utc_now
from secureplace.logging_config import get_logger
from secureplace.services.profile_store import ProfileStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrphanedIdentity:
    id: str
    email: str
    display_name: str | None


async def find_orphaned_identities(
    identity_provider: IdentityProviderClient,
    profile_store: ProfileStore,
    min_age: timedelta = timedelta(minutes=5),
) -> list[OrphanedIdentity]:
    """Identities that have no row in the primary profile table, sorted by email.

    Identities created less than ``min_age`` ago are skipped. Identities
    without a creation time are always considered.
    """
    identities = await identity_provider.list_identities()
    profile_ids = await profile_store.list_profile_ids()

    cutoff = utc_now() - min_age
    candidates = [i for i in identities if i.id not in profile_ids]
    recent = {i.id for i in candidates if i.created_at is not None and i.created_at > cutoff}
    orphans = sorted(
        (
            OrphanedIdentity(id=i.id, email=i.email, display_name=i.display_name)
            for i in candidates
            if i.id not in recent
        ),
        key=lambda o: o.email,
    )

    if recent:
        logger.info("Skipped recently created identities", count=len(recent))
    if orphans:
        logger.warning(
            "Orphaned identities found",
            count=len(orphans),
            identity_ids=[o.id for o in orphans],
        )
    else:
        logger.info("No orphaned identities", identities=len(identities))
    return orphans
