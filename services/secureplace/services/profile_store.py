"""Profile store.

Profiles live in two tables. ``user_profiles`` is the primary record and the
source of truth for role and firm; ``profiles`` is a denormalized mirror kept
for older readers. Every primary write is fatal on failure, every mirror
write is best effort and only logged. Each write commits in its own
transaction so a failed mirror can never undo the primary.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secureplace.auth.roles import Role
from secureplace.db.models import Firm, Profile, UserProfile, utc_now
from secureplace.errors import ProfileNotFoundError, ProfileWriteError
from secureplace.logging_config import get_logger

logger = get_logger(__name__)

# Keys accepted by update_profile()
UPDATABLE_FIELDS = frozenset(
    {
        "full_name",
        "email",
        "role",
        "employee_code",
        "phone",
        "is_volunteer",
        "firm_id",
        "is_active",
    }
)


@dataclass(frozen=True)
class ProfileAttributes:
    """Everything written to a new profile."""

    full_name: str
    email: str
    role: Role
    firm_id: str | None = None
    employee_code: str | None = None
    phone: str | None = None
    is_volunteer: bool = False
    is_active: bool = True


def split_name(full_name: str) -> tuple[str, str]:
    """Split on the first whitespace run: 'Jane van Doe' -> ('Jane', 'van Doe')."""
    parts = full_name.strip().split(maxsplit=1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def _primary_columns(changes: dict[str, Any]) -> dict[str, Any]:
    values = {k: v for k, v in changes.items() if k not in ("full_name", "role")}
    if "full_name" in changes:
        values["first_name"], values["last_name"] = split_name(changes["full_name"])
    if "role" in changes:
        values["role"] = Role(changes["role"]).value
    return values


def _mirror_columns(changes: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "email":
            values["official_email"] = value
        elif key == "full_name":
            values["full_name"] = value.strip()
        elif key == "role":
            values["role"] = Role(value).value
        elif key != "is_active":
            values[key] = value
    return values


def _attribute_changes(attributes: ProfileAttributes) -> dict[str, Any]:
    return {
        "full_name": attributes.full_name,
        "email": attributes.email,
        "role": attributes.role,
        "firm_id": attributes.firm_id,
        "employee_code": attributes.employee_code,
        "phone": attributes.phone,
        "is_volunteer": attributes.is_volunteer,
        "is_active": attributes.is_active,
    }


class ProfileStore:
    """Reads and writes the primary and mirror profile records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def write_profile(self, identity_id: str, attributes: ProfileAttributes) -> None:
        """Upsert both profile records for an identity.

        Raises:
            ProfileWriteError: If the primary record could not be written.
                Mirror failures are logged and do not raise.
        """
        now = utc_now()
        values = _primary_columns(_attribute_changes(attributes))
        stmt = pg_insert(UserProfile).values(
            id=identity_id, created_at=now, updated_at=now, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserProfile.id],
            set_={**values, "updated_at": now},
        )

        try:
            async with self._session_factory() as db:
                await db.execute(stmt)
                await db.commit()
        except Exception as e:
            # Connection failures surface from the driver as OSError, not SQLAlchemyError
            logger.error("Primary profile write failed", identity_id=identity_id, error=str(e))
            raise ProfileWriteError(f"Failed to create profile: {e}") from e

        await self.write_mirror(identity_id, attributes)

    async def write_mirror(self, identity_id: str, attributes: ProfileAttributes) -> bool:
        """Upsert the mirror record. Returns False (and logs) on failure."""
        now = utc_now()
        values = _mirror_columns(_attribute_changes(attributes))
        stmt = pg_insert(Profile).values(id=identity_id, created_at=now, updated_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Profile.id],
            set_={**values, "updated_at": now},
        )

        try:
            async with self._session_factory() as db:
                await db.execute(stmt)
                await db.commit()
        except Exception as e:
            logger.warning("Mirror profile write failed", identity_id=identity_id, error=str(e))
            return False
        return True

    async def update_profile(self, identity_id: str, changes: dict[str, Any]) -> None:
        """Apply a partial update to both records.

        Raises:
            ValueError: If changes names a field that cannot be updated.
            ProfileNotFoundError: If no primary record exists.
            ProfileWriteError: If the primary update failed.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update profile fields: {', '.join(sorted(unknown))}")
        if not changes:
            return

        now = utc_now()
        stmt = (
            update(UserProfile)
            .where(UserProfile.id == identity_id)
            .values(**_primary_columns(changes), updated_at=now)
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    await db.rollback()
                    raise ProfileNotFoundError(f"Profile {identity_id} not found")
                await db.commit()
        except ProfileNotFoundError:
            raise
        except Exception as e:
            logger.error("Primary profile update failed", identity_id=identity_id, error=str(e))
            raise ProfileWriteError(f"Failed to update profile: {e}") from e

        mirror_values = _mirror_columns(changes)
        if not mirror_values:
            return
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(Profile)
                    .where(Profile.id == identity_id)
                    .values(**mirror_values, updated_at=now)
                )
                await db.commit()
        except Exception as e:
            logger.warning("Mirror profile update failed", identity_id=identity_id, error=str(e))

    async def delete_profile(self, identity_id: str) -> bool:
        """Delete both records. Never raises; returns whether the primary delete succeeded.

        Identity deletion is what actually removes a person, so a leftover
        profile row is only noise.
        """
        deleted = True
        for model in (UserProfile, Profile):
            try:
                async with self._session_factory() as db:
                    await db.execute(delete(model).where(model.id == identity_id))
                    await db.commit()
            except Exception as e:
                logger.warning(
                    "Profile delete failed",
                    identity_id=identity_id,
                    table=model.__tablename__,
                    error=str(e),
                )
                if model is UserProfile:
                    deleted = False
        return deleted

    async def get_profile(self, identity_id: str) -> UserProfile | None:
        """Read the primary record."""
        async with self._session_factory() as db:
            return await db.get(UserProfile, identity_id)

    async def get_firm_name(self, firm_id: str) -> str | None:
        """Display name of a firm, or None if it does not exist (any more)."""
        async with self._session_factory() as db:
            firm = await db.get(Firm, firm_id)
        return firm.name if firm else None

    async def list_profile_ids(self) -> set[str]:
        """Ids of every primary record."""
        async with self._session_factory() as db:
            result = await db.execute(select(UserProfile.id))
            return {str(row) for row in result.scalars().all()}
