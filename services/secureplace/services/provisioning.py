"""Account provisioning and maintenance workflows.

Employees and firm administrators are provisioned the same way. Creating an
account touches three external systems in a fixed order:

    validate -> create identity -> write profile -> send welcome email

The identity must exist first because its id is the profile's primary key.
If the profile write fails, the identity is deleted again (one attempt, no
retry loop) and the profile failure is reported. If that deletion also fails
the identity is left orphaned; the reconciliation sweep reports it. The
welcome email never affects the outcome.

Every external call runs under a deadline. A call that exceeds it counts as
a failure of its stage, with the same fatal or non-fatal treatment.

Nothing here is idempotent. Provisioning the same email twice fails at the
identity stage because the identity service enforces unique emails.
"""

import asyncio
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from secureplace.auth.identity_provider import IdentityProviderClient
from secureplace.auth.passwords import generate_password
from secureplace.auth.roles import Principal, Role
from secureplace.db.models import UserProfile
from secureplace.errors import (
    AccessDeniedError,
    CompensationFailure,
    DeadlineExceeded,
    IdentityCreationError,
    IdentityDeletionError,
    IdentityUpdateError,
    ProfileNotFoundError,
    ProvisioningError,
    ProvisioningStage,
    ValidationError,
)
from secureplace.logging_config import get_logger
from secureplace.services.notifications import (
    NotificationResult,
    Notifier,
    PasswordResetEmail,
    WelcomeEmail,
)
from secureplace.services.profile_store import ProfileAttributes, ProfileStore

logger = get_logger(__name__)

T = TypeVar("T")

# API field name -> profile field name
_CHANGE_FIELDS = {
    "name": "full_name",
    "email": "email",
    "employee_code": "employee_code",
    "contact_number": "phone",
    "is_volunteer": "is_volunteer",
    "firm_id": "firm_id",
}

# Fields an administrator may edit, per account role
_EDITABLE_FIELDS = {
    Role.EMPLOYEE: frozenset(_CHANGE_FIELDS),
    Role.FIRM_ADMIN: frozenset({"name", "email", "firm_id"}),
}

_NOUNS = {Role.EMPLOYEE: "employee", Role.FIRM_ADMIN: "firm admin"}
_ARTICLES = {Role.EMPLOYEE: "an", Role.FIRM_ADMIN: "a"}


@dataclass(frozen=True)
class AccountInput:
    """Administrative input for a new account.

    employee_code, contact_number and is_volunteer only apply to employees.
    """

    name: str
    email: str
    employee_code: str | None = None
    contact_number: str | None = None
    is_volunteer: bool = False
    firm_id: str | None = None


@dataclass
class ProvisioningResult:
    """Outcome of a workflow that succeeded.

    ``notification`` records whether the credential email went out;
    ``warnings`` carries the soft failures shown next to the success message.
    """

    identity_id: str
    email: str
    firm_id: str | None
    notification: NotificationResult
    warnings: list[str] = field(default_factory=list)

    @property
    def email_sent(self) -> bool:
        return self.notification.success


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _firm_required(role: Role) -> ValidationError:
    return ValidationError(f"A firm is required for {_ARTICLES[role]} {_NOUNS[role]}")


def _check_firm_id(firm_id: str) -> str:
    """Reject firm ids the database would refuse before anything external runs."""
    try:
        return str(uuid.UUID(firm_id))
    except ValueError as e:
        raise ValidationError("Firm id is invalid") from e


class ProvisioningService:
    """Coordinates the identity provider, profile store and notifier."""

    def __init__(
        self,
        identity_provider: IdentityProviderClient,
        profile_store: ProfileStore,
        notifier: Notifier,
        *,
        login_url: str,
        step_timeout: float = 20.0,
        default_firm_name: str = "Your Organization",
    ) -> None:
        self._identities = identity_provider
        self._profiles = profile_store
        self._notifier = notifier
        self._login_url = login_url
        self._step_timeout = step_timeout
        self._default_firm_name = default_firm_name

    async def _call(self, awaitable: Awaitable[T], what: str) -> T:
        """Await an external call under the step deadline."""
        try:
            async with asyncio.timeout(self._step_timeout):
                return await awaitable
        except TimeoutError as e:
            raise DeadlineExceeded(f"{what} timed out after {self._step_timeout:g}s") from e

    # --- provisioning ---

    async def provision_employee(
        self, request: AccountInput, requester: Principal
    ) -> ProvisioningResult:
        """Create identity, profile and welcome email for a new employee."""
        return await self.provision_account(request, requester, Role.EMPLOYEE)

    async def provision_firm_admin(
        self, request: AccountInput, requester: Principal
    ) -> ProvisioningResult:
        """Create identity, profile and welcome email for a new firm administrator."""
        return await self.provision_account(request, requester, Role.FIRM_ADMIN)

    async def provision_account(
        self, request: AccountInput, requester: Principal, role: Role
    ) -> ProvisioningResult:
        """Create identity, profile and welcome email for a new account.

        Raises:
            ValidationError: Missing name/email/firm or malformed firm id.
                Nothing was called.
            AccessDeniedError: The requester cannot manage accounts of this role.
            ProvisioningError: ``stage=identity`` when nothing was created,
                ``stage=profile`` when the identity was created and then
                removed again.
        """
        name = (request.name or "").strip()
        email = (request.email or "").strip().lower()
        if not name or not email:
            raise ValidationError("Name and email are required")
        if "@" not in email:
            raise ValidationError("Email address is invalid")

        policy = requester.policy
        if not policy.can_manage_role(role):
            raise AccessDeniedError("Insufficient permissions")
        firm_id = policy.scope_firm(requester, _blank_to_none(request.firm_id))
        if firm_id is None:
            raise _firm_required(role)
        firm_id = _check_firm_id(firm_id)

        password = generate_password()

        try:
            identity = await self._call(
                self._identities.create_identity(email, password, name), "Identity creation"
            )
        except (IdentityCreationError, DeadlineExceeded) as e:
            logger.warning("Provisioning failed", role=role, stage="identity", error=str(e))
            raise ProvisioningError(ProvisioningStage.IDENTITY, e) from e

        if role is Role.EMPLOYEE:
            attributes = ProfileAttributes(
                full_name=name,
                email=email,
                role=role,
                firm_id=firm_id,
                employee_code=_blank_to_none(request.employee_code),
                phone=_blank_to_none(request.contact_number),
                is_volunteer=request.is_volunteer,
            )
        else:
            attributes = ProfileAttributes(full_name=name, email=email, role=role, firm_id=firm_id)

        try:
            await self._call(self._profiles.write_profile(identity.id, attributes), "Profile write")
        except Exception as e:
            # Whatever broke, the identity exists and has no profile
            logger.warning(
                "Provisioning failed",
                role=role,
                stage="profile",
                identity_id=identity.id,
                error=str(e),
            )
            await self._compensate(identity.id)
            raise ProvisioningError(ProvisioningStage.PROFILE, e) from e

        firm_name = await self._firm_name(firm_id)
        notification = await self._notify(
            self._notifier.send_welcome(
                WelcomeEmail(
                    name=name,
                    email=email,
                    password=password,
                    firm_name=firm_name,
                    login_url=self._login_url,
                )
            ),
            "Welcome email",
        )

        result = ProvisioningResult(
            identity_id=identity.id,
            email=email,
            firm_id=firm_id,
            notification=notification,
        )
        if not notification.success:
            result.warnings.append(f"Welcome email not sent: {notification.error}")

        logger.info(
            "Account provisioned",
            role=role,
            identity_id=identity.id,
            firm_id=firm_id,
            requested_by=requester.user_id,
            email_sent=notification.success,
        )
        return result

    async def _compensate(self, identity_id: str) -> None:
        """Delete an identity whose profile could not be written. One attempt only."""
        try:
            await self._call(self._identities.delete_identity(identity_id), "Identity deletion")
        except Exception as e:
            failure = CompensationFailure(identity_id, e)
            logger.error(
                "Compensating identity deletion failed; identity is orphaned",
                identity_id=identity_id,
                error=str(failure),
            )
            return
        logger.info("Compensating identity deletion succeeded", identity_id=identity_id)

    async def _firm_name(self, firm_id: str | None) -> str:
        if not firm_id:
            return self._default_firm_name
        try:
            name = await self._call(self._profiles.get_firm_name(firm_id), "Firm lookup")
        except Exception as e:
            logger.warning("Firm lookup failed", firm_id=firm_id, error=str(e))
            return self._default_firm_name
        return name or self._default_firm_name

    async def _notify(
        self, awaitable: Awaitable[NotificationResult], what: str
    ) -> NotificationResult:
        try:
            return await self._call(awaitable, what)
        except Exception as e:
            logger.warning("Notification failed", notification=what, error=str(e))
            return NotificationResult(success=False, error=str(e))

    # --- maintenance ---

    async def _load_account(
        self, identity_id: str, requester: Principal, role: Role
    ) -> UserProfile:
        policy = requester.policy
        if not policy.can_manage_role(role):
            raise AccessDeniedError("Insufficient permissions")

        profile = await self._profiles.get_profile(identity_id)
        if profile is None or Role(profile.role) is not role:
            raise ProfileNotFoundError(f"{_NOUNS[role].capitalize()} {identity_id} not found")
        policy.require_firm(requester, profile.firm_id)
        return profile

    async def update_employee(
        self, identity_id: str, changes: dict[str, Any], requester: Principal
    ) -> None:
        await self.update_account(identity_id, changes, requester, Role.EMPLOYEE)

    async def update_firm_admin(
        self, identity_id: str, changes: dict[str, Any], requester: Principal
    ) -> None:
        await self.update_account(identity_id, changes, requester, Role.FIRM_ADMIN)

    async def update_account(
        self, identity_id: str, changes: dict[str, Any], requester: Principal, role: Role
    ) -> None:
        """Apply administrative edits to an account.

        ``changes`` uses the API field names (name, email, employee_code,
        contact_number, is_volunteer, firm_id); absent keys stay unchanged.
        Firm admins only have name, email and firm_id. The identity is updated
        before the profile so a failed identity update leaves both untouched.
        If the profile update then fails, the identity change is reverted once.

        Raises:
            ValidationError: Blank name or email, malformed firm id, or a
                field this role does not have.
            ProfileNotFoundError: No such account.
            AccessDeniedError: Account outside the requester's reach.
            ProvisioningError: Identity or profile update failed.
        """
        unknown = set(changes) - _EDITABLE_FIELDS[role]
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        profile = await self._load_account(identity_id, requester, role)

        updates: dict[str, Any] = {}
        for key, value in changes.items():
            if key in ("employee_code", "contact_number"):
                value = _blank_to_none(value)
            elif key == "name":
                value = (value or "").strip()
                if not value:
                    raise ValidationError("Name is required")
            elif key == "email":
                value = (value or "").strip().lower()
                if not value or "@" not in value:
                    raise ValidationError("A valid email is required")
            elif key == "is_volunteer":
                value = bool(value)
            elif key == "firm_id":
                value = requester.policy.scope_firm(requester, _blank_to_none(value))
                if value is None:
                    raise _firm_required(role)
                value = _check_firm_id(value)
            updates[_CHANGE_FIELDS[key]] = value

        new_email = updates.get("email")
        new_name = updates.get("full_name")
        identity_changes = {
            "email": new_email if new_email and new_email != profile.email else None,
            "display_name": new_name if new_name and new_name != profile.full_name else None,
        }
        identity_changed = any(v is not None for v in identity_changes.values())
        if identity_changed:
            try:
                await self._call(
                    self._identities.update_identity(identity_id, **identity_changes),
                    "Identity update",
                )
            except (IdentityUpdateError, DeadlineExceeded) as e:
                raise ProvisioningError(ProvisioningStage.IDENTITY, e) from e

        try:
            await self._call(self._profiles.update_profile(identity_id, updates), "Profile update")
        except Exception as e:
            logger.warning(
                "Profile update failed",
                role=role,
                identity_id=identity_id,
                error=str(e),
            )
            if identity_changed:
                await self._revert_identity(identity_id, profile, identity_changes)
            if isinstance(e, ProfileNotFoundError):
                raise
            raise ProvisioningError(ProvisioningStage.PROFILE, e) from e

        logger.info(
            "Account updated",
            role=role,
            identity_id=identity_id,
            fields=sorted(updates),
            updated_by=requester.user_id,
        )

    async def _revert_identity(
        self, identity_id: str, profile: UserProfile, applied: dict[str, str | None]
    ) -> None:
        """Put back the email and display name the profile still holds. One attempt only."""
        previous = {
            "email": profile.email if applied["email"] is not None else None,
            "display_name": profile.full_name if applied["display_name"] is not None else None,
        }
        try:
            await self._call(
                self._identities.update_identity(identity_id, **previous), "Identity revert"
            )
        except Exception as e:
            logger.error(
                "Identity revert failed; identity and profile disagree",
                identity_id=identity_id,
                identity_email=applied["email"],
                profile_email=profile.email,
                error=str(e),
            )
            return
        logger.info("Identity change reverted", identity_id=identity_id)

    async def remove_employee(self, identity_id: str, requester: Principal) -> None:
        await self.remove_account(identity_id, requester, Role.EMPLOYEE)

    async def remove_firm_admin(self, identity_id: str, requester: Principal) -> None:
        await self.remove_account(identity_id, requester, Role.FIRM_ADMIN)

    async def remove_account(self, identity_id: str, requester: Principal, role: Role) -> None:
        """Delete an account's profile (best effort) and identity.

        Raises:
            ProfileNotFoundError: No such account.
            AccessDeniedError: Account outside the requester's reach.
            ProvisioningError: ``stage=identity`` if the identity could not be
                deleted.
        """
        await self._load_account(identity_id, requester, role)

        try:
            await self._call(self._profiles.delete_profile(identity_id), "Profile delete")
        except DeadlineExceeded as e:
            logger.warning("Profile delete timed out", identity_id=identity_id, error=str(e))

        try:
            await self._call(self._identities.delete_identity(identity_id), "Identity deletion")
        except (IdentityDeletionError, DeadlineExceeded) as e:
            raise ProvisioningError(ProvisioningStage.IDENTITY, e) from e

        logger.info(
            "Account removed", role=role, identity_id=identity_id, removed_by=requester.user_id
        )

    async def reset_password(
        self, identity_id: str, requester: Principal, role: Role = Role.EMPLOYEE
    ) -> ProvisioningResult:
        """Issue a new generated password and email it to the account holder.

        Raises:
            ProfileNotFoundError: No such account.
            AccessDeniedError: Account outside the requester's reach.
            ProvisioningError: ``stage=identity`` if the password could not be
                changed. A failed email is only a warning.
        """
        profile = await self._load_account(identity_id, requester, role)
        password = generate_password()

        try:
            await self._call(
                self._identities.update_identity(identity_id, password=password),
                "Password update",
            )
        except (IdentityUpdateError, DeadlineExceeded) as e:
            raise ProvisioningError(ProvisioningStage.IDENTITY, e) from e

        firm_name = await self._firm_name(profile.firm_id)
        notification = await self._notify(
            self._notifier.send_password_reset(
                PasswordResetEmail(
                    name=profile.full_name,
                    email=profile.email,
                    password=password,
                    firm_name=firm_name,
                )
            ),
            "Password reset email",
        )

        result = ProvisioningResult(
            identity_id=identity_id,
            email=profile.email,
            firm_id=profile.firm_id,
            notification=notification,
        )
        if not notification.success:
            result.warnings.append(f"Password reset email not sent: {notification.error}")

        logger.info(
            "Password reset",
            role=role,
            identity_id=identity_id,
            reset_by=requester.user_id,
            email_sent=notification.success,
        )
        return result
