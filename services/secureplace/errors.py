"""Error taxonomy for administrative workflows.

Stage-scoped failures during identity creation and profile writes are fatal
and reach the caller as ``ProvisioningError``. Compensation and notification
failures are logged and never replace the primary result.
"""

from enum import StrEnum


class SecurePlaceError(Exception):
    """Base class for all domain errors."""


class ProvisioningStage(StrEnum):
    """Stage of an employee workflow at which a failure occurred."""

    VALIDATION = "validation"
    IDENTITY = "identity"
    PROFILE = "profile"
    NOTIFICATION = "notification"


# --- Identity provider ---


class IdentityProviderError(SecurePlaceError):
    """The identity service rejected a request or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IdentityCreationError(IdentityProviderError):
    """Creating an identity failed (duplicate email, provider outage)."""

    def __init__(
        self, message: str, *, status_code: int | None = None, duplicate: bool = False
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.duplicate = duplicate


class IdentityDeletionError(IdentityProviderError):
    """Deleting an identity failed."""


class IdentityUpdateError(IdentityProviderError):
    """Updating an identity failed."""


# --- Profile store ---


class ProfileWriteError(SecurePlaceError):
    """The primary profile record could not be written."""


class ProfileNotFoundError(SecurePlaceError):
    """No profile exists for the given identity id."""


# --- Workflow outcomes ---


class CompensationFailure(SecurePlaceError):
    """A compensating identity deletion failed, leaving an orphaned identity.

    Only ever logged. The original profile failure stays the reported cause.
    """

    def __init__(self, identity_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to delete identity {identity_id}: {cause}")
        self.identity_id = identity_id
        self.cause = cause


class NotificationError(SecurePlaceError):
    """An email could not be delivered. Surfaced only as a soft warning."""


class ProvisioningError(SecurePlaceError):
    """A workflow failed at a given stage."""

    def __init__(
        self,
        stage: ProvisioningStage,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.stage = stage
        self.cause = cause
        if message is None:
            message = str(cause) if cause is not None else f"Failed at stage {stage}"
        super().__init__(message)


class ValidationError(ProvisioningError):
    """Missing or malformed input, rejected before any side effect."""

    def __init__(self, message: str) -> None:
        super().__init__(ProvisioningStage.VALIDATION, None, message)


class AccessDeniedError(SecurePlaceError):
    """The requesting principal may not act on the target."""


class DeadlineExceeded(SecurePlaceError):
    """An external call did not finish within its deadline.

    Classified like a hard failure of the stage it happened in.
    """
