"""Identity provider administrative client.

Thin wrapper over the hosted identity service's admin API (GoTrue
compatible). Every call authenticates with the service-role key, which must
never reach a browser. This is the only component that creates, changes or
deletes identities.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx

from secureplace.config import IdentityConfig
from secureplace.errors import (
    IdentityCreationError,
    IdentityDeletionError,
    IdentityProviderError,
    IdentityUpdateError,
)
from secureplace.logging_config import get_logger

logger = get_logger(__name__)

ADMIN_USERS_PATH = "/auth/v1/admin/users"

_DUPLICATE_MARKERS = ("email_exists", "already been registered", "already registered")


@dataclass(frozen=True)
class Identity:
    """An authentication principal as reported by the identity service."""

    id: str
    email: str
    email_confirmed: bool
    display_name: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Identity":
        metadata = data.get("user_metadata") or {}
        return cls(
            id=str(data["id"]),
            email=(data.get("email") or "").lower(),
            email_confirmed=bool(data.get("email_confirmed_at") or data.get("confirmed_at")),
            display_name=metadata.get("full_name"),
            created_at=_parse_timestamp(data.get("created_at")),
        )


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning("Unparseable identity timestamp", value=value)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of an error response."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


def _is_duplicate(resp: httpx.Response) -> bool:
    if resp.status_code not in (400, 409, 422):
        return False
    try:
        body = resp.json()
    except ValueError:
        body = {}
    code = str(body.get("code") or body.get("error_code") or "") if isinstance(body, dict) else ""
    text = f"{code} {_error_message(resp)}".lower()
    return any(marker in text for marker in _DUPLICATE_MARKERS)


class IdentityProviderClient:
    """Administrative operations against the identity service."""

    def __init__(
        self,
        config: IdentityConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        key = self._config.service_role_key
        return httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers={"apikey": key, "Authorization": f"Bearer {key}"},
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def create_identity(self, email: str, password: str, display_name: str) -> Identity:
        """Create a confirmed email+password identity.

        Raises:
            IdentityCreationError: Email already registered (``duplicate``
                set), request rejected, or provider unreachable.
        """
        payload = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": {"full_name": display_name},
        }
        try:
            async with self._client() as client:
                resp = await client.post(ADMIN_USERS_PATH, json=payload)
        except httpx.HTTPError as e:
            raise IdentityCreationError(f"Identity service unreachable: {e}") from e

        if resp.is_error:
            duplicate = _is_duplicate(resp)
            message = _error_message(resp)
            logger.warning(
                "Identity creation rejected",
                status=resp.status_code,
                duplicate=duplicate,
                error=message,
            )
            raise IdentityCreationError(
                f"Failed to create user: {message}",
                status_code=resp.status_code,
                duplicate=duplicate,
            )

        body = resp.json()
        # Older GoTrue versions wrap the user object
        identity = Identity.from_api(body.get("user", body))
        logger.info("Identity created", identity_id=identity.id)
        return identity

    async def delete_identity(self, identity_id: str) -> None:
        """Delete an identity.

        Raises:
            IdentityDeletionError: If the provider rejected or did not receive
                the request.
        """
        try:
            async with self._client() as client:
                resp = await client.delete(f"{ADMIN_USERS_PATH}/{identity_id}")
        except httpx.HTTPError as e:
            raise IdentityDeletionError(f"Identity service unreachable: {e}") from e

        if resp.is_error:
            raise IdentityDeletionError(
                f"Failed to delete user: {_error_message(resp)}",
                status_code=resp.status_code,
            )
        logger.info("Identity deleted", identity_id=identity_id)

    async def update_identity(
        self,
        identity_id: str,
        *,
        email: str | None = None,
        display_name: str | None = None,
        password: str | None = None,
    ) -> None:
        """Change the email, display name and/or password of an identity.

        Raises:
            IdentityUpdateError: If the provider rejected or did not receive
                the request.
        """
        payload: dict[str, Any] = {}
        if email is not None:
            payload["email"] = email
            payload["email_confirm"] = True
        if display_name is not None:
            payload["user_metadata"] = {"full_name": display_name}
        if password is not None:
            payload["password"] = password
        if not payload:
            return

        try:
            async with self._client() as client:
                resp = await client.put(f"{ADMIN_USERS_PATH}/{identity_id}", json=payload)
        except httpx.HTTPError as e:
            raise IdentityUpdateError(f"Identity service unreachable: {e}") from e

        if resp.is_error:
            raise IdentityUpdateError(
                f"Failed to update user: {_error_message(resp)}",
                status_code=resp.status_code,
            )
        logger.info("Identity updated", identity_id=identity_id, fields=sorted(payload))

    async def list_identities(self) -> list[Identity]:
        """List every identity, page by page.

        Raises:
            IdentityProviderError: If any page cannot be fetched.
        """
        identities: list[Identity] = []
        page = 1
        per_page = self._config.page_size

        async with self._client() as client:
            while True:
                try:
                    resp = await client.get(
                        ADMIN_USERS_PATH, params={"page": page, "per_page": per_page}
                    )
                except httpx.HTTPError as e:
                    raise IdentityProviderError(f"Identity service unreachable: {e}") from e
                if resp.is_error:
                    raise IdentityProviderError(
                        f"Failed to list users: {_error_message(resp)}",
                        status_code=resp.status_code,
                    )

                users = resp.json().get("users", [])
                identities.extend(Identity.from_api(u) for u in users)
                if len(users) < per_page:
                    break
                page += 1

        return identities
