"""Access token verification.

Callers present the access token issued by the hosted identity service. It
is an HS256 JWT signed with the project JWT secret; the subject is the
identity id, which is also the profile id.
"""

from dataclasses import dataclass
from typing import Any

from authlib.jose import jwt as authlib_jwt
from authlib.jose.errors import JoseError

from secureplace.config import settings


@dataclass(frozen=True)
class TokenClaims:
    """The subset of access-token claims this service relies on."""

    subject: str
    email: str | None
    expires_at: int
    raw: dict[str, Any]


def decode_access_token(
    token: str,
    *,
    secret: str | None = None,
    audience: str | None = None,
) -> TokenClaims:
    """
    Decode and validate an access token.

    Args:
        token: Encoded JWT from the Authorization header
        secret: Signing secret (defaults to settings.auth.jwt_secret)
        audience: Expected audience (defaults to settings.auth.jwt_audience)

    Returns:
        Validated claims

    Raises:
        ValueError: If the token is malformed, badly signed, expired, or for
            another audience
    """
    key = (secret or settings.auth.jwt_secret).encode()
    claims_options = {
        "sub": {"essential": True},
        "exp": {"essential": True},
        "aud": {"essential": True, "value": audience or settings.auth.jwt_audience},
    }
    try:
        claims = authlib_jwt.decode(token, key, claims_options=claims_options)
        claims.validate()
    except JoseError as e:
        raise ValueError(f"Invalid token: {e}") from e
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid token: {e}") from e

    return TokenClaims(
        subject=str(claims["sub"]),
        email=claims.get("email"),
        expires_at=int(claims["exp"]),
        raw=dict(claims),
    )
