"""Bearer token verification.

Tokens are issued by the account service; this module only verifies the
signature and expiry with the shared secret and extracts the claims the chat
endpoint needs.
"""

from dataclasses import dataclass
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from tutor.app.core.config import settings
from tutor.app.exceptions import AuthenticationError


@dataclass(frozen=True)
class TokenClaims:
    """Claims extracted from a verified student token."""

    user_id: int
    subject_id: Optional[int]


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def decode_access_token(
    token: str,
    secret: str | None = None,
    algorithm: str | None = None,
) -> TokenClaims:
    """Verify a bearer token and return its claims.

    Args:
        token: Encoded JWT
        secret: Shared secret (defaults to settings.jwt_secret)
        algorithm: Signing algorithm (defaults to settings.jwt_algorithm)

    Raises:
        AuthenticationError: If the token is expired, malformed, badly signed
            or carries no user id.
    """
    try:
        payload = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[algorithm or settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token expirado")
    except JWTError:
        raise AuthenticationError("Token inválido")

    user_id = _as_int(payload.get("userId", payload.get("sub")))
    if user_id is None:
        raise AuthenticationError("Token inválido")

    return TokenClaims(
        user_id=user_id,
        subject_id=_as_int(payload.get("asignaturaId")),
    )
