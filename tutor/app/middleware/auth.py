from fastapi import Request

from tutor.app.core.security import TokenClaims, decode_access_token
from tutor.app.exceptions import AuthenticationError

# Upper bound on accepted token length, checked before decoding
MAX_TOKEN_LENGTH = 4096


def get_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        The token string or None if missing or not a Bearer header
    """
    auth = request.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.replace("Bearer ", "", 1).strip() or None


async def require_claims(request: Request) -> TokenClaims:
    """Verify the bearer token and return its claims.

    Raises:
        AuthenticationError: 401 if the token is missing, too long,
            invalid or expired
    """
    token = get_bearer_token(request)
    if not token:
        raise AuthenticationError("No autorizado")
    if len(token) > MAX_TOKEN_LENGTH:
        raise AuthenticationError("Token inválido")

    claims = decode_access_token(token)
    request.state.student_id = claims.user_id
    return claims
