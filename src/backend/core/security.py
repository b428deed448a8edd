"""Security utilities for request authentication.

Tokens are issued by the external login service; this module only verifies
them and extracts the caller identity. ``create_access_token`` exists for
local tooling and tests that need a token signed with the shared secret.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from core.config import settings

# Claims that may carry the user id, in order of preference. The login
# service historically signed ``{"userId": ...}``; newer tokens use ``sub``.
USER_ID_CLAIMS = ("sub", "userId")


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token signed with the shared secret."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + (expires_delta or timedelta(minutes=30))})
    if settings.JWT_ISSUER:
        to_encode["iss"] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        to_encode["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT token.

    Returns:
        The decoded payload or None if invalid
    """
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError:
        return None


def extract_user_id(payload: dict[str, Any]) -> str | None:
    """Return the caller's user id from a decoded token payload."""
    for claim in USER_ID_CLAIMS:
        value = payload.get(claim)
        if value:
            return str(value)
    return None
