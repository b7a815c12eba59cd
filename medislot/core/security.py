"""Bearer token verification.

Tokens are minted by the identity provider; the API only needs the subject
(the user id). ``create_access_token`` produces compatible tokens for local
tooling and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from medislot.config import settings

ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode; ``sub`` should carry the user id
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = {**data, "exp": issued_at + lifetime, "iat": issued_at, "type": ACCESS_TOKEN_TYPE}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verified claims of an access token, or None if invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None

    return payload


def get_token_subject(token: str) -> UUID | None:
    """User id carried in a valid access token's ``sub`` claim."""
    payload = decode_access_token(token)
    if payload is None:
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str):
        return None

    try:
        return UUID(subject)
    except ValueError:
        return None
