"""JWT helpers for the bearer-token contract shared with the auth service."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import jwt

from agrilearn_messaging.core.settings import settings


def create_access_token(user_id: int | str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT access token for the given user id.

    Tokens are normally issued by the external auth service; this helper signs
    them with the same secret for tooling and tests.
    """
    to_encode: dict[str, object] = {"sub": str(user_id)}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_subject(token: str) -> int:
    """Decode a bearer token and return the user id it was issued for.

    Raises:
        jose.JWTError: If the token is invalid or expired.
        ValueError: If the subject is missing or not an integer id.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    if subject is None:
        raise ValueError("Token has no subject")
    return int(subject)
