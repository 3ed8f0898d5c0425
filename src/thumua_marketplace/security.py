"""JWT bearer tokens (PyJWT, HS256 by default).

Tokens carry the user id under ``userId`` (``id`` is accepted too, for
tokens minted by older clients) plus ``iat``/``exp``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from thumua_marketplace.config import get_settings
from thumua_marketplace.domain.exceptions import AuthenticationError


def create_access_token(user_id: str, expires_delta: timedelta | None = None, **claims: Any) -> str:
    """Sign a token for ``user_id``."""
    settings = get_settings()
    now = datetime.now(UTC)
    payload = {
        **claims,
        "userId": str(user_id),
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify a token and return its claims.

    Raises:
        AuthenticationError: expired or otherwise invalid token.
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as err:
        raise AuthenticationError("Token has expired") from err
    except jwt.PyJWTError as err:
        raise AuthenticationError("Invalid token") from err


def user_id_from_token(token: str) -> str:
    claims = decode_access_token(token)
    user_id = claims.get("userId") or claims.get("id")
    if not user_id:
        raise AuthenticationError("Invalid token: missing user id")
    return str(user_id)
