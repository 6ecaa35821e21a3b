"""Security utilities for authentication and authorization.

Tokens are issued by the platform's auth service; this service only verifies
them and extracts the caller's identity. All failures are logged for
debugging and security auditing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from cricket_auction.config import Settings, get_settings

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """Verified identity behind a request or connection."""

    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class TokenError(Exception):
    """Token validation error with specific code."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


# =============================================================================
# JWT Token Utilities
# =============================================================================


def create_access_token(
    user_id: str,
    role: str = "user",
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a JWT access token.

    Used by local tooling and tests; production tokens come from the auth
    service and carry the same claims.
    """
    settings = settings or get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=30)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + expires_delta,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def verify_access_token(
    token: str,
    settings: Settings | None = None,
) -> dict[str, Any] | None:
    """Verify an access token and return its payload.

    Args:
        token: JWT access token
        settings: Settings to verify against (defaults to cached settings)

    Returns:
        Token payload if valid, None otherwise

    Raises:
        TokenError: If token is expired
    """
    if not token:
        logger.debug("Access token verification failed: empty token")
        return None

    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Access token verification failed: token expired")
        raise TokenError("TOKEN_EXPIRED", "Token has expired")
    except jwt.JWTClaimsError as e:
        logger.debug(f"Access token verification failed: invalid claims - {e}")
        return None
    except JWTError as e:
        logger.warning(f"Access token verification failed: {type(e).__name__}")
        return None

    if payload.get("type", "access") != "access":
        logger.debug("Access token verification failed: wrong token type")
        return None

    return payload


def principal_from_token(
    token: str,
    settings: Settings | None = None,
) -> Principal | None:
    """Resolve a bearer token to a Principal, or None if invalid.

    Raises:
        TokenError: If token is expired
    """
    payload = verify_access_token(token, settings)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.debug("Access token verification failed: missing sub claim")
        return None

    return Principal(user_id=str(user_id), role=str(payload.get("role", "user")))
