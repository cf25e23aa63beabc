"""
Security utilities: JWT access tokens.

Token issuance belongs to the auth service; this API only needs to verify
bearer tokens and, in tests and scripts, mint them.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from core.config import settings

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Base exception for authentication errors."""
    pass


class TokenExpiredError(AuthenticationError):
    """Raised when JWT token has expired."""
    pass


class TokenInvalidError(AuthenticationError):
    """Raised when JWT token is invalid."""
    pass


@dataclass(frozen=True)
class JWTPayload:
    """Claims carried by an access token."""
    user_id: int
    email: Optional[str]
    role: Optional[str]
    type: str
    exp: datetime
    jti: str


def create_access_token(
    user_id: int,
    email: Optional[str] = None,
    role: Optional[str] = None,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Subject user id
        email: User email (informational)
        role: User role (informational, authorization reads the database)
        secret_key: Signing secret, defaults to settings
        algorithm: Signing algorithm, defaults to settings
        expires_delta: Lifetime, defaults to settings

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {
        "sub": str(user_id),
        "user_id": user_id,
        "email": email,
        "role": role,
        "type": "access",
        "iat": issued_at,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(
        claims,
        secret_key or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def verify_jwt_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> JWTPayload:
    """
    Verify signature, expiry and type of an access token.

    Raises:
        TokenExpiredError: If the token has expired
        TokenInvalidError: If the token is malformed, tampered or not an access token
    """
    try:
        claims = jwt.decode(
            token,
            secret_key or settings.jwt_secret_key,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")

    if claims.get("type") != "access":
        raise TokenInvalidError("Invalid token: not an access token")

    try:
        user_id = int(claims.get("user_id", claims["sub"]))
    except (TypeError, ValueError):
        raise TokenInvalidError("Invalid token: bad subject")

    return JWTPayload(
        user_id=user_id,
        email=claims.get("email"),
        role=claims.get("role"),
        type=claims["type"],
        exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        jti=claims.get("jti", ""),
    )

