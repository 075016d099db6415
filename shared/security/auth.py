"""
Authentication utilities.
Handles signing and verification of the JWT access tokens shared between the
REST backend (which issues them at login) and the realtime gateway.

Token shape (as issued by the backend):
    {"userId": "<id>", "email": "<email>", "iat": ..., "exp": ...}
"sub" is accepted as an alternative identity claim.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import HTTPException, status

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)


class TokenError(HTTPException):
    """
    Token could not be verified.

    Attributes:
        reason: Short machine-readable reason (expired, invalid, missing_identity, refresh_token).
    """

    def __init__(self, detail: str, reason: str = "invalid") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
        self.reason = reason


@dataclass(frozen=True, slots=True)
class Identity:
    """Decoded identity attached to an admitted connection."""

    user_id: str
    email: str | None = None
    expires_at: int | None = None


def sign_jwt(
    payload: dict[str, Any],
    ttl_seconds: int | None = None,
    token_type: str = "access",
    secret: str | None = None,
) -> str:
    """
    Sign a JWT token with the given payload.

    Args:
        payload: Claims to include in the token (userId, email, ...).
        ttl_seconds: Token lifetime in seconds. Defaults to the access token expiry.
        token_type: Type of token ("access" or "refresh").
        secret: Signing secret. Defaults to settings.jwt_secret.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_days * 24 * 60 * 60

    now = int(time.time())
    data = {
        **payload,
        "iat": now,
        "exp": now + ttl_seconds,
        "type": token_type,
        "jti": str(uuid.uuid4()),
    }
    if settings.jwt_issuer:
        data["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        data["aud"] = settings.jwt_audience
    return jwt.encode(data, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_jwt(token: str, secret: str | None = None) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Checks signature and expiry against the shared secret. Issuer and audience
    are checked only when configured.

    Args:
        token: The JWT token string.
        secret: Verification secret. Defaults to settings.jwt_secret.

    Returns:
        Decoded token claims.

    Raises:
        TokenError: If the token is invalid or expired.
    """
    options: dict[str, Any] = {"require": ["exp"]}
    kwargs: dict[str, Any] = {}
    if settings.jwt_audience:
        kwargs["audience"] = settings.jwt_audience
    else:
        options["verify_aud"] = False
    if settings.jwt_issuer:
        kwargs["issuer"] = settings.jwt_issuer

    try:
        return jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options=options,
            **kwargs,
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired", reason="expired")
    except jwt.InvalidTokenError as e:
        # Log the actual error for debugging, but return generic message to client
        logger.warning("JWT validation failed", error=str(e))
        raise TokenError("Invalid token", reason="invalid")


def extract_identity(claims: dict[str, Any]) -> Identity:
    """
    Build the connection identity from verified claims.

    Raises:
        TokenError: If the identity claim is missing/malformed or a refresh token is used.
    """
    if claims.get("type") == "refresh":
        raise TokenError("Refresh tokens cannot open realtime connections", reason="refresh_token")

    raw_id = claims.get("userId", claims.get("sub"))
    # bool is an int subclass; reject it explicitly
    if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)):
        raise TokenError("Invalid token: missing identity claim", reason="missing_identity")

    user_id = str(raw_id).strip()
    if not user_id:
        raise TokenError("Invalid token: missing identity claim", reason="missing_identity")

    email = claims.get("email")
    return Identity(
        user_id=user_id,
        email=email if isinstance(email, str) else None,
        expires_at=claims.get("exp"),
    )


def get_bearer_token(authorization: str | None) -> str | None:
    """
    Extract bearer token from an Authorization header.

    Returns:
        The token string without "Bearer " prefix, or None if absent/malformed.
    """
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()
