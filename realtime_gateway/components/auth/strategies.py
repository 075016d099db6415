"""
Authentication Strategies for the realtime gateway.

Implements Strategy pattern for pluggable connection admission.

PATTERN: Strategy - Different authentication algorithms.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from shared.security.auth import Identity, TokenError, extract_identity, verify_jwt

from realtime_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    validate_websocket_origin,
)
from realtime_gateway.components.core.exceptions import AdmissionError

if TYPE_CHECKING:
    from fastapi import WebSocket


logger = get_logger(__name__)


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class AuthResult:
    """
    Result of authentication attempt.

    Attributes:
        success: Whether authentication succeeded.
        identity: Decoded identity if successful.
        error_message: Reason string sent to the client if failed.
        close_code: WebSocket close code to use if failed.
        audit_reason: Short reason code for audit logging.
    """

    success: bool
    identity: Identity | None = None
    error_message: str | None = None
    close_code: int = WSCloseCode.AUTH_FAILED
    audit_reason: str | None = None

    @classmethod
    def ok(cls, identity: Identity) -> "AuthResult":
        """Create successful authentication result."""
        return cls(success=True, identity=identity)

    @classmethod
    def fail(
        cls,
        message: str,
        close_code: int = WSCloseCode.AUTH_FAILED,
        audit_reason: str = "auth_failed",
    ) -> "AuthResult":
        """Create failed authentication result."""
        return cls(
            success=False,
            error_message=message,
            close_code=close_code,
            audit_reason=audit_reason,
        )

    @classmethod
    def forbidden(cls, message: str, audit_reason: str = "forbidden") -> "AuthResult":
        """Create forbidden (access denied) result."""
        return cls(
            success=False,
            error_message=message,
            close_code=WSCloseCode.FORBIDDEN,
            audit_reason=audit_reason,
        )

    def to_admission_error(self) -> AdmissionError:
        return AdmissionError(
            self.error_message or WSConstants.REASON_INVALID_TOKEN,
            close_code=self.close_code,
            audit_reason=self.audit_reason or "auth_failed",
        )


# =============================================================================
# Strategy Interface
# =============================================================================


class AuthStrategy(ABC):
    """
    Abstract base class for authentication strategies.

    Implementations:
    - JWTAuthStrategy: shared-secret JWT validation
    - NullAuthStrategy: fixed result, for tests and local development

    Usage:
        strategy = JWTAuthStrategy(allowed_origins=settings.allowed_origin_list)
        result = await strategy.authenticate(websocket, token)
        if result.success:
            identity = result.identity
    """

    @abstractmethod
    async def authenticate(
        self,
        websocket: "WebSocket",
        token: str | None,
    ) -> AuthResult:
        """
        Authenticate a WebSocket connection attempt.

        Args:
            websocket: The WebSocket connection (for headers).
            token: Credential extracted from the handshake, or None if absent.

        Returns:
            AuthResult indicating success/failure with identity or error.
        """
        pass


# =============================================================================
# JWT Authentication Strategy
# =============================================================================


class JWTAuthStrategy(AuthStrategy):
    """
    JWT token authentication strategy.

    Checks, in order:
    - Origin header (when present) against the allowed origins
    - Token presence
    - Signature and expiry against the shared secret
    - Identity claim (userId or sub); refresh tokens rejected

    Runs once per connection, before accept.
    """

    def __init__(
        self,
        allowed_origins: list[str],
        secret: str | None = None,
    ) -> None:
        """
        Args:
            allowed_origins: Allowed Origin header values ("*" allows any).
            secret: Verification secret. Defaults to settings.jwt_secret.
        """
        self._allowed_origins = list(allowed_origins)
        self._secret = secret

    def validate_origin(self, websocket: "WebSocket") -> bool:
        origin = websocket.headers.get("origin")
        return validate_websocket_origin(origin, self._allowed_origins)

    async def authenticate(
        self,
        websocket: "WebSocket",
        token: str | None,
    ) -> AuthResult:
        """Authenticate using JWT token."""
        # Step 1: Validate origin
        if not self.validate_origin(websocket):
            logger.warning(
                "JWT auth rejected - invalid origin",
                origin=websocket.headers.get("origin"),
            )
            return AuthResult.forbidden(WSConstants.REASON_ORIGIN, audit_reason="invalid_origin")

        # Step 2: Token present
        if not token:
            return AuthResult.fail(WSConstants.REASON_NO_TOKEN, audit_reason="no_token")

        # Step 3: Verify JWT and extract identity
        try:
            claims = verify_jwt(token, secret=self._secret)
            identity = extract_identity(claims)
        except TokenError as e:
            logger.warning("JWT validation failed", error=str(e.detail), reason=e.reason)
            return AuthResult.fail(
                WSConstants.REASON_INVALID_TOKEN,
                audit_reason=f"jwt_{e.reason}",
            )

        return AuthResult.ok(identity)


# =============================================================================
# Null Strategy (for testing)
# =============================================================================


class NullAuthStrategy(AuthStrategy):
    """
    Null strategy that always succeeds or fails based on configuration.

    On success the token itself is used as the user id, so tests can open
    connections as "u1", "u2" without signing anything.

    PATTERN: Null Object - Provides neutral behavior.
    """

    def __init__(self, always_succeed: bool = True) -> None:
        self._always_succeed = always_succeed

    async def authenticate(
        self,
        websocket: "WebSocket",
        token: str | None,
    ) -> AuthResult:
        """Return configured result."""
        if not token:
            return AuthResult.fail(WSConstants.REASON_NO_TOKEN, audit_reason="no_token")
        if self._always_succeed:
            return AuthResult.ok(Identity(user_id=token))
        return AuthResult.fail(WSConstants.REASON_INVALID_TOKEN, audit_reason="null_strategy")


# =============================================================================
# Factory Functions
# =============================================================================


def create_realtime_auth_strategy() -> JWTAuthStrategy:
    """Create the auth strategy for the realtime endpoint from settings."""
    from shared.config.settings import settings

    return JWTAuthStrategy(allowed_origins=settings.allowed_origin_list)
