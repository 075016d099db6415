"""
Security module: Token signing and verification.
"""

from shared.security.auth import (
    Identity,
    TokenError,
    sign_jwt,
    verify_jwt,
    extract_identity,
    get_bearer_token,
)

__all__ = [
    "Identity",
    "TokenError",
    "sign_jwt",
    "verify_jwt",
    "extract_identity",
    "get_bearer_token",
]
