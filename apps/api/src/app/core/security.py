"""
Security utilities: password hashing and JWT handling.

Two token types are issued to mosque admins:

- ``access``: full-access token, only for approved admins whose mosque
  binding is current.
- ``status``: limited token handed out on a denied login. It lets the
  admin read their own status and reapply or re-verify, nothing else.
"""

import logging
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any, Literal

import jwt
from jwt.exceptions import PyJWTError
from pwdlib import PasswordHash

from app.core.config import settings

logger = logging.getLogger(__name__)

TokenType = Literal["access", "status"]

# Argon2 by default
password_hasher = PasswordHash.recommended()


def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored hash."""
    return password_hasher.verify(password, password_hash)


@lru_cache
def dummy_password_hash() -> str:
    """
    A real hash of a throwaway password.

    Verified against when the email is unknown so that login timing does not
    reveal whether an account exists.
    """
    return password_hasher.hash("not-a-real-account-password")


def _encode(subject: str, token_type: TokenType, expires_delta: timedelta, claims: dict) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        **claims,
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a full-access token."""
    return _encode(
        subject,
        "access",
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
        additional_claims or {},
    )


def create_status_token(
    subject: str,
    admin_status: str,
    expires_delta: timedelta,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create a limited token for an admin who is not allowed full access."""
    claims = {**(additional_claims or {}), "status": admin_status, "limited": True}
    return _encode(subject, "status", expires_delta, claims)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a token.

    Returns the claims, or None if the signature is invalid or it has expired.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except PyJWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None
