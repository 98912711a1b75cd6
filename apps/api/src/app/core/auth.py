"""
Authentication and Authorization Dependencies

FastAPI dependencies that validate JWTs and enforce role and token scope.

Roles:
- ``super_admin``: platform operators
- ``mosque_admin``: mosque admins

Token types for mosque admins:
- ``access``: full access, issued only to approved admins with a current binding
- ``status``: limited, issued on a denied login; valid only for the
  self-service endpoints (own status, reapply, re-verify)
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_token

logger = logging.getLogger(__name__)

ROLE_SUPER_ADMIN = "super_admin"
ROLE_MOSQUE_ADMIN = "mosque_admin"

security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class Principal:
    """
    The authenticated caller, populated from JWT claims.

    Attributes:
        id: Account id
        email: Account email
        role: super_admin or mosque_admin
        token_type: access or status
        name: Display name, if present in the token
        status: Admin status at issue time (status tokens only)
    """

    id: UUID
    email: str
    role: str
    token_type: str
    name: str | None = None
    status: str | None = None

    @property
    def is_limited(self) -> bool:
        return self.token_type != "access"

    def __str__(self) -> str:
        return f"Principal(id={self.id}, role={self.role}, type={self.token_type})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"error": error, "message": message},
    )


def principal_from_token(token: str) -> Principal:
    """
    Validate a token and extract its claims.

    Raises:
        HTTPException 401: Invalid, expired, or malformed token
    """
    payload = decode_token(token)
    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type")
    if token_type not in ("access", "status"):
        logger.warning(f"Invalid token type: {token_type}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "Unsupported token type.")

    try:
        subject = payload.get("sub")
        if not subject:
            raise ValueError("Missing 'sub' claim in token")
        return Principal(
            id=UUID(subject),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            token_type=token_type,
            name=payload.get("name"),
            status=payload.get("status"),
        )
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_super_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """Require a full-access super admin token."""
    principal = principal_from_token(credentials.credentials)

    if principal.role != ROLE_SUPER_ADMIN or principal.is_limited:
        logger.warning(f"Access denied: {principal} is not a super admin")
        raise _forbidden(
            "SUPER_ADMIN_ACCESS_REQUIRED",
            "Super admin access is required for this endpoint.",
        )
    return principal


async def get_current_mosque_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """
    Require a full-access mosque admin token.

    Limited status tokens are rejected here, so they can never reach an
    approved-admin-only endpoint.
    """
    principal = principal_from_token(credentials.credentials)

    if principal.role != ROLE_MOSQUE_ADMIN:
        raise _forbidden("MOSQUE_ADMIN_ACCESS_REQUIRED", "Mosque admin access is required.")
    if principal.is_limited:
        logger.warning(f"Limited token used on a full-access endpoint by admin {principal.id}")
        raise _forbidden(
            "FULL_ACCESS_REQUIRED",
            "This endpoint requires an approved admin account. "
            "Your current token only allows viewing your status.",
        )
    return principal


async def get_current_admin_self(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """Accept a mosque admin's full or limited token, for self-service endpoints."""
    principal = principal_from_token(credentials.credentials)

    if principal.role != ROLE_MOSQUE_ADMIN:
        raise _forbidden("MOSQUE_ADMIN_ACCESS_REQUIRED", "Mosque admin access is required.")
    return principal


__all__ = [
    "Principal",
    "ROLE_MOSQUE_ADMIN",
    "ROLE_SUPER_ADMIN",
    "get_current_admin_self",
    "get_current_mosque_admin",
    "get_current_super_admin",
]
