"""
Service-layer errors shared across modules.

Routers translate these into HTTPException with a
``{"error": error_code, "message": message}`` body.
"""

from uuid import UUID

from fastapi import HTTPException


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class MosqueNotFoundError(ServiceError):
    def __init__(self, mosque_id: UUID | None = None):
        message = f"Mosque {mosque_id} not found" if mosque_id else "Mosque not found"
        super().__init__(message=message, error_code="MOSQUE_NOT_FOUND", status_code=404)


class AdminNotFoundError(ServiceError):
    def __init__(self, admin_id: UUID | None = None):
        message = f"Admin {admin_id} not found" if admin_id else "Admin not found"
        super().__init__(message=message, error_code="ADMIN_NOT_FOUND", status_code=404)


class InvalidCodeError(ServiceError):
    """The verification code does not match the mosque's current code."""

    def __init__(self, message: str = "Invalid verification code for this mosque."):
        super().__init__(message=message, error_code="INVALID_CODE", status_code=400)


class ExpiredCodeError(ServiceError):
    def __init__(self):
        super().__init__(
            message=(
                "This verification code has expired. "
                "Please contact the super admin for a new code."
            ),
            error_code="EXPIRED_CODE",
            status_code=400,
        )


class ConcurrentModificationError(ServiceError):
    """A record kept changing underneath us and retries were exhausted."""

    def __init__(self, what: str):
        super().__init__(
            message=f"{what} was modified concurrently. Please retry.",
            error_code="CONCURRENT_MODIFICATION",
            status_code=409,
        )


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )
