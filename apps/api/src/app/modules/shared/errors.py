"""
Service Errors

Exception hierarchy raised by service layers. Each error carries a message,
a machine-readable error code and the HTTP status the router should use.
"""

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class BadRequestError(ServiceError):
    """Raised when input or state makes the operation impossible."""

    def __init__(self, message: str, error_code: str = "BAD_REQUEST"):
        super().__init__(message=message, error_code=error_code, status_code=400)


class UnauthorizedError(ServiceError):
    """Raised when an operation requires an authenticated caller."""

    def __init__(
        self,
        message: str = "Authentication is required.",
        error_code: str = "UNAUTHORIZED",
    ):
        super().__init__(message=message, error_code=error_code, status_code=401)


class NotFoundError(ServiceError):
    """Raised when a referenced record does not exist."""

    def __init__(self, resource: str, identifier: str | UUID | None = None):
        message = f"{resource} {identifier} not found" if identifier else f"{resource} not found"
        error_code = f"{resource.upper().replace(' ', '_')}_NOT_FOUND"
        super().__init__(message=message, error_code=error_code, status_code=404)


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error into the structured HTTPException routers raise."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def integrity_error_field(e: IntegrityError) -> str | None:
    """
    Best-effort extraction of the violated constraint or column name.

    asyncpg exposes ``constraint_name`` on the wrapped driver error; when it
    is missing the Postgres detail line ``Key (col)=(...)`` is parsed.
    """
    orig = getattr(e, "orig", None)
    cause = getattr(orig, "__cause__", None)
    for candidate in (orig, cause):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name

    text = str(orig) if orig is not None else str(e)
    marker = "Key ("
    if marker in text:
        start = text.index(marker) + len(marker)
        end = text.find(")", start)
        if end > start:
            return text[start:end]
    return None
